"""
Avatar SDK interface and an in-process mock implementation.

The bridge only relies on the AvatarClient protocol: token-based client
construction, lifecycle listeners, and start/stop streaming to a video
sink. MockAvatarClient satisfies it for development and tests.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from ..core.constants import EVENT_CONNECTION_CLOSED, EVENT_VIDEO_PLAY_STARTED

logger = logging.getLogger("avatar.stream.sdk")


@runtime_checkable
class AvatarClient(Protocol):
    """Protocol for avatar streaming SDK clients."""

    def add_listener(self, event: str, callback: Callable[..., Any]) -> None:
        ...

    def remove_listener(self, event: str, callback: Callable[..., Any]) -> None:
        ...

    async def stream_to_video_element(
        self,
        video_element_id: str,
        audio_input: Optional[Any] = None,
    ) -> None:
        ...

    async def stop_streaming(self) -> None:
        ...


AvatarClientFactory = Callable[[str, dict[str, Any]], AvatarClient]


class MockAvatarClient:
    """Mock avatar client that simulates a remote stream."""

    def __init__(
        self,
        session_token: str,
        persona_config: dict[str, Any],
        connect_delay: float = 0.5,
        fail_on_stream: bool = False,
    ):
        self.session_token = session_token
        self.persona_config = persona_config
        self.connect_delay = connect_delay
        self.fail_on_stream = fail_on_stream

        self.quality = "standard"
        self.streaming = False
        self.audio_input: Optional[Any] = None
        self.video_element_id: Optional[str] = None
        self._listeners: dict[str, list[Callable[..., Any]]] = {}

    def add_listener(self, event: str, callback: Callable[..., Any]) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def remove_listener(self, event: str, callback: Callable[..., Any]) -> None:
        callbacks = self._listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(cbs) for cbs in self._listeners.values())

    def _emit(self, event: str) -> None:
        for callback in list(self._listeners.get(event, [])):
            callback()

    async def stream_to_video_element(
        self,
        video_element_id: str,
        audio_input: Optional[Any] = None,
    ) -> None:
        """Simulate connecting and starting playback."""
        if self.fail_on_stream:
            raise ConnectionError("Mock stream failed to start")

        self.video_element_id = video_element_id
        self.audio_input = audio_input
        await asyncio.sleep(self.connect_delay)
        self.streaming = True
        logger.info("Mock avatar streaming to %s", video_element_id)
        self._emit(EVENT_VIDEO_PLAY_STARTED)

    async def stop_streaming(self) -> None:
        if not self.streaming:
            return
        self.streaming = False
        self._emit(EVENT_CONNECTION_CLOSED)

    async def get_stream_quality(self) -> str:
        return self.quality

    async def set_stream_quality(self, quality: str) -> None:
        self.quality = quality

    def simulate_remote_close(self) -> None:
        """Drop the stream as if the provider closed it."""
        self.streaming = False
        self._emit(EVENT_CONNECTION_CLOSED)


def mock_client_factory(connect_delay: float = 0.5) -> AvatarClientFactory:
    """Build a factory producing MockAvatarClient instances."""

    def factory(session_token: str, persona_config: dict[str, Any]) -> MockAvatarClient:
        return MockAvatarClient(session_token, persona_config, connect_delay=connect_delay)

    return factory
