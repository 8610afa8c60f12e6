"""
Stream status bridge.

Wraps an avatar SDK client and turns its lifecycle callbacks into
StreamStatusEvents tagged with the launch attempt they belong to:

    disconnected ──► connecting ──► connected ──► disconnected
                          │
                          └──► errored ──► disconnected

Only one SDK client exists at a time; connect() tears down any previous
client before building the next one.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from ..core.callbacks import notify
from ..core.constants import (
    ConnectionStatus,
    EVENT_CONNECTION_CLOSED,
    EVENT_VIDEO_PLAY_STARTED,
)
from ..core.models import StreamStatusEvent
from .microphone import MicrophoneInput
from .sdk import AvatarClient, AvatarClientFactory

logger = logging.getLogger("avatar.stream.bridge")

_TRANSITIONS: dict[ConnectionStatus, set[ConnectionStatus]] = {
    ConnectionStatus.DISCONNECTED: {ConnectionStatus.CONNECTING},
    ConnectionStatus.CONNECTING: {
        ConnectionStatus.CONNECTED,
        ConnectionStatus.ERRORED,
        ConnectionStatus.DISCONNECTED,
    },
    ConnectionStatus.CONNECTED: {ConnectionStatus.DISCONNECTED},
    ConnectionStatus.ERRORED: {ConnectionStatus.DISCONNECTED},
}


class StreamStatusBridge:
    """
    Finite state machine over one avatar SDK client.

    on_status(event) receives a StreamStatusEvent for every transition.
    is_current(attempt_id), when set, is consulted before going live so a
    connect queued for an abandoned attempt never brings up a stream.
    """

    def __init__(
        self,
        client_factory: AvatarClientFactory,
        video_sink: str,
        on_status: Optional[Callable[[StreamStatusEvent], Any]] = None,
        microphone: Optional[MicrophoneInput] = None,
        preferred_quality: str = "high",
        is_current: Optional[Callable[[int], bool]] = None,
    ):
        self._client_factory = client_factory
        self._video_sink = video_sink
        self.on_status = on_status
        self._microphone = microphone
        self._preferred_quality = preferred_quality
        self.is_current = is_current

        self._status = ConnectionStatus.DISCONNECTED
        self._attempt_id: Optional[int] = None
        self._client: Optional[AvatarClient] = None
        self._listeners: list[tuple[str, Callable[[], None]]] = []
        self._has_live_stream = False
        self._lock = asyncio.Lock()
        self._background: set[asyncio.Task] = set()

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def attempt_id(self) -> Optional[int]:
        return self._attempt_id

    @property
    def client(self) -> Optional[AvatarClient]:
        return self._client

    def _is_stale(self, attempt_id: int) -> bool:
        return self.is_current is not None and not self.is_current(attempt_id)

    async def connect(
        self,
        attempt_id: int,
        session_token: str,
        persona_config: dict[str, Any],
    ) -> None:
        """Shut down any previous client, then stream with a new one."""
        async with self._lock:
            await self._shutdown_locked()

            if self._is_stale(attempt_id):
                logger.debug("Skipped connect for superseded attempt %d", attempt_id)
                return

            self._attempt_id = attempt_id
            await self._transition(ConnectionStatus.CONNECTING)

            audio_input = None
            if self._microphone is not None:
                audio_input = await asyncio.to_thread(self._microphone.acquire)

            client = self._client_factory(session_token, persona_config)
            self._client = client
            self._add_listener(client, EVENT_VIDEO_PLAY_STARTED, self._on_play_started)
            self._add_listener(client, EVENT_CONNECTION_CLOSED, self._on_connection_closed)

        try:
            await client.stream_to_video_element(self._video_sink, audio_input)
        except Exception as e:
            if client is not self._client:
                logger.debug("Stream start failed for a client already shut down: %s", e)
                return
            logger.error("Error starting stream: %s", e)
            self._has_live_stream = False
            await self._transition(ConnectionStatus.ERRORED, error=str(e) or "Stream error")
            return

        if client is self._client and not self._is_stale(attempt_id):
            self._has_live_stream = True
            return

        # Abandoned while the stream was starting
        logger.info("Attempt %d abandoned while connecting, stopping stream", attempt_id)
        async with self._lock:
            if client is self._client:
                self._has_live_stream = True
                await self._shutdown_locked()
                return
        try:
            await client.stop_streaming()
        except Exception as e:
            logger.warning("Avatar stream shutdown warning: %s", e)

    async def shutdown(self) -> None:
        """Stop streaming, release the microphone, detach listeners, report disconnected."""
        async with self._lock:
            await self._shutdown_locked()

    async def wait_idle(self) -> None:
        """Wait for listener-triggered work (status changes, quality upgrade)."""
        current = asyncio.current_task()
        pending = [t for t in self._background if t is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _shutdown_locked(self) -> None:
        client = self._client
        if client is not None:
            try:
                if self._has_live_stream:
                    await client.stop_streaming()
            except Exception as e:
                logger.warning("Avatar stream shutdown warning: %s", e)
            finally:
                self._has_live_stream = False
                self._client = None

        if self._microphone is not None:
            self._microphone.release()

        if client is not None:
            for event, callback in self._listeners:
                try:
                    client.remove_listener(event, callback)
                except Exception as e:
                    logger.debug("Could not remove %s listener: %s", event, e)
        self._listeners.clear()

        current = asyncio.current_task()
        for task in list(self._background):
            if task is not current:
                task.cancel()

        await self._transition(ConnectionStatus.DISCONNECTED)

    def _add_listener(
        self,
        client: AvatarClient,
        event: str,
        handler: Callable[[AvatarClient], Any],
    ) -> None:
        def callback(*_args: Any) -> None:
            self._spawn(handler(client))

        client.add_listener(event, callback)
        self._listeners.append((event, callback))

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _on_play_started(self, client: AvatarClient) -> None:
        if client is not self._client:
            return
        self._has_live_stream = True
        await self._transition(ConnectionStatus.CONNECTED)
        await self._upgrade_quality(client)

    async def _on_connection_closed(self, client: AvatarClient) -> None:
        if client is not self._client:
            return
        self._has_live_stream = False
        await self._transition(ConnectionStatus.DISCONNECTED)

    async def _upgrade_quality(self, client: AvatarClient) -> None:
        """Best-effort request for the preferred stream quality."""
        try:
            get_quality = getattr(client, "get_stream_quality", None)
            if get_quality is not None:
                logger.info("Current stream quality: %s", await get_quality())

            set_quality = getattr(client, "set_stream_quality", None)
            if set_quality is not None:
                await set_quality(self._preferred_quality)
                logger.info("Stream quality set to %s", self._preferred_quality)
        except Exception as e:
            logger.warning("Could not adjust stream quality: %s", e)

    async def _transition(self, status: ConnectionStatus, error: Optional[str] = None) -> None:
        if status == self._status:
            return
        if status not in _TRANSITIONS[self._status]:
            logger.debug("Ignored transition %s -> %s", self._status.value, status.value)
            return

        logger.info("Stream status: %s -> %s", self._status.value, status.value)
        self._status = status
        if self._attempt_id is None:
            return
        await notify(self.on_status, StreamStatusEvent(self._attempt_id, status, error))
