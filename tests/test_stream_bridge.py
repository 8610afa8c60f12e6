"""
Tests for StreamStatusBridge over the in-process MockAvatarClient.
"""

import asyncio
import sys
from unittest.mock import MagicMock, patch

import pytest

from presence_avatar.core.constants import ConnectionStatus, EVENT_CONNECTION_CLOSED
from presence_avatar.stream import MicrophoneInput, MockAvatarClient, StreamStatusBridge

PERSONA = {"personaId": "p-1"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class _NoQualityClient(MockAvatarClient):
    async def get_stream_quality(self):
        raise RuntimeError("quality unavailable")

    async def set_stream_quality(self, quality):
        raise RuntimeError("quality rejected")


class _Factory:
    """Builds mock clients and remembers them."""

    def __init__(self, fail_on_stream: bool = False, connect_delay: float = 0, client_class=MockAvatarClient):
        self.fail_on_stream = fail_on_stream
        self.connect_delay = connect_delay
        self.client_class = client_class
        self.clients: list[MockAvatarClient] = []

    def __call__(self, token, persona_config):
        client = self.client_class(
            token,
            persona_config,
            connect_delay=self.connect_delay,
            fail_on_stream=self.fail_on_stream,
        )
        self.clients.append(client)
        return client


def _bridge(factory=None, microphone=None):
    events = []
    factory = factory or _Factory()
    bridge = StreamStatusBridge(
        factory,
        video_sink="avatar-video",
        on_status=events.append,
        microphone=microphone,
    )
    return bridge, factory, events


def _statuses(events):
    return [(e.attempt_id, e.status) for e in events]


# ---------------------------------------------------------------------------
# Connect
# ---------------------------------------------------------------------------

class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_reports_connecting_then_connected(self):
        bridge, factory, events = _bridge()

        await bridge.connect(1, "tok", PERSONA)
        await bridge.wait_idle()

        assert _statuses(events) == [
            (1, ConnectionStatus.CONNECTING),
            (1, ConnectionStatus.CONNECTED),
        ]
        client = factory.clients[0]
        assert client.session_token == "tok"
        assert client.video_element_id == "avatar-video"
        assert client.quality == "high"

    @pytest.mark.asyncio
    async def test_stream_start_failure_reports_errored(self):
        bridge, _, events = _bridge(_Factory(fail_on_stream=True))

        await bridge.connect(1, "tok", PERSONA)

        assert _statuses(events) == [
            (1, ConnectionStatus.CONNECTING),
            (1, ConnectionStatus.ERRORED),
        ]
        assert events[-1].error == "Mock stream failed to start"

    @pytest.mark.asyncio
    async def test_microphone_failure_streams_without_audio(self):
        fake_sd = MagicMock()
        fake_sd.InputStream.side_effect = OSError("no input device")
        microphone = MicrophoneInput()

        with patch.dict(sys.modules, {"sounddevice": fake_sd}):
            bridge, factory, events = _bridge(microphone=microphone)
            await bridge.connect(1, "tok", PERSONA)
            await bridge.wait_idle()

        assert bridge.status == ConnectionStatus.CONNECTED
        assert factory.clients[0].audio_input is None
        assert not microphone.is_active

    @pytest.mark.asyncio
    async def test_microphone_stream_passed_to_sdk(self):
        microphone = MagicMock(spec=MicrophoneInput)
        stream = object()
        microphone.acquire.return_value = stream

        bridge, factory, _ = _bridge(microphone=microphone)
        await bridge.connect(1, "tok", PERSONA)
        await bridge.wait_idle()

        assert factory.clients[0].audio_input is stream

    @pytest.mark.asyncio
    async def test_reconnect_shuts_down_previous_client(self):
        bridge, factory, events = _bridge()

        await bridge.connect(1, "tok-1", PERSONA)
        await bridge.wait_idle()
        await bridge.connect(2, "tok-2", PERSONA)
        await bridge.wait_idle()

        first, second = factory.clients
        assert first.streaming is False
        assert first.listener_count() == 0
        assert second.streaming is True
        assert bridge.client is second
        assert _statuses(events)[2:] == [
            (1, ConnectionStatus.DISCONNECTED),
            (2, ConnectionStatus.CONNECTING),
            (2, ConnectionStatus.CONNECTED),
        ]

    @pytest.mark.asyncio
    async def test_quality_upgrade_failure_still_connected(self):
        bridge, factory, events = _bridge(_Factory(client_class=_NoQualityClient))

        await bridge.connect(1, "tok", PERSONA)
        await bridge.wait_idle()

        assert bridge.status == ConnectionStatus.CONNECTED
        assert _statuses(events)[-1] == (1, ConnectionStatus.CONNECTED)
        assert factory.clients[0].streaming is True
        assert factory.clients[0].quality == "standard"


# ---------------------------------------------------------------------------
# Superseded attempts
# ---------------------------------------------------------------------------

class TestSupersededAttempt:
    @pytest.mark.asyncio
    async def test_connect_for_superseded_attempt_is_skipped(self):
        microphone = MagicMock(spec=MicrophoneInput)
        bridge, factory, events = _bridge(microphone=microphone)
        bridge.is_current = lambda attempt_id: attempt_id == 2

        await bridge.connect(1, "tok", PERSONA)

        assert factory.clients == []
        assert events == []
        microphone.acquire.assert_not_called()
        assert bridge.status == ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_attempt_superseded_while_stream_starts(self):
        current = {1}
        bridge, factory, events = _bridge(_Factory(connect_delay=0.02))
        bridge.is_current = lambda attempt_id: attempt_id in current

        task = asyncio.create_task(bridge.connect(1, "tok", PERSONA))
        while not factory.clients:
            await asyncio.sleep(0)
        current.clear()
        await task
        await bridge.wait_idle()

        client = factory.clients[0]
        assert client.streaming is False
        assert client.listener_count() == 0
        assert bridge.client is None
        assert bridge.status == ConnectionStatus.DISCONNECTED
        assert (1, ConnectionStatus.CONNECTED) not in _statuses(events)

    @pytest.mark.asyncio
    async def test_client_shut_down_while_stream_starts_is_stopped(self):
        bridge, factory, _ = _bridge(_Factory(connect_delay=0.02))

        task = asyncio.create_task(bridge.connect(1, "tok", PERSONA))
        while not factory.clients:
            await asyncio.sleep(0)
        await bridge.shutdown()
        await task

        assert factory.clients[0].streaming is False
        assert bridge.status == ConnectionStatus.DISCONNECTED


# ---------------------------------------------------------------------------
# Shutdown and remote close
# ---------------------------------------------------------------------------

class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_stops_releases_and_detaches(self):
        order = []
        microphone = MagicMock(spec=MicrophoneInput)
        microphone.acquire.return_value = None

        bridge, factory, events = _bridge(microphone=microphone)
        await bridge.connect(1, "tok", PERSONA)
        await bridge.wait_idle()
        client = factory.clients[0]

        def on_release():
            order.append(("release", client.streaming, client.listener_count()))

        microphone.release.side_effect = on_release

        await bridge.shutdown()

        # Stream already stopped, listeners still attached when the mic goes
        assert order == [("release", False, 2)]
        assert client.listener_count() == 0
        assert bridge.client is None
        assert bridge.status == ConnectionStatus.DISCONNECTED
        assert _statuses(events)[-1] == (1, ConnectionStatus.DISCONNECTED)

    @pytest.mark.asyncio
    async def test_shutdown_when_idle_is_quiet(self):
        bridge, _, events = _bridge()
        await bridge.shutdown()
        assert events == []

    @pytest.mark.asyncio
    async def test_remote_close_reports_disconnected(self):
        bridge, factory, events = _bridge()
        await bridge.connect(1, "tok", PERSONA)
        await bridge.wait_idle()

        factory.clients[0].simulate_remote_close()
        await bridge.wait_idle()

        assert _statuses(events)[-1] == (1, ConnectionStatus.DISCONNECTED)

    @pytest.mark.asyncio
    async def test_events_from_detached_client_ignored(self):
        bridge, factory, events = _bridge()
        await bridge.connect(1, "tok", PERSONA)
        await bridge.wait_idle()
        client = factory.clients[0]
        await bridge.shutdown()
        count = len(events)

        client.add_listener(EVENT_CONNECTION_CLOSED, lambda: None)
        client.simulate_remote_close()
        await bridge.wait_idle()

        assert len(events) == count
