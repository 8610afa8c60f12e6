"""Tests for the kiosk application wiring, persona loading and preview overlay."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest

from conftest import FakeClassifier, FakeVideoSource, person, sample
from presence_avatar.core.config import KioskConfig, Settings
from presence_avatar.core.constants import OrchestratorState
from presence_avatar.kiosk import DEFAULT_PERSONA_CONFIG, BrokerClient, KioskApplication, load_persona_config
from presence_avatar.presence import CameraPermissionError, draw_detections
from presence_avatar.stream import AuthenticationError, mock_client_factory


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _settings(tmp_path, **kiosk) -> Settings:
    kiosk.setdefault("session_file", tmp_path / "session_id")
    kiosk.setdefault("microphone_enabled", False)
    return Settings(kiosk=KioskConfig(**kiosk))


def _broker(authorized=False, login_result="new-session") -> MagicMock:
    broker = MagicMock(spec=BrokerClient)
    broker.session_id = None
    broker.auth_check = AsyncMock(return_value=(authorized, "kiosk" if authorized else None))
    if isinstance(login_result, Exception):
        broker.login = AsyncMock(side_effect=login_result)
    else:
        broker.login = AsyncMock(return_value=login_result)
    broker.fetch_session_token = AsyncMock(return_value="tok")
    broker.logout = AsyncMock()
    broker.close = AsyncMock()
    return broker


def _app(tmp_path, broker, source=None, classifier=None, **kiosk) -> KioskApplication:
    return KioskApplication(
        app_settings=_settings(tmp_path, **kiosk),
        broker=broker,
        video_source=source or FakeVideoSource(),
        classifier=classifier or FakeClassifier(),
        client_factory=mock_client_factory(connect_delay=0),
        preview=False,
    )


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_restores_cached_session(self, tmp_path):
        (tmp_path / "session_id").write_text("cached-id")
        broker = _broker(authorized=True)
        app = _app(tmp_path, broker, password="pw")

        assert await app.authenticate() is True
        assert broker.session_id == "cached-id"
        broker.login.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_cache_is_cleared_then_login(self, tmp_path):
        cache_file = tmp_path / "session_id"
        cache_file.write_text("stale-id")
        broker = _broker(authorized=False)
        app = _app(tmp_path, broker, username="kiosk", password="pw")

        assert await app.authenticate() is True
        broker.login.assert_awaited_once_with("kiosk", "pw")
        assert cache_file.read_text() == "new-session"

    @pytest.mark.asyncio
    async def test_login_failure(self, tmp_path):
        broker = _broker(login_result=AuthenticationError("Invalid credentials"))
        app = _app(tmp_path, broker, password="wrong")

        assert await app.authenticate() is False

    @pytest.mark.asyncio
    async def test_no_credentials_continues(self, tmp_path):
        broker = _broker()
        app = _app(tmp_path, broker)

        assert await app.authenticate() is True
        broker.login.assert_not_called()


# ---------------------------------------------------------------------------
# Startup / shutdown
# ---------------------------------------------------------------------------

class TestStartup:
    @pytest.mark.asyncio
    async def test_presence_drives_session(self, tmp_path):
        broker = _broker()
        classifier = FakeClassifier()
        app = _app(tmp_path, broker, classifier=classifier)

        assert await app.startup() is True
        assert app.is_running

        await app.detector.process_sample(sample(person(0.9)))
        await app.orchestrator.wait_idle()

        assert app.orchestrator.state == OrchestratorState.ACTIVE
        broker.fetch_session_token.assert_awaited_once_with(DEFAULT_PERSONA_CONFIG)

        await app.shutdown()
        assert app.orchestrator.state == OrchestratorState.IDLE
        broker.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_camera_denied_aborts(self, tmp_path):
        app = _app(tmp_path, _broker(), source=FakeVideoSource(CameraPermissionError("denied")))

        assert await app.startup() is False
        assert not app.is_running

    @pytest.mark.asyncio
    async def test_run_returns_error_code_on_failed_startup(self, tmp_path):
        broker = _broker()
        app = _app(tmp_path, broker, source=FakeVideoSource(CameraPermissionError("denied")))

        assert await app.run() == 1
        broker.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_logout_clears_cache(self, tmp_path):
        cache_file = tmp_path / "session_id"
        cache_file.write_text("cached-id")
        broker = _broker()
        app = _app(tmp_path, broker)

        assert await app.logout() == 0
        broker.logout.assert_awaited_once()
        assert not cache_file.exists()


# ---------------------------------------------------------------------------
# Preview keys
# ---------------------------------------------------------------------------

class TestPreviewKeys:
    @pytest.mark.asyncio
    async def test_start_and_close_keys(self, tmp_path):
        broker = _broker()
        app = _app(tmp_path, broker)
        await app.startup()

        app.handle_key(ord("s"))
        assert app.orchestrator.state == OrchestratorState.LAUNCHING
        await app.orchestrator.wait_idle()
        assert app.orchestrator.state == OrchestratorState.ACTIVE
        broker.fetch_session_token.assert_awaited_once()

        app.handle_key(ord("c"))
        assert app.orchestrator.state == OrchestratorState.IDLE
        await app.orchestrator.wait_idle()
        assert app.orchestrator.controller.token is None

        await app.shutdown()

    @pytest.mark.asyncio
    async def test_quit_key_requests_shutdown(self, tmp_path):
        app = _app(tmp_path, _broker())
        await app.startup()

        app.handle_key(ord("x"))
        assert not app.shutdown_requested
        app.handle_key(ord("q"))
        assert app.shutdown_requested

        await app.shutdown()

    @pytest.mark.asyncio
    async def test_preview_frame_reads_keys(self, tmp_path):
        app = _app(tmp_path, _broker())
        await app.startup()
        frame = np.zeros((48, 64, 3), dtype=np.uint8)

        with patch("presence_avatar.kiosk.app.cv2") as fake_cv2:
            fake_cv2.waitKey.return_value = ord("q")
            app._on_sample(frame, [person(0.9)])

        fake_cv2.imshow.assert_called_once()
        assert app.shutdown_requested
        await app.shutdown()


# ---------------------------------------------------------------------------
# Persona and overlay
# ---------------------------------------------------------------------------

class TestPersona:
    def test_default_persona(self):
        config = load_persona_config()
        assert config == DEFAULT_PERSONA_CONFIG
        assert config is not DEFAULT_PERSONA_CONFIG

    def test_file_overrides_defaults(self, tmp_path):
        path = tmp_path / "persona.json"
        path.write_text(json.dumps({"systemPrompt": "Greet visitors.", "quality": "standard"}))

        config = load_persona_config(path)

        assert config["systemPrompt"] == "Greet visitors."
        assert config["quality"] == "standard"
        assert config["personaId"] == DEFAULT_PERSONA_CONFIG["personaId"]

    def test_non_object_file_rejected(self, tmp_path):
        path = tmp_path / "persona.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError):
            load_persona_config(path)


def test_draw_detections_marks_frame():
    frame = np.zeros((120, 160, 3), dtype=np.uint8)
    annotated = draw_detections(frame, [person(0.87)])
    assert annotated is frame
    assert frame.any()
