"""
Presence Avatar kiosk - main entry point for the camera client.

Runs the presence-gated avatar session with:
- Broker login and session restore
- Webcam presence detection
- Avatar stream launch and teardown
- Graceful shutdown
"""

import asyncio
import logging
import signal
from typing import Any, Optional

import cv2
import httpx
import numpy as np

from ..core.config import Settings, settings as default_settings
from ..core.constants import CameraCondition
from ..core.models import Detection
from ..presence.camera import VideoSource, WebcamVideoSource
from ..presence.classifier import PersonClassifier, YOLOClassifier
from ..presence.detector import PresenceDetector
from ..presence.overlay import draw_detections
from ..stream.bridge import StreamStatusBridge
from ..stream.controller import StreamSessionController
from ..stream.errors import AuthenticationError
from ..stream.microphone import MicrophoneInput
from ..stream.sdk import AvatarClientFactory, mock_client_factory
from .client import BrokerClient, SessionCache
from .orchestrator import PresenceSessionOrchestrator
from .persona import load_persona_config

logger = logging.getLogger("avatar.kiosk.app")

PREVIEW_WINDOW = "Presence Avatar"


class KioskApplication:
    """
    Kiosk client application.

    Manages:
    - Broker authentication
    - Presence detector and camera
    - Stream controller, bridge and orchestrator
    - Graceful shutdown
    """

    def __init__(
        self,
        app_settings: Optional[Settings] = None,
        broker: Optional[BrokerClient] = None,
        video_source: Optional[VideoSource] = None,
        classifier: Optional[PersonClassifier] = None,
        client_factory: Optional[AvatarClientFactory] = None,
        preview: Optional[bool] = None,
    ):
        self._settings = app_settings or default_settings
        kiosk = self._settings.kiosk
        detection = self._settings.detection

        self._session_cache = SessionCache(kiosk.session_file)
        self._broker = broker or BrokerClient(
            kiosk.base_url,
            password=kiosk.password,
            timeout=kiosk.request_timeout,
        )
        self._video_source = video_source or WebcamVideoSource(
            device_index=detection.camera_index,
            width=detection.width,
            height=detection.height,
        )
        self._classifier = classifier or YOLOClassifier(
            model_name=detection.model,
            device=detection.device,
        )
        self._client_factory = client_factory or mock_client_factory(kiosk.mock_connect_delay)
        self._preview = detection.preview if preview is None else preview

        self._detector: Optional[PresenceDetector] = None
        self._orchestrator: Optional[PresenceSessionOrchestrator] = None
        self._running = False
        self._shutdown_event = asyncio.Event()

    @property
    def detector(self) -> Optional[PresenceDetector]:
        return self._detector

    @property
    def orchestrator(self) -> Optional[PresenceSessionOrchestrator]:
        return self._orchestrator

    @property
    def is_running(self) -> bool:
        return self._running

    async def authenticate(self) -> bool:
        """
        Establish broker credentials.

        Tries the cached session id first, then a login with the configured
        password. Without either, requests carry the shared secret directly.
        """
        kiosk = self._settings.kiosk

        cached = self._session_cache.load()
        if cached:
            self._broker.session_id = cached
            authorized, username = await self._broker.auth_check()
            if authorized:
                logger.info("Restored broker session for %s", username or "anonymous")
                return True
            logger.info("Cached session rejected, clearing it")
            self._session_cache.clear()
            self._broker.session_id = None

        if kiosk.password:
            try:
                session_id = await self._broker.login(kiosk.username, kiosk.password)
            except AuthenticationError as e:
                logger.error("Broker login failed: %s", e)
                return False
            self._session_cache.save(session_id)
            return True

        logger.warning("No kiosk password configured; token requests may be rejected")
        return True

    async def startup(self) -> bool:
        """Initialize all components and start presence detection."""
        logger.info("Presence Avatar kiosk starting up...")
        logger.info("Broker: %s", self._settings.kiosk.base_url)

        try:
            if not await self.authenticate():
                return False
        except httpx.HTTPError as e:
            logger.error("Broker unreachable at %s: %s", self._settings.kiosk.base_url, e)
            return False

        kiosk = self._settings.kiosk
        detection = self._settings.detection

        try:
            persona_config = load_persona_config(kiosk.persona_file)
        except (OSError, ValueError) as e:
            logger.error("Could not load persona file %s: %s", kiosk.persona_file, e)
            return False

        microphone = MicrophoneInput() if kiosk.microphone_enabled else None
        controller = StreamSessionController(token_provider=self._broker.fetch_session_token)
        bridge = StreamStatusBridge(
            client_factory=self._client_factory,
            video_sink=kiosk.video_sink,
            microphone=microphone,
        )
        self._orchestrator = PresenceSessionOrchestrator(controller, bridge, persona_config)

        self._detector = PresenceDetector(
            self._classifier,
            on_appeared=self._orchestrator.on_person_appeared,
            on_lost=self._orchestrator.on_person_lost,
            on_status=self._on_detection_status,
            on_sample=self._on_sample if self._preview else None,
            interval=detection.interval,
            confidence_threshold=detection.confidence_threshold,
            miss_threshold=detection.miss_threshold,
            target_label=detection.target_label,
        )

        if not await self._detector.start(self._video_source):
            if self._detector.condition == CameraCondition.DENIED:
                logger.error("Camera access denied. Check permissions on the video device.")
            else:
                logger.error("Camera unavailable. Check that a webcam is connected.")
            return False

        logger.info("Presence Avatar kiosk ready")
        self._running = True
        return True

    async def shutdown(self) -> None:
        """Clean up all components."""
        logger.info("Presence Avatar kiosk shutting down...")
        self._running = False

        if self._detector:
            await self._detector.stop()

        if self._orchestrator:
            await self._orchestrator.shutdown()

        await self._broker.close()

        if self._preview:
            cv2.destroyAllWindows()

        logger.info("Presence Avatar kiosk stopped")

    def _on_detection_status(self, status: str) -> None:
        logger.info("Detection: %s", status)

    def _on_sample(self, frame: np.ndarray, detections: list[Detection]) -> None:
        """Show the annotated frame in the preview window."""
        cv2.imshow(PREVIEW_WINDOW, draw_detections(frame.copy(), detections))
        self.handle_key(cv2.waitKey(1) & 0xFF)

    def handle_key(self, key: int) -> None:
        """Preview keys: s starts a session, c closes it, q quits."""
        if key == ord("q"):
            logger.info("Quit requested from preview")
            self.request_shutdown()
            return

        orchestrator = self._orchestrator
        if orchestrator is None:
            return
        if key == ord("s"):
            logger.info("Session start requested from preview")
            orchestrator.launch()
        elif key == ord("c"):
            logger.info("Session close requested from preview")
            orchestrator.close_session()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_event.is_set()

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def run(self) -> int:
        """Run until SIGINT/SIGTERM."""
        try:
            if not await self.startup():
                return 1

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._shutdown_event.set)

            logger.info("Watching for visitors. Press Ctrl+C to stop.")
            if self._preview:
                logger.info("Preview keys: s = start session, c = close session, q = quit")
            await self._shutdown_event.wait()
            return 0
        finally:
            await self.shutdown()

    async def logout(self) -> int:
        """End the cached broker session."""
        session_id = self._session_cache.load()
        if session_id:
            self._broker.session_id = session_id
            await self._broker.logout()
        self._session_cache.clear()
        await self._broker.close()
        logger.info("Logged out")
        return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Presence Avatar kiosk")
    parser.add_argument(
        "--preview",
        action="store_true",
        help="Show the annotated camera preview window",
    )
    parser.add_argument(
        "--logout",
        action="store_true",
        help="End the cached broker session and exit",
    )
    args = parser.parse_args(argv)

    app_kwargs: dict[str, Any] = {}
    if args.preview:
        app_kwargs["preview"] = True

    async def _run() -> int:
        app = KioskApplication(**app_kwargs)
        if args.logout:
            return await app.logout()
        return await app.run()

    return asyncio.run(_run())
