"""
Debounced person-presence detector.

Samples a video source on a fixed period, keeps detections of the target
class above a confidence threshold, and emits edge-triggered
appeared/lost events. Loss is only declared after several consecutive
misses so that detector flicker does not end a session.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Optional

import numpy as np

from ..core.callbacks import notify
from ..core.constants import (
    CameraCondition,
    STATUS_CAMERA_DENIED,
    STATUS_CAMERA_UNAVAILABLE,
    STATUS_DETECTION_ERROR,
    STATUS_INITIALIZING,
    STATUS_LOADING_MODEL,
    STATUS_PERSON_DETECTED,
    STATUS_PERSON_LOST,
    STATUS_SCANNING,
    STATUS_STARTING_CAMERA,
    searching_status,
)
from ..core.models import Detection, DetectionSample, PresenceState
from .camera import CameraError, CameraPermissionError, VideoSource
from .classifier import PersonClassifier

logger = logging.getLogger("avatar.presence.detector")

DETECTION_INTERVAL_SECONDS = 1.0
PERSON_CONFIDENCE_THRESHOLD = 0.6
PERSON_MISS_THRESHOLD = 3


class PresenceEvent(str, Enum):
    """Edge-triggered presence transitions."""

    APPEARED = "person_appeared"
    LOST = "person_lost"


class PresenceDetector:
    """
    Presence detector over a classifier and a video source.

    Callbacks may be plain functions or coroutine functions:
    - on_appeared(): a person entered the frame
    - on_lost(): the person has been missing for miss_threshold samples
    - on_status(status): human-readable status changed
    - on_sample(frame, detections): qualifying detections for each frame
    """

    def __init__(
        self,
        classifier: PersonClassifier,
        on_appeared: Optional[Callable[[], Any]] = None,
        on_lost: Optional[Callable[[], Any]] = None,
        on_status: Optional[Callable[[str], Any]] = None,
        on_sample: Optional[Callable[[np.ndarray, list[Detection]], Any]] = None,
        interval: float = DETECTION_INTERVAL_SECONDS,
        confidence_threshold: float = PERSON_CONFIDENCE_THRESHOLD,
        miss_threshold: int = PERSON_MISS_THRESHOLD,
        target_label: str = "person",
    ):
        if miss_threshold < 1:
            raise ValueError("miss_threshold must be at least 1")

        self._classifier = classifier
        self.on_appeared = on_appeared
        self.on_lost = on_lost
        self.on_status = on_status
        self.on_sample = on_sample

        self.interval = interval
        self.confidence_threshold = confidence_threshold
        self.miss_threshold = miss_threshold
        self.target_label = target_label

        self._state = PresenceState()
        self._status = STATUS_INITIALIZING
        self._condition = CameraCondition.IDLE
        self._source: Optional[VideoSource] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def state(self) -> PresenceState:
        return self._state

    @property
    def status(self) -> str:
        return self._status

    @property
    def condition(self) -> CameraCondition:
        """Camera acquisition condition from the last start()."""
        return self._condition

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self, source: VideoSource) -> bool:
        """
        Load the classifier, open the camera and start sampling.

        Returns:
            True if sampling started. On False, `condition` tells a denied
            camera apart from an unavailable one.
        """
        if self._running:
            return True

        await self._set_status(STATUS_LOADING_MODEL)
        loaded = await asyncio.to_thread(self._classifier.load)
        if not loaded:
            logger.error("Person detection model unavailable")
            self._condition = CameraCondition.UNAVAILABLE
            await self._set_status(STATUS_CAMERA_UNAVAILABLE)
            return False

        await self._set_status(STATUS_STARTING_CAMERA)
        try:
            await source.open()
        except CameraPermissionError as e:
            logger.error("Camera access denied: %s", e)
            self._condition = CameraCondition.DENIED
            await self._set_status(STATUS_CAMERA_DENIED)
            return False
        except CameraError as e:
            logger.error("Camera unavailable: %s", e)
            self._condition = CameraCondition.UNAVAILABLE
            await self._set_status(STATUS_CAMERA_UNAVAILABLE)
            return False

        self._source = source
        self._condition = CameraCondition.READY
        self._running = True
        await self._set_status(STATUS_SCANNING)
        self._task = asyncio.create_task(self._sampling_loop())
        logger.info(
            "Presence detection started (interval=%.1fs, threshold=%.2f, misses=%d)",
            self.interval,
            self.confidence_threshold,
            self.miss_threshold,
        )
        return True

    async def stop(self) -> None:
        """Stop sampling, release the camera and reset presence state."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._source is not None:
            source, self._source = self._source, None
            try:
                await source.release()
            except Exception as e:
                logger.warning("Error releasing camera: %s", e)

        self._state.reset()
        self._condition = CameraCondition.IDLE
        logger.info("Presence detection stopped")

    async def _sampling_loop(self) -> None:
        """Fixed-period sampling loop."""
        while self._running:
            try:
                await asyncio.sleep(self.interval)
                await self.tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Sampling error: %s", e)

    async def tick(self) -> Optional[PresenceEvent]:
        """Run one sampling step against the current source."""
        source = self._source
        if source is None:
            return None

        frame = None
        if source.is_ready:
            try:
                frame = await source.read()
            except Exception as e:
                logger.warning("Camera read failed: %s", e)
        if frame is None:
            return await self._camera_failure()

        try:
            sample = await self._classifier.sample(frame)
        except Exception as e:
            logger.error("Detection error: %s", e)
            await self._set_status(STATUS_DETECTION_ERROR)
            return None

        return await self.process_sample(sample, frame)

    async def _camera_failure(self) -> Optional[PresenceEvent]:
        """No frame this period; a present person counts it as a miss."""
        if self._status != STATUS_CAMERA_UNAVAILABLE:
            logger.warning("No frame from camera")
        if not self._state.is_present:
            await self._set_status(STATUS_CAMERA_UNAVAILABLE)
            return None
        return await self._register_miss(STATUS_CAMERA_UNAVAILABLE)

    async def process_sample(
        self,
        sample: DetectionSample,
        frame: Optional[np.ndarray] = None,
    ) -> Optional[PresenceEvent]:
        """
        Apply one detection sample to the presence state.

        Returns:
            The event fired for this sample, if any
        """
        qualifying = sample.qualifying(self.target_label, self.confidence_threshold)
        if frame is not None:
            await notify(self.on_sample, frame, qualifying)

        state = self._state
        if qualifying:
            state.consecutive_misses = 0
            await self._set_status(STATUS_PERSON_DETECTED)
            if not state.is_present:
                state.is_present = True
                logger.info("Person appeared (confidence=%.2f)", max(d.confidence for d in qualifying))
                await notify(self.on_appeared)
                return PresenceEvent.APPEARED
            return None

        if not state.is_present:
            await self._set_status(STATUS_SCANNING)
            return None

        return await self._register_miss()

    async def _register_miss(self, status: Optional[str] = None) -> Optional[PresenceEvent]:
        state = self._state
        state.consecutive_misses += 1
        await self._set_status(status or searching_status(state.consecutive_misses))
        if state.consecutive_misses >= self.miss_threshold:
            state.is_present = False
            state.consecutive_misses = 0
            await self._set_status(STATUS_PERSON_LOST)
            logger.info("Person lost after %d missed samples", self.miss_threshold)
            await notify(self.on_lost)
            return PresenceEvent.LOST
        return None

    async def _set_status(self, status: str) -> None:
        if status == self._status:
            return
        self._status = status
        logger.debug("Detection status: %s", status)
        await notify(self.on_status, status)
