"""
Webcam video source using OpenCV.

Captures frames on demand from a local USB/built-in webcam for the
presence detector's sampling loop.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

import cv2
import numpy as np

logger = logging.getLogger("avatar.presence.camera")


class CameraError(Exception):
    """Camera could not be acquired."""


class CameraPermissionError(CameraError):
    """Access to the camera was denied."""


class CameraUnavailableError(CameraError):
    """No usable camera at the configured index."""


@runtime_checkable
class VideoSource(Protocol):
    """Protocol for frame sources sampled by the presence detector."""

    @property
    def is_ready(self) -> bool:
        """True once the source can produce a current frame."""
        ...

    async def open(self) -> None:
        """Acquire the device. Raises CameraError subclasses."""
        ...

    async def read(self) -> Optional[np.ndarray]:
        """Return the current frame, or None if none is available."""
        ...

    async def release(self) -> None:
        """Release the device."""
        ...


class WebcamVideoSource:
    """Webcam source backed by cv2.VideoCapture."""

    def __init__(
        self,
        device_index: int = 0,
        width: int = 640,
        height: int = 480,
    ):
        """
        Initialize webcam source.

        Args:
            device_index: Video device index (0 = /dev/video0, ...)
            width: Capture width
            height: Capture height
        """
        self.device_index = device_index
        self.width = width
        self.height = height
        self._capture: Optional[cv2.VideoCapture] = None

    @property
    def device_path(self) -> Path:
        return Path(f"/dev/video{self.device_index}")

    @property
    def is_ready(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    async def open(self) -> None:
        """Open the webcam, distinguishing denied from unavailable."""
        if self.is_ready:
            return

        path = self.device_path
        if path.exists() and not os.access(path, os.R_OK):
            logger.error("Permission denied for %s", path)
            raise CameraPermissionError(f"Permission denied for {path}")

        try:
            capture = await asyncio.to_thread(self._create_capture)
        except PermissionError as e:
            raise CameraPermissionError(str(e)) from e
        except cv2.error as e:
            raise CameraUnavailableError(str(e)) from e

        if not capture.isOpened():
            await asyncio.to_thread(capture.release)
            logger.error("Failed to open webcam at index %d", self.device_index)
            raise CameraUnavailableError(f"Cannot open webcam {self.device_index}")

        self._capture = capture
        logger.info(
            "Opened webcam %d (%dx%d)", self.device_index, self.width, self.height
        )

    def _create_capture(self) -> cv2.VideoCapture:
        """Create OpenCV capture (runs in thread)."""
        cap = cv2.VideoCapture(self.device_index)
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        # Keep only the newest frame; samples are a second apart
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        return cap

    async def read(self) -> Optional[np.ndarray]:
        if self._capture is None:
            return None
        ret, frame = await asyncio.to_thread(self._capture.read)
        if not ret:
            return None
        return frame

    async def release(self) -> None:
        if self._capture is not None:
            capture, self._capture = self._capture, None
            await asyncio.to_thread(capture.release)
            logger.info("Released webcam %d", self.device_index)
