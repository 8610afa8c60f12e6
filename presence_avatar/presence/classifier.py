"""
Person classifier backed by Ultralytics YOLO.

The presence detector only depends on the PersonClassifier protocol;
YOLOClassifier is the shipped implementation.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

import numpy as np

from ..core.models import BoundingBox, Detection, DetectionSample

logger = logging.getLogger("avatar.presence.classifier")

# Lazy load ultralytics to avoid import overhead at startup
_YOLO = None


def _get_yolo_class():
    """Lazy load YOLO class."""
    global _YOLO
    if _YOLO is None:
        from ultralytics import YOLO
        _YOLO = YOLO
    return _YOLO


@runtime_checkable
class PersonClassifier(Protocol):
    """Protocol for per-frame classifiers."""

    def load(self) -> bool:
        """Load model weights. Returns False on failure."""
        ...

    async def sample(self, frame: np.ndarray) -> DetectionSample:
        """Classify one frame."""
        ...


class YOLOClassifier:
    """
    Frame classifier using YOLOv8.

    Returns every detection above a permissive floor; the presence
    detector applies its own label and confidence filter.
    """

    def __init__(
        self,
        model_name: str = "yolov8n.pt",
        device: str = "auto",
        min_confidence: float = 0.25,
    ):
        """
        Initialize YOLO classifier.

        Args:
            model_name: YOLO model name (e.g., yolov8n.pt, yolov8s.pt)
            device: Device to run on (auto, cuda, cpu)
            min_confidence: Inference confidence floor
        """
        self.model_name = model_name
        self.device = device
        self.min_confidence = min_confidence

        self._model = None
        self._loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._loaded

    def load(self) -> bool:
        """
        Load the YOLO model.

        Returns:
            True if loaded successfully
        """
        if self._loaded:
            return True

        try:
            YOLO = _get_yolo_class()

            device = self.device
            if device == "auto":
                import torch
                device = "cuda" if torch.cuda.is_available() else "cpu"

            logger.info("Loading YOLO model %s on %s...", self.model_name, device)
            self._model = YOLO(self.model_name)
            self._model.to(device)

            self._loaded = True
            logger.info("YOLO model loaded successfully")
            return True

        except Exception as e:
            logger.error("Failed to load YOLO model: %s", e)
            return False

    def unload(self) -> None:
        """Unload the model to free memory."""
        if self._model is not None:
            self._model = None
            self._loaded = False
            logger.info("YOLO model unloaded")

    async def sample(self, frame: np.ndarray) -> DetectionSample:
        """Run inference on a frame in a worker thread."""
        if not self._loaded and not self.load():
            raise RuntimeError(f"YOLO model {self.model_name} not loaded")

        results = await asyncio.to_thread(
            self._model.predict,
            frame,
            conf=self.min_confidence,
            verbose=False,
        )
        return DetectionSample(
            timestamp=datetime.now(),
            detections=tuple(self._parse_results(results)),
        )

    @staticmethod
    def _parse_results(results: Any) -> list[Detection]:
        """Parse YOLO results into Detection objects."""
        detections = []
        for result in results:
            boxes = result.boxes
            if boxes is None:
                continue

            names: Optional[dict] = getattr(result, "names", None) or {}
            for i in range(len(boxes)):
                class_id = int(boxes.cls[i].item())
                x1, y1, x2, y2 = boxes.xyxy[i].tolist()
                detections.append(
                    Detection(
                        label=names.get(class_id, f"class_{class_id}"),
                        confidence=float(boxes.conf[i].item()),
                        bbox=BoundingBox.from_xyxy(x1, y1, x2, y2),
                    )
                )
        return detections
