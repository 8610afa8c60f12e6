"""
Camera-based presence detection.

    Webcam ──► YOLO classifier ──► PresenceDetector ──► on_appeared / on_lost
                                        │
                                        └──► on_status / on_sample (preview)
"""

from .camera import (
    CameraError,
    CameraPermissionError,
    CameraUnavailableError,
    VideoSource,
    WebcamVideoSource,
)
from .classifier import PersonClassifier, YOLOClassifier
from .detector import (
    DETECTION_INTERVAL_SECONDS,
    PERSON_CONFIDENCE_THRESHOLD,
    PERSON_MISS_THRESHOLD,
    PresenceDetector,
    PresenceEvent,
)
from .overlay import draw_detections

__all__ = [
    # Camera
    "CameraError",
    "CameraPermissionError",
    "CameraUnavailableError",
    "VideoSource",
    "WebcamVideoSource",
    # Classifier
    "PersonClassifier",
    "YOLOClassifier",
    # Detector
    "DETECTION_INTERVAL_SECONDS",
    "PERSON_CONFIDENCE_THRESHOLD",
    "PERSON_MISS_THRESHOLD",
    "PresenceDetector",
    "PresenceEvent",
    "draw_detections",
]
