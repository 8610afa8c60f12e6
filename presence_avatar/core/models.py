"""
Data models shared by the presence detector and the stream controller.

Detection models are produced once per sampling tick and never persisted.
Launch and stream models describe the kiosk's view of the avatar session.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .constants import ConnectionStatus, LaunchOutcome


@dataclass(frozen=True)
class BoundingBox:
    """Bounding box in pixel coordinates (top-left origin)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        """Get area of bounding box."""
        return self.width * self.height

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "x": round(self.x, 1),
            "y": round(self.y, 1),
            "width": round(self.width, 1),
            "height": round(self.height, 1),
        }

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "BoundingBox":
        """Create from corner coordinates."""
        return cls(x=x1, y=y1, width=x2 - x1, height=y2 - y1)


@dataclass(frozen=True)
class Detection:
    """A single labelled classifier output."""

    label: str
    confidence: float
    bbox: BoundingBox

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "confidence": round(self.confidence, 3),
            "bbox": self.bbox.to_dict(),
        }


@dataclass(frozen=True)
class DetectionSample:
    """All detections produced for one frame."""

    timestamp: datetime
    detections: tuple[Detection, ...] = ()

    def qualifying(self, label: str, threshold: float) -> list[Detection]:
        """Detections of `label` at or above `threshold`."""
        return [
            d for d in self.detections
            if d.label == label and d.confidence >= threshold
        ]


@dataclass
class PresenceState:
    """Debounced presence state owned by the presence detector."""

    is_present: bool = False
    consecutive_misses: int = 0

    def reset(self) -> None:
        self.is_present = False
        self.consecutive_misses = 0


@dataclass
class LaunchAttempt:
    """One run of the session start sequence."""

    id: int
    outcome: LaunchOutcome = LaunchOutcome.PENDING
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class StreamSession:
    """Snapshot of the live avatar stream owned by the controller."""

    attempt_id: int
    token: str
    connection_status: ConnectionStatus


@dataclass(frozen=True)
class StreamStatusEvent:
    """Status change reported by the stream bridge for one launch attempt."""

    attempt_id: int
    status: ConnectionStatus
    error: Optional[str] = None
