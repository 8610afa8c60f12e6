"""
Core module - Configuration, models, and constants.
"""

from .config import settings, Settings, get_settings
from .constants import (
    CameraCondition,
    ConnectionStatus,
    LaunchOutcome,
    OrchestratorState,
)
from .models import (
    BoundingBox,
    Detection,
    DetectionSample,
    LaunchAttempt,
    PresenceState,
    StreamSession,
    StreamStatusEvent,
)

__all__ = [
    "settings",
    "Settings",
    "get_settings",
    "CameraCondition",
    "ConnectionStatus",
    "LaunchOutcome",
    "OrchestratorState",
    # Models
    "BoundingBox",
    "Detection",
    "DetectionSample",
    "LaunchAttempt",
    "PresenceState",
    "StreamSession",
    "StreamStatusEvent",
]
