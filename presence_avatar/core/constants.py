"""
Constants and enums for Presence Avatar.
"""

from enum import Enum


class ConnectionStatus(str, Enum):
    """Avatar stream connection status."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERRORED = "errored"


class LaunchOutcome(str, Enum):
    """Outcome of a single launch attempt."""

    PENDING = "pending"
    TOKEN_RECEIVED = "token-received"
    SUPERSEDED = "superseded"
    FAILED = "failed"


class CameraCondition(str, Enum):
    """Camera acquisition condition reported by the presence detector."""

    IDLE = "idle"
    READY = "ready"
    DENIED = "denied"
    UNAVAILABLE = "unavailable"


class OrchestratorState(str, Enum):
    """Kiosk session lifecycle states."""

    IDLE = "idle"
    LAUNCHING = "launching"
    ACTIVE = "active"
    CLOSING = "closing"


# Presence detector status strings
STATUS_INITIALIZING = "Initializing..."
STATUS_LOADING_MODEL = "Loading AI model..."
STATUS_STARTING_CAMERA = "Starting camera..."
STATUS_SCANNING = "Scanning for people..."
STATUS_PERSON_DETECTED = "Person detected"
STATUS_PERSON_LOST = "Person lost"
STATUS_CAMERA_DENIED = "Camera access denied"
STATUS_CAMERA_UNAVAILABLE = "Camera unavailable"
STATUS_DETECTION_ERROR = "Detection error"


def searching_status(misses: int) -> str:
    """Status shown while a present person is missing from frame."""
    return f"Searching... ({misses})"


# Avatar SDK lifecycle events
EVENT_VIDEO_PLAY_STARTED = "VIDEO_PLAY_STARTED"
EVENT_CONNECTION_CLOSED = "CONNECTION_CLOSED"
