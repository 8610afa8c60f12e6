"""
Presence Avatar - presence-gated avatar streaming.

A kiosk client watches a webcam and opens an avatar stream while a person
is in frame; a small FastAPI broker hands out short-lived stream tokens
behind a session/shared-secret gate.

Architecture:
- core/: Configuration, constants and shared dataclasses
- presence/: Webcam source, YOLO classifier and debounced presence detector
- broker/: Server session store and upstream token exchange
- api/: FastAPI application and routes
- stream/: Launch-attempt controller and avatar SDK status bridge
- kiosk/: Orchestration root, broker HTTP client and the runnable kiosk app
"""

__version__ = "0.1.0"
