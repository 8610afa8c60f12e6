"""
Pytest fixtures for Presence Avatar tests.

Provides fixtures for:
- Broker settings and a FastAPI app with a fake upstream
- Detection samples and fake video sources
"""

from datetime import datetime
from typing import Any, Optional

import numpy as np
import pytest

from presence_avatar.broker import InvalidPersonaConfigError, SessionStore
from presence_avatar.core.config import BrokerConfig, ServerConfig, Settings
from presence_avatar.core.models import BoundingBox, Detection, DetectionSample

TEST_PASSWORD = "open-sesame"
TEST_API_KEY = "test-anam-key"


class FakeTokenClient:
    """Stands in for StreamTokenClient; records exchanges."""

    def __init__(self, token: str = "stream-token-1", error: Optional[Exception] = None):
        self.token = token
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    async def exchange(self, persona_config):
        if not persona_config:
            raise InvalidPersonaConfigError()
        self.calls.append(persona_config)
        if self.error is not None:
            raise self.error
        return self.token

    async def close(self):
        self.closed = True


class FakeVideoSource:
    """In-memory video source returning a blank frame.

    `frames` queues read results ahead of the blank frame: None for a
    dropped frame, an Exception instance to raise.
    """

    def __init__(self, open_error: Optional[Exception] = None, frames=None):
        self.open_error = open_error
        self.frames = list(frames or [])
        self.opened = False
        self.released = False
        self.reads = 0

    @property
    def is_ready(self) -> bool:
        return self.opened and not self.released

    async def open(self) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened = True

    async def read(self):
        self.reads += 1
        if self.frames:
            item = self.frames.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return np.zeros((48, 64, 3), dtype=np.uint8)

    async def release(self) -> None:
        self.released = True


class FakeClassifier:
    """Classifier returning queued samples, then empty ones."""

    def __init__(self, samples=None, loads: bool = True):
        self.samples = list(samples or [])
        self.loads = loads

    def load(self) -> bool:
        return self.loads

    async def sample(self, frame):
        if self.samples:
            item = self.samples.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        return DetectionSample(timestamp=datetime.now(), detections=())


def person(confidence: float, label: str = "person") -> Detection:
    return Detection(label=label, confidence=confidence, bbox=BoundingBox(10, 10, 20, 40))


def sample(*detections: Detection) -> DetectionSample:
    return DetectionSample(timestamp=datetime.now(), detections=tuple(detections))


@pytest.fixture
def broker_settings() -> Settings:
    """Settings with an API key and shared secret configured."""
    return Settings(
        server=ServerConfig(production=False),
        broker=BrokerConfig(anam_api_key=TEST_API_KEY, access_password=TEST_PASSWORD),
    )


@pytest.fixture
def token_client() -> FakeTokenClient:
    return FakeTokenClient()


@pytest.fixture
def session_store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def api_client(broker_settings, session_store, token_client):
    """TestClient over an app with the fake upstream, lifespan included."""
    from fastapi.testclient import TestClient

    from presence_avatar.api.main import create_app

    app = create_app(broker_settings, session_store=session_store, token_client=token_client)
    with TestClient(app) as client:
        yield client

