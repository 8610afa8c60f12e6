"""
Session credential broker.

Issues opaque login sessions with sliding expiry and exchanges persona
configurations for stream tokens with the upstream avatar provider.
"""

from .errors import (
    BrokerError,
    ConfigurationError,
    InvalidPersonaConfigError,
    UnauthorizedError,
    UpstreamError,
)
from .store import ServerSession, SessionStore, SESSION_TTL_SECONDS
from .upstream import StreamTokenClient

__all__ = [
    "BrokerError",
    "ConfigurationError",
    "InvalidPersonaConfigError",
    "UnauthorizedError",
    "UpstreamError",
    "ServerSession",
    "SessionStore",
    "SESSION_TTL_SECONDS",
    "StreamTokenClient",
]
