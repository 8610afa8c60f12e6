"""
Broker error hierarchy.

API routes map these onto HTTP status codes; nothing here is retried.
"""

from typing import Optional


class BrokerError(Exception):
    """Base class for broker failures."""


class InvalidPersonaConfigError(BrokerError, ValueError):
    """Persona configuration missing or empty."""

    def __init__(self, message: str = "personaConfig required"):
        super().__init__(message)


class UnauthorizedError(BrokerError):
    """Missing, invalid or expired credential."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class UpstreamError(BrokerError):
    """The avatar provider's token endpoint failed."""

    def __init__(self, status_code: int, body: str, message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Bad response: {status_code} {body}")


class ConfigurationError(BrokerError):
    """Required startup configuration is missing."""
