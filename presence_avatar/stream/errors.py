"""
Client-side stream errors.
"""


class StreamError(Exception):
    """Base class for kiosk-side stream failures."""


class TokenFetchError(StreamError):
    """The broker did not return a stream token."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(StreamError):
    """The broker rejected the kiosk's credentials."""
