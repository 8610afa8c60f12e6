"""
Avatar stream lifecycle: launch-attempt controller and SDK status bridge.
"""

from .bridge import StreamStatusBridge
from .controller import StreamSessionController, TokenProvider
from .errors import AuthenticationError, StreamError, TokenFetchError
from .microphone import MicrophoneInput
from .sdk import AvatarClient, AvatarClientFactory, MockAvatarClient, mock_client_factory

__all__ = [
    "StreamStatusBridge",
    "StreamSessionController",
    "TokenProvider",
    "AuthenticationError",
    "StreamError",
    "TokenFetchError",
    "MicrophoneInput",
    "AvatarClient",
    "AvatarClientFactory",
    "MockAvatarClient",
    "mock_client_factory",
]
