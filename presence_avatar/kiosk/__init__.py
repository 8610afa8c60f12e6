"""
Kiosk client: broker access, session orchestration and the runnable app.
"""

from .app import KioskApplication
from .client import BrokerClient, SessionCache
from .orchestrator import PresenceSessionOrchestrator
from .persona import DEFAULT_PERSONA_CONFIG, load_persona_config

__all__ = [
    "KioskApplication",
    "BrokerClient",
    "SessionCache",
    "PresenceSessionOrchestrator",
    "DEFAULT_PERSONA_CONFIG",
    "load_persona_config",
]
