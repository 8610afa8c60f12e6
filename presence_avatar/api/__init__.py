"""
HTTP API for the session credential broker.
"""

from .main import app, create_app, validate_startup

__all__ = ["app", "create_app", "validate_startup"]
