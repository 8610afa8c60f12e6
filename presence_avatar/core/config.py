"""
Configuration management for Presence Avatar.

Uses Pydantic Settings for environment variable support.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("avatar.config")

# Insecure shared secret used only when explicitly allowed
DEFAULT_ACCESS_PASSWORD = "changeme"


class ServerConfig(BaseSettings):
    """Broker server configuration."""

    model_config = SettingsConfigDict(env_prefix="AVATAR_SERVER_", populate_by_name=True)

    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(
        default=5000,
        validation_alias=AliasChoices("AVATAR_SERVER_PORT", "PORT"),
        description="Server port",
    )
    debug: bool = Field(default=False, description="Debug mode (auto-reload)")
    production: bool = Field(default=False, description="Add Secure flag to cookies")


class BrokerConfig(BaseSettings):
    """Session credential broker configuration."""

    model_config = SettingsConfigDict(env_prefix="AVATAR_BROKER_", populate_by_name=True)

    anam_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AVATAR_BROKER_ANAM_API_KEY", "ANAM_API_KEY"),
        description="Upstream avatar provider API key (required)",
    )
    upstream_url: str = Field(
        default="https://api.anam.ai/v1/auth/session-token",
        description="Upstream session-token endpoint",
    )
    access_password: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("AVATAR_BROKER_ACCESS_PASSWORD", "ACCESS_PASSWORD"),
        description="Shared secret for login and direct API access",
    )
    allow_default_password: bool = Field(
        default=False,
        description="Fall back to the built-in password when none is configured",
    )
    session_ttl_seconds: int = Field(default=24 * 60 * 60, description="Sliding session TTL")
    cookie_name: str = Field(default="session", description="Session cookie name")
    request_timeout: float = Field(default=15.0, description="Upstream request timeout")

    def resolve_access_password(self) -> Optional[str]:
        """Return the effective shared secret, or None if startup must fail."""
        if self.access_password:
            return self.access_password
        if self.allow_default_password:
            logger.warning(
                "No access password configured; using the built-in default. "
                "Set ACCESS_PASSWORD before exposing this server."
            )
            return DEFAULT_ACCESS_PASSWORD
        return None


class DetectionConfig(BaseSettings):
    """Presence detection configuration."""

    model_config = SettingsConfigDict(env_prefix="AVATAR_DETECTION_")

    model: str = Field(default="yolov8n.pt", description="YOLO model name")
    device: str = Field(default="auto", description="Device: auto, cuda, cpu")
    confidence_threshold: float = Field(default=0.6, description="Min person confidence 0-1")
    interval: float = Field(default=1.0, description="Seconds between samples")
    miss_threshold: int = Field(default=3, description="Consecutive misses before loss")
    target_label: str = Field(default="person", description="Class that counts as presence")
    camera_index: int = Field(default=0, description="Video device index")
    width: int = Field(default=640, description="Capture width")
    height: int = Field(default=480, description="Capture height")
    preview: bool = Field(default=False, description="Show annotated preview window")


class KioskConfig(BaseSettings):
    """Kiosk client configuration."""

    model_config = SettingsConfigDict(env_prefix="AVATAR_KIOSK_")

    base_url: str = Field(default="http://localhost:5000", description="Broker base URL")
    username: Optional[str] = Field(default=None, description="Login username")
    password: Optional[str] = Field(default=None, description="Shared secret")
    session_file: Path = Field(
        default=Path.home() / ".cache" / "presence_avatar" / "session_id",
        description="Cached broker session id",
    )
    request_timeout: float = Field(default=15.0, description="Token fetch timeout")
    video_sink: str = Field(default="avatar-video", description="Avatar video sink id")
    microphone_enabled: bool = Field(default=True, description="Stream microphone input")
    mock_connect_delay: float = Field(default=0.5, description="Mock SDK connect delay")
    persona_file: Optional[Path] = Field(
        default=None,
        description="JSON file overriding the built-in persona configuration",
    )


class Settings(BaseSettings):
    """Main settings aggregator."""

    model_config = SettingsConfigDict(env_prefix="AVATAR_", env_file=".env", extra="ignore")

    # Sub-configurations
    server: ServerConfig = Field(default_factory=ServerConfig)
    broker: BrokerConfig = Field(default_factory=BrokerConfig)
    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    kiosk: KioskConfig = Field(default_factory=KioskConfig)

    # Logging
    log_level: str = Field(default="INFO", description="Log level")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
