"""
Persona configuration sent with every stream token request.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger("avatar.kiosk.persona")

DEFAULT_PERSONA_CONFIG: dict[str, Any] = {
    "personaId": "fff175f8-0170-453b-be4b-360730a0f328",
    "voiceId": "5d67e1e3-8375-4185-ac84-b05464255d9c",
    "systemPrompt": "You are helpful assistant.",
    "quality": "high",
    "videoQuality": "hd",
    "videoBitrate": 5_000_000,
    "audioBitrate": 192_000,
    "preferredVideoCodec": "h264",
    "adaptiveStreaming": False,
}


def load_persona_config(path: Optional[Path] = None) -> dict[str, Any]:
    """
    Load a persona configuration.

    Keys in the JSON file override the defaults. Without a path the
    defaults are returned.

    Raises:
        ValueError: file is not a JSON object
        OSError: file cannot be read
    """
    config = dict(DEFAULT_PERSONA_CONFIG)
    if path is None:
        return config

    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError(f"Persona file {path} must contain a JSON object")

    config.update(data)
    logger.info("Loaded persona %s from %s", config.get("personaId"), path)
    return config
