"""
Entry point for the Presence Avatar broker server.

Usage: python -m presence_avatar
"""

import logging
import sys

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from .broker import ConfigurationError
from .core.config import settings


def setup_logging() -> None:
    """Configure logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main() -> int:
    """Run the broker server."""
    setup_logging()
    logger = logging.getLogger("avatar")

    from .api.main import validate_startup

    try:
        validate_startup(settings)
    except ConfigurationError as e:
        logger.error("Refusing to start: %s", e)
        return 1

    logger.info("Starting Presence Avatar broker")
    logger.info("Host: %s, Port: %d", settings.server.host, settings.server.port)

    try:
        uvicorn.run(
            "presence_avatar.api.main:app",
            host=settings.server.host,
            port=settings.server.port,
            reload=settings.server.debug,
            log_level="info",
        )
    except KeyboardInterrupt:
        logger.info("Shutting down")
    except Exception as e:
        logger.exception("Server error: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
