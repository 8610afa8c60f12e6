"""
Entry point for the Presence Avatar kiosk.

Usage: python -m presence_avatar.kiosk [--preview] [--logout]
"""

import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from ..core.config import settings
from .app import main


def setup_logging() -> None:
    """Configure logging."""
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("ultralytics").setLevel(logging.WARNING)


def cli() -> int:
    """Console script entry: configure logging, then run the kiosk."""
    setup_logging()
    return main()


if __name__ == "__main__":
    sys.exit(cli())
