"""
Listener invocation shared by the detector, controller and bridge.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger("avatar.core.callbacks")


async def notify(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    """Call a plain or coroutine listener; listener errors are logged."""
    if callback is None:
        return
    try:
        result = callback(*args)
        if asyncio.iscoroutine(result):
            await result
    except Exception as e:
        logger.error("Listener error in %s: %s", getattr(callback, "__name__", callback), e)
