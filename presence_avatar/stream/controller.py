"""
Stream session controller.

Single source of truth for "do we hold a stream token and is the avatar
stream up". Every start request is a numbered launch attempt; an
asynchronous result is only applied while its attempt id is still the
latest one issued. A stop simply issues a new id, so a slow token fetch
for an abandoned launch can never bring the session back.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..core.callbacks import notify
from ..core.constants import ConnectionStatus, LaunchOutcome
from ..core.models import LaunchAttempt, StreamSession

logger = logging.getLogger("avatar.stream.controller")

TokenProvider = Callable[[dict[str, Any]], Awaitable[str]]


class StreamSessionController:
    """
    Sequences token acquisition for the avatar stream.

    Callbacks (plain or coroutine functions):
    - on_token(attempt, token): the current attempt received its token
    - on_error(attempt, message): the current attempt failed
    """

    def __init__(
        self,
        token_provider: TokenProvider,
        on_token: Optional[Callable[[LaunchAttempt, str], Any]] = None,
        on_error: Optional[Callable[[LaunchAttempt, str], Any]] = None,
    ):
        self._token_provider = token_provider
        self.on_token = on_token
        self.on_error = on_error

        self._active_attempt_id = 0
        self._last_attempt: Optional[LaunchAttempt] = None
        self._token: Optional[str] = None
        self._status = ConnectionStatus.DISCONNECTED
        self._error: Optional[str] = None
        self._pending = False
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_attempt_id(self) -> int:
        return self._active_attempt_id

    @property
    def last_attempt(self) -> Optional[LaunchAttempt]:
        return self._last_attempt

    @property
    def current_status(self) -> ConnectionStatus:
        return self._status

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def is_pending(self) -> bool:
        """True while the current attempt waits for its token."""
        return self._pending

    @property
    def session(self) -> Optional[StreamSession]:
        """Snapshot of the current stream session, if a token is held."""
        if self._token is None:
            return None
        return StreamSession(
            attempt_id=self._active_attempt_id,
            token=self._token,
            connection_status=self._status,
        )

    def is_current(self, attempt_id: int) -> bool:
        return attempt_id == self._active_attempt_id

    def request_start(self, persona_config: dict[str, Any]) -> LaunchAttempt:
        """
        Begin a new launch attempt.

        State changes happen before this returns; the token fetch runs as a
        background task. Callers decide whether a start is redundant.
        """
        self._active_attempt_id += 1
        attempt = LaunchAttempt(id=self._active_attempt_id)
        self._last_attempt = attempt

        self._error = None
        self._token = None
        self._pending = True
        self._status = ConnectionStatus.CONNECTING
        logger.info("Launch attempt %d started", attempt.id)

        task = asyncio.create_task(self._launch(attempt, persona_config))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return attempt

    def request_stop(self) -> None:
        """Abandon any in-flight attempt and drop the current session."""
        self._active_attempt_id += 1
        self._token = None
        self._status = ConnectionStatus.DISCONNECTED
        self._error = None
        self._pending = False
        logger.info("Session stopped (active attempt id now %d)", self._active_attempt_id)

    async def _launch(self, attempt: LaunchAttempt, persona_config: dict[str, Any]) -> None:
        try:
            token = await self._token_provider(persona_config)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self.is_current(attempt.id):
                attempt.outcome = LaunchOutcome.SUPERSEDED
                logger.debug("Discarded failure of superseded attempt %d: %s", attempt.id, e)
                return

            message = str(e) or "Unknown error"
            attempt.outcome = LaunchOutcome.FAILED
            attempt.error = message
            self._error = message
            self._token = None
            self._pending = False
            self._status = ConnectionStatus.DISCONNECTED
            logger.error("Failed to start avatar session: %s", message)
            await notify(self.on_error, attempt, message)
            return

        if not self.is_current(attempt.id):
            attempt.outcome = LaunchOutcome.SUPERSEDED
            logger.debug("Discarded token of superseded attempt %d", attempt.id)
            return

        attempt.outcome = LaunchOutcome.TOKEN_RECEIVED
        self._token = token
        self._pending = False
        # Token held; still connecting until the stream bridge reports in
        logger.info("Attempt %d received stream token", attempt.id)
        await notify(self.on_token, attempt, token)

    def apply_stream_status(
        self,
        attempt_id: int,
        status: ConnectionStatus,
        error: Optional[str] = None,
    ) -> bool:
        """
        Apply a stream bridge status for the given attempt.

        Returns:
            True if applied, False if the attempt is stale or holds no token
        """
        if not self.is_current(attempt_id):
            logger.debug("Ignored %s from stale attempt %d", status.value, attempt_id)
            return False
        if self._token is None and status != ConnectionStatus.DISCONNECTED:
            logger.debug("Ignored %s with no active session", status.value)
            return False

        self._status = status
        if status == ConnectionStatus.ERRORED:
            self._error = error or "Stream error"
            self._token = None
        elif status == ConnectionStatus.DISCONNECTED:
            self._token = None
        return True

    async def wait_idle(self) -> None:
        """Wait for every in-flight token fetch to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
