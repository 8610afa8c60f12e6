"""In-memory store for broker login sessions with sliding expiration."""

from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger("avatar.broker.store")

SESSION_TTL_SECONDS = 24 * 60 * 60
SESSION_ID_BYTES = 24


@dataclass
class ServerSession:
    """A login session record."""

    id: str
    expires_at: float
    username: Optional[str] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


class SessionStore:
    """Process-scoped session table.

    Every read-then-write (validate slides the expiry) runs under one lock so
    the store stays consistent when handlers run on uvicorn's threadpool.
    Nothing is persisted: a restart invalidates every session.
    """

    def __init__(
        self,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._sessions: Dict[str, ServerSession] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, username: Optional[str] = None) -> str:
        """Create a session and return its opaque id."""
        session_id = secrets.token_hex(SESSION_ID_BYTES)
        with self._lock:
            self._sessions[session_id] = ServerSession(
                id=session_id,
                expires_at=self._clock() + self._ttl,
                username=username,
            )
        logger.info("Created session for %s", username or "anonymous")
        return session_id

    def validate(self, session_id: Optional[str]) -> bool:
        """Return True and slide the expiry if the session is live.

        Expired sessions are purged on the check, so they never come back.
        """
        if not session_id:
            return False
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            now = self._clock()
            if session.is_expired(now):
                del self._sessions[session_id]
                logger.debug("Purged expired session")
                return False
            session.expires_at = now + self._ttl
            return True

    def get(self, session_id: Optional[str]) -> Optional[ServerSession]:
        """Return a live session without renewing it."""
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.is_expired(self._clock()):
                return None
            return session

    def delete(self, session_id: Optional[str]) -> bool:
        """Remove a session. Returns True if one was removed."""
        if not session_id:
            return False
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def purge_expired(self) -> int:
        """Drop every expired session and return how many were removed."""
        with self._lock:
            now = self._clock()
            expired = [sid for sid, s in self._sessions.items() if s.is_expired(now)]
            for sid in expired:
                del self._sessions[sid]
        if expired:
            logger.info("Purged %d expired sessions", len(expired))
        return len(expired)

    def clear(self) -> None:
        """Drop all sessions (shutdown)."""
        with self._lock:
            self._sessions.clear()
