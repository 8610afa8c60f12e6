"""
Authorization gate for protected broker routes.

A request is authorized by either a live login session (cookie or
`x-session-id` header, renewed on every check) or the shared secret
(`x-access-password` header or `password` query parameter).
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..broker import SessionStore, UnauthorizedError

logger = logging.getLogger("avatar.api.auth")

SESSION_HEADER = "x-session-id"
PASSWORD_HEADER = "x-access-password"
PASSWORD_QUERY = "password"


@dataclass
class AuthContext:
    """Who a request was authorized as."""

    method: str  # "session" or "password"
    session_id: Optional[str] = None
    username: Optional[str] = None


def get_session_store(request: Request) -> SessionStore:
    """Dependency: the process-scoped session store."""
    return request.app.state.session_store


def session_ids_from_request(request: Request) -> list[str]:
    """Presented session ids: the cookie first, then the header."""
    cookie_name = request.app.state.settings.broker.cookie_name
    ids = []
    for candidate in (request.cookies.get(cookie_name), request.headers.get(SESSION_HEADER)):
        if candidate and candidate not in ids:
            ids.append(candidate)
    return ids


def password_matches(presented: Optional[str], expected: Optional[str]) -> bool:
    """Constant-time shared-secret comparison."""
    if not presented or not expected:
        return False
    return secrets.compare_digest(presented.encode(), expected.encode())


def authenticate(request: Request) -> Optional[AuthContext]:
    """Return the auth context for a request, or None if unauthorized."""
    store = get_session_store(request)

    for session_id in session_ids_from_request(request):
        if not store.validate(session_id):
            continue
        session = store.get(session_id)
        return AuthContext(
            method="session",
            session_id=session_id,
            username=session.username if session else None,
        )

    presented = request.headers.get(PASSWORD_HEADER) or request.query_params.get(PASSWORD_QUERY)
    if password_matches(presented, request.app.state.access_password):
        return AuthContext(method="password")

    return None


async def require_auth(request: Request) -> AuthContext:
    """Dependency for protected routes."""
    context = authenticate(request)
    if context is None:
        logger.info("Rejected unauthorized request to %s", request.url.path)
        raise UnauthorizedError()
    return context
