"""
Login, logout and auth-check endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from ..broker import SessionStore, UnauthorizedError
from .auth import authenticate, get_session_store, password_matches, session_ids_from_request

logger = logging.getLogger("avatar.api.session")

router = APIRouter()


class LoginRequest(BaseModel):
    """Login form body."""
    username: Optional[str] = None
    password: Optional[str] = None


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    store: SessionStore = Depends(get_session_store),
):
    """Open a session when the shared secret matches."""
    if not password_matches(body.password, request.app.state.access_password):
        logger.info("Failed login for %s", body.username or "anonymous")
        raise UnauthorizedError("Invalid credentials")

    session_id = store.create(body.username or None)
    broker_config = request.app.state.settings.broker
    response.set_cookie(
        key=broker_config.cookie_name,
        value=session_id,
        max_age=store.ttl_seconds,
        path="/",
        httponly=True,
        samesite="strict",
        secure=request.app.state.settings.server.production,
    )
    return {"ok": True, "sessionId": session_id}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    store: SessionStore = Depends(get_session_store),
):
    """Drop the caller's session and clear the cookie. Always succeeds."""
    for session_id in session_ids_from_request(request):
        if store.delete(session_id):
            logger.info("Session logged out")

    response.delete_cookie(
        key=request.app.state.settings.broker.cookie_name,
        path="/",
        httponly=True,
        samesite="strict",
        secure=request.app.state.settings.server.production,
    )
    return {"ok": True}


@router.get("/auth-check")
async def auth_check(request: Request):
    """Report whether the caller holds a valid session or the shared secret."""
    context = authenticate(request)
    if context is None:
        raise UnauthorizedError()
    return {"ok": True, "username": context.username}
