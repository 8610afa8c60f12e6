"""
Stream token endpoint.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from .auth import AuthContext, require_auth

logger = logging.getLogger("avatar.api.tokens")

router = APIRouter()


class SessionTokenRequest(BaseModel):
    """Token request body."""
    model_config = ConfigDict(populate_by_name=True)

    persona_config: Optional[dict[str, Any]] = Field(default=None, alias="personaConfig")


@router.post("/session-token")
async def create_session_token(
    body: SessionTokenRequest,
    request: Request,
    auth: AuthContext = Depends(require_auth),
):
    """Exchange a persona configuration for a short-lived stream token."""
    token_client = request.app.state.token_client
    token = await token_client.exchange(body.persona_config)
    logger.debug("Stream token issued via %s auth", auth.method)
    return {"sessionToken": token}
