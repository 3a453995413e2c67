"""Authentication routes: sign-in, sign-out, session inspection."""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response

from mibuks.access.context import Identity
from mibuks.config.settings import get_settings
from mibuks.models.api import LoginRequest
from mibuks.web.auth.session import SESSION_COOKIE, current_identity, session_token
from mibuks.web.dependencies import Services, get_services

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

_IDENTITY_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://mibuks.app/identity")


def identity_for_email(email: str) -> Identity:
    """Derive the stable opaque identity for an e-mail address."""
    normalized = email.strip().lower()
    return Identity(user_id=str(uuid.uuid5(_IDENTITY_NAMESPACE, normalized)), email=normalized)


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    services: Services = Depends(get_services),
) -> dict[str, str]:
    """Create a session. Without configured credentials any login is accepted."""
    settings = get_settings()
    if (
        settings.admin_username
        and settings.admin_password
        and (body.email != settings.admin_username or body.password != settings.admin_password)
    ):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    identity = identity_for_email(body.email)
    token = services.sessions.create_session(identity)
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
        max_age=settings.session_max_age,
    )
    logger.info("user_logged_in", user_id=identity.user_id)
    return {"status": "ok", "user_id": identity.user_id, "email": identity.email}


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    services: Services = Depends(get_services),
) -> dict[str, str]:
    token = session_token(request)
    if token:
        services.sessions.destroy_session(token)
    response.delete_cookie(SESSION_COOKIE)
    return {"status": "ok"}


@router.get("/session")
async def session_info(request: Request) -> dict[str, Any]:
    identity = current_identity(request)
    if identity is None:
        return {"authenticated": False}
    return {"authenticated": True, "user_id": identity.user_id, "email": identity.email}
