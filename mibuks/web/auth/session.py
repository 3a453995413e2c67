"""Cookie-based session authentication."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import time
from collections.abc import Callable
from typing import Any

import structlog
from fastapi import Request

from mibuks.access.context import Identity
from mibuks.exceptions import NotAuthenticatedError

logger = structlog.get_logger(__name__)

SESSION_COOKIE = "session"


class SessionAuth:
    """Signed session tokens mapped to identities.

    Listeners registered with ``on_destroy`` run whenever a session ends,
    whether by sign-out or expiry, so per-session state can be dropped.
    """

    def __init__(self, secret_key: str, max_age: int = 86400) -> None:
        self._secret = secret_key.encode()
        self._max_age = max_age
        self._sessions: dict[str, dict[str, Any]] = {}
        self._listeners: list[Callable[[str], None]] = []

    def on_destroy(self, callback: Callable[[str], None]) -> None:
        self._listeners.append(callback)

    def create_session(self, identity: Identity) -> str:
        """Create a new session and return the token."""
        token = secrets.token_urlsafe(32)
        signature = self._sign(token)
        signed_token = f"{token}.{signature}"

        self._sessions[signed_token] = {
            "identity": identity,
            "created_at": time.time(),
        }
        logger.info("session_created", user_id=identity.user_id)
        return signed_token

    def validate_session(self, token: str | None) -> Identity | None:
        """Validate a session token and return its identity."""
        if not token or "." not in token:
            return None

        raw_token, signature = token.rsplit(".", 1)
        expected_sig = self._sign(raw_token)

        if not hmac.compare_digest(signature, expected_sig):
            return None

        session = self._sessions.get(token)
        if not session:
            return None

        if time.time() - session["created_at"] > self._max_age:
            self.destroy_session(token)
            return None

        return session["identity"]

    def destroy_session(self, token: str) -> None:
        """Remove a session and notify listeners."""
        if self._sessions.pop(token, None) is None:
            return
        for callback in self._listeners:
            callback(token)
        logger.info("session_destroyed")

    def _sign(self, data: str) -> str:
        """Create HMAC signature for a token."""
        return hmac.new(self._secret, data.encode(), hashlib.sha256).hexdigest()[:32]


def session_token(request: Request) -> str:
    """Return the session token from the cookie or a Bearer header."""
    token = request.cookies.get(SESSION_COOKIE, "")
    if token:
        return token
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return ""


def current_identity(request: Request) -> Identity | None:
    auth: SessionAuth = request.app.state.services.sessions
    return auth.validate_session(session_token(request))


async def require_auth(request: Request) -> Identity:
    """Dependency: the caller's identity, or 401."""
    identity = current_identity(request)
    if identity is None:
        msg = "Not authenticated"
        raise NotAuthenticatedError(msg)
    return identity
