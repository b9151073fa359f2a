"""
veritas.auth – session tokens, role checks and request tracing.

Identity itself comes from the external auth provider; this module only maps
the bearer token issued after sign-in to a user id.  Requests without a valid
session get a 401 whose ``Location`` header points at the auth flow.
"""
from __future__ import annotations

import hashlib
import logging
import secrets
import time
import uuid
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)

DEMO_USER_ID = "demo-user"

_bearer_scheme = HTTPBearer(auto_error=False)


class SessionRegistry:
    """Opaque bearer token → user id."""

    def __init__(self) -> None:
        self._tokens: dict[str, str] = {}

    def open(self, user_id: str) -> str:
        token = secrets.token_urlsafe(32)
        self._tokens[token] = user_id
        return token

    def resolve(self, token: str) -> str | None:
        return self._tokens.get(token)

    def close(self, token: str) -> str | None:
        return self._tokens.pop(token, None)


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    is_admin: bool
    token: str | None = None


def require_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> CurrentUser:
    """
    Resolve the caller's session.

    With ``VERITAS_DEMO_MODE=true`` an anonymous caller acts as DEMO_USER_ID.
    """
    settings = request.app.state.settings
    sessions: SessionRegistry = request.app.state.sessions

    if credentials is not None:
        user_id = sessions.resolve(credentials.credentials)
        if user_id is not None:
            return CurrentUser(user_id, user_id in settings.admin_ids, credentials.credentials)

    if settings.demo_mode:
        return CurrentUser(DEMO_USER_ID, DEMO_USER_ID in settings.admin_ids)

    raise HTTPException(
        status_code=401,
        detail="Sign in required.",
        headers={"Location": settings.auth_redirect_url, "WWW-Authenticate": "Bearer"},
    )


def require_admin(user: CurrentUser = Depends(require_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Access denied. Admin privileges required.")
    return user


# ---------------------------------------------------------------------------
# Request-ID and logging middleware
# ---------------------------------------------------------------------------

def _hash_ip(ip: str | None) -> str:
    """Return a one-way hash of the client IP for privacy-safe logging."""
    if not ip:
        return "unknown"
    return hashlib.sha256(ip.encode()).hexdigest()[:12]


async def request_logging_middleware(request: Request, call_next):
    """Add X-Request-ID header and log every request with timing."""
    request_id = str(uuid.uuid4())
    start = time.monotonic()

    response: Response = await call_next(request)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    response.headers["X-Request-ID"] = request_id

    logger.info(
        "request_id=%s ip=%s method=%s path=%s status=%d duration_ms=%d",
        request_id,
        _hash_ip(request.client.host if request.client else None),
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response
