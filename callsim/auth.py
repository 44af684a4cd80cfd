"""Admin access to the runtime call defaults.

Placing, ending and toggling calls stays open to the phone client.  Only
``/api/config`` needs the admin bearer token, because it changes the
scenario, voice and recording default of every call placed afterwards.
"""

from __future__ import annotations

import logging
import secrets
from enum import Enum

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from callsim.config import settings

log = logging.getLogger("callsim.auth")


class AdminAccess(str, Enum):
    TOKEN = "token"    # ADMIN_API_KEY configured
    OPEN = "open"      # no key, DEBUG on
    LOCKED = "locked"  # no key, DEBUG off


def admin_access() -> AdminAccess:
    """How the runtime-defaults endpoints are currently guarded."""
    if settings.admin_api_key:
        return AdminAccess.TOKEN
    return AdminAccess.OPEN if settings.debug else AdminAccess.LOCKED


_admin_bearer = HTTPBearer(
    auto_error=False,
    description="ADMIN_API_KEY, required to read or change runtime call defaults",
)


async def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_admin_bearer),
) -> str:
    """Let an admin through to the call defaults.

    Returns who was let in ("admin" or "debug") so config changes can be
    attributed in the log.
    """
    access = admin_access()
    if access is AdminAccess.OPEN:
        return "debug"
    if access is AdminAccess.LOCKED:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Call defaults are locked: ADMIN_API_KEY is not configured.",
        )

    supplied = credentials.credentials if credentials else ""
    if not secrets.compare_digest(supplied.encode(), settings.admin_api_key.encode()):
        log.warning("Refused call-defaults request: bad or missing bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="A valid admin bearer token is required for call defaults.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return "admin"
