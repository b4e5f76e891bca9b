"""Caller identity for /api/user routes.

Sessions are issued by the auth layer; this module only reads the Bearer token
and turns it into an ``AuthContext``. Every rejection looks the same to the
client so token problems cannot be told apart.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from services.session_token import decode_session_token

logger = logging.getLogger(__name__)

UNAUTHORIZED_DETAIL = "Unauthorized user"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    email: Optional[str] = None
    session_expires_at: Optional[int] = None


def _unauthorized(reason: str) -> HTTPException:
    logger.info("Rejected session: %s", reason)
    return HTTPException(
        status_code=401,
        detail=UNAUTHORIZED_DETAIL,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise _unauthorized("no bearer token")

    try:
        claims = decode_session_token(credentials.credentials)
    except ValueError as exc:
        raise _unauthorized(str(exc)) from exc

    expires_at = claims.get("exp")
    return AuthContext(
        user_id=str(claims["sub"]).strip(),
        email=claims.get("email") or None,
        session_expires_at=int(expires_at) if expires_at is not None else None,
    )
