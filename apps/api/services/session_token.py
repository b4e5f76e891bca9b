"""Bearer session tokens shared with the SiteSwift auth layer.

The auth layer signs HS256 JWTs with ``JWT_SECRET``; the API verifies them and
never stores sessions itself. ``issue_session_token`` exists for operator
tooling and tests.
"""

import time
from typing import Optional, TypedDict

from jose import ExpiredSignatureError, JWTError, jwt

from config import settings


SESSION_TOKEN_TYPE = "siteswift_session"
SESSION_TOKEN_ISSUER = "siteswift"
CLOCK_SKEW_SECONDS = 30


class SessionClaims(TypedDict, total=False):
    sub: str
    email: str
    iss: str
    type: str
    iat: int
    exp: int


class IssuedSession(TypedDict):
    token: str
    expires_at: int


def create_session_token(
    user_id: str,
    email: Optional[str] = None,
    expires_hours: Optional[int] = None,
) -> IssuedSession:
    issued_at = int(time.time())
    lifetime = max(int(expires_hours or settings.JWT_EXPIRATION_HOURS or 24), 1) * 3600
    claims: SessionClaims = {
        "sub": user_id,
        "iss": SESSION_TOKEN_ISSUER,
        "type": SESSION_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    if email:
        claims["email"] = email
    return {
        "token": jwt.encode(dict(claims), settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM),
        "expires_at": claims["exp"],
    }


def decode_session_token(token: str) -> SessionClaims:
    """Verify a session token and return its claims.

    Raises ``ValueError`` with a short reason for anything that does not name a
    SiteSwift user: bad signature, expiry, foreign issuer, wrong token type or
    a blank subject.
    """
    try:
        claims = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            issuer=SESSION_TOKEN_ISSUER,
            options={"leeway": CLOCK_SKEW_SECONDS},
        )
    except ExpiredSignatureError as exc:
        raise ValueError("Session token expired.") from exc
    except JWTError as exc:
        raise ValueError("Session token rejected.") from exc

    if claims.get("type") != SESSION_TOKEN_TYPE:
        raise ValueError("Not a SiteSwift session token.")
    if not str(claims.get("sub") or "").strip():
        raise ValueError("Session token has no subject.")
    return claims
