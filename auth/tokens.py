"""
auth/tokens.py -- JWT issue and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       sub/email, role, and expiry (TOKEN_EXPIRE_SECONDS, 7 days by default).
       decode_access_token() returns None on any failure; authenticate()
       turns a missing or bad credential into the missing_token /
       invalid_token reasons.

  Stateless: there is no server-side session table or revocation list.
       Logout is a client-side concern, and a role is frozen into the token
       until it expires.

  SECRET_KEY: sourced from core.config.get_settings(). Settings refuses to
       start in production without one and rejects keys under 32 chars.

Layer rule: no imports from api/ or tracking/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.models import ROLES, Claims, User
from core.config import get_settings
from core.errors import TrackerError

logger = logging.getLogger("tracker.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(email: str, role: str, expire_seconds: int = 0) -> str:
    """Encode a signed JWT with the user's email and role.

    Args:
        email:          Stored as both the subject and the email claim.
        role:           "sharer" or "viewer".
        expire_seconds: Token lifetime. If 0 (default), uses
                        Settings.token_expire_seconds. Tests pass a negative
                        value to mint an already-expired token.
    """
    duration = expire_seconds if expire_seconds != 0 else _settings.token_expire_seconds
    expire = datetime.now(timezone.utc) + timedelta(seconds=duration)
    payload = {
        "sub": email,
        "email": email,
        "role": role,
        "exp": expire,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def issue_token(user: User) -> str:
    """Issue a token for a verified user record."""
    return create_access_token(user.email, user.role)


def decode_access_token(token: str) -> Claims | None:
    """Decode and verify a JWT. Returns the claims or None on any failure.

    Signature and expiry are checked by jose; a payload missing the email or
    carrying an unknown role is rejected here.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    email = payload.get("email")
    role = payload.get("role")
    if not isinstance(email, str) or not email or role not in ROLES:
        return None
    return Claims(email=email, role=role)


def authenticate(token: str | None) -> Claims:
    """Return the claims for a bearer token or raise TrackerError.

    None or an empty string means the request carried no usable bearer
    credential (missing_token). Anything that fails verification is
    invalid_token.
    """
    if not token:
        raise TrackerError("missing_token")
    claims = decode_access_token(token)
    if claims is None:
        logger.info("Rejected bearer token that failed verification")
        raise TrackerError("invalid_token")
    return claims
