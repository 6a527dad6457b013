"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Only one credential transport exists: the Authorization: Bearer <token>
header. bearer_token() extracts the raw token (or None when the header is
absent or malformed) and leaves verification to the gateway, so the
missing_token / invalid_token distinction is made in one place.

Layer rule: no imports from api/ or tracking/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request


def bearer_token(request: Request) -> str | None:
    """Return the token from a well-formed Bearer header, else None.

    "Bearer" is matched case-insensitively. Any other scheme, a missing
    token part, or extra parts count as no credential at all.
    """
    auth_header = request.headers.get("Authorization", "")
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]

