"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the
gateway do the work.

Layer rule: no imports from api/ or tracking/.
"""

from __future__ import annotations

from dataclasses import dataclass

SHARER = "sharer"
VIEWER = "viewer"
ROLES = (SHARER, VIEWER)


@dataclass
class User:
    """A verified identity. The email is the unique key.

    role is fixed by the first successful passcode verification and is
    never changed afterwards, even if a later login asks for another role.
    """

    email: str
    role: str  # "sharer" | "viewer"
    id: int | None = None
    is_verified: bool = False
    created_at: str | None = None


@dataclass
class OtpRecord:
    """One issued passcode. Records are never deleted -- consumed ones form the audit trail."""

    email: str
    code: str
    expires_at: str  # ISO 8601, UTC
    id: int | None = None
    consumed: bool = False
    created_at: str | None = None


@dataclass(frozen=True)
class Claims:
    """Identity carried by a verified bearer token."""

    email: str
    role: str
