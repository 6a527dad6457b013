"""
API request and response models for the tracker REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
tracking/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire names are camelCase (viewerEmail, updatedAt, isVerified); Python names
stay snake_case via the shared alias generator.

Request fields are deliberately loose (Optional / Any). A missing or
mistyped field must reach the gateway so the client gets the domain reason
code (e.g. lat_and_lng_required) rather than a generic 422.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from auth.models import Claims, User
from tracking.models import LocationRecord, PermissionGrant

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class OtpRequest(BaseModel):
    """Request body for POST /request-otp."""

    email: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    """Request body for POST /verify-otp.

    otp accepts a string or a number; numbers lose leading zeros, so clients
    should send strings.
    """

    email: Optional[str] = None
    otp: Any = None
    role: Optional[str] = None


class LocationPost(BaseModel):
    """Request body for POST /locations. Types are checked by the gateway."""

    lat: Any = None
    lng: Any = None


class PermissionRequest(BaseModel):
    """Request body for POST /permissions/grant and /permissions/revoke."""

    model_config = _CAMEL

    viewer_email: Optional[str] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class UserInfo(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    email: str
    role: str
    is_verified: bool

    @classmethod
    def from_user(cls, user: User) -> "UserInfo":
        return cls(email=user.email, role=user.role, is_verified=user.is_verified)


class VerifyOtpResponse(BaseModel):
    """Response for POST /verify-otp: the bearer token plus the user it names."""

    model_config = ConfigDict(frozen=True)

    token: str
    user: UserInfo


class LocationResponse(BaseModel):
    """Response for GET /locations/{email}."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    email: str
    lat: float
    lng: float
    updated_at: str

    @classmethod
    def from_record(cls, rec: LocationRecord) -> "LocationResponse":
        return cls(email=rec.email, lat=rec.lat, lng=rec.lng, updated_at=rec.updated_at)


class PermissionResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    ok: bool = True
    message: str


class ViewerRow(BaseModel):
    """One active grant in GET /permissions."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    viewer_email: str
    created_at: str
    updated_at: str

    @classmethod
    def from_grant(cls, grant: PermissionGrant) -> "ViewerRow":
        return cls(viewer_email=grant.viewer_email, created_at=grant.created_at, updated_at=grant.updated_at)


class MeResponse(BaseModel):
    """Response for GET /me -- the identity carried by the bearer token."""

    model_config = ConfigDict(frozen=True)

    email: str
    role: str

    @classmethod
    def from_claims(cls, claims: Claims) -> "MeResponse":
        return cls(email=claims.email, role=claims.role)


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
