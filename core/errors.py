"""
core/errors.py -- Reason codes and the single domain exception.

Every failure path in the tracker is identified by a short machine-readable
reason code (e.g. "invalid_otp"). The code decides the HTTP status class:

  400  input errors            -- missing or malformed fields
  401  authentication errors   -- missing/invalid token, wrong passcode
  403  authorization errors    -- wrong role, no permission grant
  404  not found
  500  upstream dependency     -- email delivery

The gateway raises TrackerError(code); api/main.py renders it into the
{"error": {"code", "message"}} envelope. Nothing below the API layer knows
about HTTP -- the status lives in this table only.

Layer rule: core/ is the kernel. No imports from api/, auth/, or tracking/.
"""

from __future__ import annotations

from dataclasses import dataclass

# code -> (HTTP status, human-readable message)
REASONS: dict[str, tuple[int, str]] = {
    # Input
    "email_required": (400, "An email address is required."),
    "invalid_email_format": (400, "The email address is not well formed."),
    "invalid_email_domain": (400, "The email domain cannot receive mail."),
    "email_and_otp_required": (400, "Both email and passcode are required."),
    "no_otp_requested": (400, "No passcode was requested for this email."),
    "otp_expired": (400, "The passcode has expired. Request a new one."),
    "lat_and_lng_required": (400, "Numeric lat and lng are required."),
    "lat_lng_out_of_range": (400, "lat must be within [-90, 90] and lng within [-180, 180]."),
    "viewer_email_required": (400, "viewerEmail is required."),
    # Authentication
    "missing_token": (401, "A bearer token is required."),
    "invalid_token": (401, "The bearer token is invalid or expired."),
    "invalid_otp": (401, "The passcode is incorrect."),
    # Authorization
    "only_sharers_can_post": (403, "Only sharers can post locations."),
    "only_viewers_can_fetch": (403, "Only viewers can fetch locations."),
    "only_sharers_can_grant": (403, "Only sharers can grant permissions."),
    "only_sharers_can_revoke": (403, "Only sharers can revoke permissions."),
    "only_sharers_can_list": (403, "Only sharers can list their viewers."),
    "no_permission": (403, "You do not have permission to view this location."),
    # Not found
    "no_location_found": (404, "No location has been shared yet."),
    # Upstream
    "email_failed": (500, "The passcode email could not be sent. Try again."),
}


class TrackerError(Exception):
    """A failure identified by a reason code from REASONS.

    Unknown codes are a programming error and map to 500 so they surface
    loudly instead of masquerading as a client error.
    """

    def __init__(self, code: str, message: str | None = None) -> None:
        status, default_message = REASONS.get(code, (500, "Unexpected error."))
        self.code = code
        self.status_code = status
        self.message = message or default_message
        super().__init__(code)

    def __repr__(self) -> str:
        return f"TrackerError({self.code!r})"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a validation step that fails with a reason instead of raising.

    Used by the email validator and the OTP store, whose callers decide
    whether a failed check becomes a TrackerError.
    """

    ok: bool
    reason: str | None = None

    @classmethod
    def passed(cls) -> CheckResult:
        return cls(ok=True)

    @classmethod
    def failed(cls, reason: str) -> CheckResult:
        return cls(ok=False, reason=reason)
