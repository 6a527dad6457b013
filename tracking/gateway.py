"""
tracking/gateway.py -- The guarded operations behind every HTTP route.

AuthGateway composes the email validator, the mail sender, the auth stores,
the token verifier, and the tracking stores. Each public method is one
operation; calls share no state except through the stores. Every failure is
raised as TrackerError(reason) -- the API layer only renders it.

Order of checks is part of the contract. For the token-guarded operations:
authenticate -> role -> input -> permission -> data. A viewer asking for a
sharer it has no grant for gets no_permission whether or not that sharer has
ever posted a location.

Emails are stripped and lowercased at this boundary so a grant typed as
"V@Example.com" matches a viewer who logged in as "v@example.com".

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any

from sqlalchemy.engine import Engine

from auth.models import SHARER, VIEWER, Claims, User
from auth.store import OtpStore, UserStore
from auth.tokens import authenticate, issue_token
from core.config import Settings
from core.email_validator import DnsMxResolver, EmailValidator, MxResolver
from core.errors import TrackerError
from core.mailer import MailDeliveryError, MailSender, SmtpMailSender, render_otp_email
from tracking.models import LocationRecord, PermissionGrant
from tracking.store import LocationStore, PermissionStore

logger = logging.getLogger("tracker.gateway")


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: User


def normalize_email(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


def _is_number(value: Any) -> bool:
    # bool is an int subclass; true/false are not coordinates.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # An int too large for a float is still a number; the range check rejects it.
        return True


class AuthGateway:
    def __init__(
        self,
        *,
        users: UserStore,
        otps: OtpStore,
        permissions: PermissionStore,
        locations: LocationStore,
        validator: EmailValidator,
        mailer: MailSender,
        otp_ttl_seconds: int = 600,
    ) -> None:
        self.users = users
        self.otps = otps
        self.permissions = permissions
        self.locations = locations
        self.validator = validator
        self.mailer = mailer
        self.otp_ttl_seconds = otp_ttl_seconds

    # ------------------------------------------------------------------
    # Passcode login
    # ------------------------------------------------------------------

    def request_otp(self, email: Any) -> None:
        """Validate the address, persist a new passcode, and email it.

        Validation failures issue nothing. A delivery failure raises
        email_failed but leaves the persisted record consumable; the caller
        retries by requesting again, which issues a newer code.
        """
        email = normalize_email(email)
        if not email:
            raise TrackerError("email_required")

        check = self.validator.validate(email)
        if not check.ok:
            logger.info("Passcode request rejected for %s: %s", email, check.reason)
            raise TrackerError(check.reason)

        record = self.otps.issue(email, ttl_seconds=self.otp_ttl_seconds)
        subject, body = render_otp_email(record.code, self.otp_ttl_seconds)
        try:
            self.mailer.send(email, subject, body)
        except MailDeliveryError:
            logger.warning("Passcode %s for %s persisted but not delivered", record.id, email)
            raise TrackerError("email_failed") from None
        logger.info("Passcode %s issued for %s", record.id, email)

    def verify_otp(self, email: Any, code: Any, requested_role: Any = None) -> LoginResult:
        """Consume a passcode and return a token for the (possibly new) user.

        The first successful verification decides the role: "viewer" if
        requested, otherwise "sharer". Later verifications keep it.
        """
        email = normalize_email(email)
        if isinstance(code, int) and not isinstance(code, bool):
            code = str(code)
        if not email or not isinstance(code, str) or not code.strip():
            raise TrackerError("email_and_otp_required")

        check = self.otps.verify(email, code.strip())
        if not check.ok:
            logger.info("Passcode verification failed for %s: %s", email, check.reason)
            raise TrackerError(check.reason)

        role = VIEWER if requested_role == VIEWER else SHARER
        user = self.users.get_or_create(email, role)
        if user.role != role:
            logger.info("Keeping existing role %s for %s (requested %s)", user.role, email, role)
        return LoginResult(token=issue_token(user), user=user)

    def me(self, token: str | None) -> Claims:
        return authenticate(token)

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def post_location(self, token: str | None, lat: Any, lng: Any) -> LocationRecord:
        claims = authenticate(token)
        if claims.role != SHARER:
            raise TrackerError("only_sharers_can_post")
        if not _is_number(lat) or not _is_number(lng):
            raise TrackerError("lat_and_lng_required")
        if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lng <= 180.0):
            raise TrackerError("lat_lng_out_of_range")
        return self.locations.record(claims.email, lat, lng)

    def get_location(self, token: str | None, sharer_email: Any) -> LocationRecord:
        claims = authenticate(token)
        if claims.role != VIEWER:
            raise TrackerError("only_viewers_can_fetch")
        sharer_email = normalize_email(sharer_email)
        if not self.permissions.check(claims.email, sharer_email):
            raise TrackerError("no_permission")
        location = self.locations.latest(sharer_email)
        if location is None:
            raise TrackerError("no_location_found")
        return location

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def grant_permission(self, token: str | None, viewer_email: Any) -> None:
        claims = authenticate(token)
        if claims.role != SHARER:
            raise TrackerError("only_sharers_can_grant")
        viewer_email = normalize_email(viewer_email)
        if not viewer_email:
            raise TrackerError("viewer_email_required")
        self.permissions.grant(claims.email, viewer_email)
        logger.info("%s granted location access to %s", claims.email, viewer_email)

    def revoke_permission(self, token: str | None, viewer_email: Any) -> bool:
        claims = authenticate(token)
        if claims.role != SHARER:
            raise TrackerError("only_sharers_can_revoke")
        viewer_email = normalize_email(viewer_email)
        if not viewer_email:
            raise TrackerError("viewer_email_required")
        revoked = self.permissions.revoke(claims.email, viewer_email)
        if revoked:
            logger.info("%s revoked location access from %s", claims.email, viewer_email)
        return revoked

    def list_viewers(self, token: str | None) -> list[PermissionGrant]:
        claims = authenticate(token)
        if claims.role != SHARER:
            raise TrackerError("only_sharers_can_list")
        return self.permissions.list_viewers(claims.email)


def build_gateway(
    engine: Engine,
    settings: Settings,
    *,
    mailer: MailSender | None = None,
    resolver: MxResolver | None = None,
) -> AuthGateway:
    """Wire a gateway over one engine using Settings for timeouts and lengths.

    mailer and resolver default to the SMTP and DNS implementations; tests
    pass fakes.
    """
    if mailer is None:
        mailer = SmtpMailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender=settings.smtp_from,
            username=settings.smtp_user,
            password=settings.smtp_pass,
            use_tls=settings.smtp_secure,
            timeout=settings.smtp_timeout_seconds,
        )
    if resolver is None:
        resolver = DnsMxResolver(timeout=settings.dns_timeout_seconds)
    return AuthGateway(
        users=UserStore(engine),
        otps=OtpStore(engine, length=settings.otp_length),
        permissions=PermissionStore(engine),
        locations=LocationStore(engine),
        validator=EmailValidator(resolver),
        mailer=mailer,
        otp_ttl_seconds=settings.otp_ttl_seconds,
    )
