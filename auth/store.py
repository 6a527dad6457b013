"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore and OtpStore are the repositories; _row_to_user is the mapper
(OtpStore hands out the OtpRecord it wrote and CheckResults, never rows).
Gateway and route code never touches SQL directly.

Concurrency:
  OtpStore.verify() runs lookup, checks, and consumption inside one
  transaction, and the consuming UPDATE is conditional on consumed = 0.
  Two verifiers racing on the same record can both pass the checks, but only
  one UPDATE changes a row; the loser sees rowcount 0 and is rejected.

  UserStore.get_or_create() relies on UNIQUE(email). A concurrent insert
  raises IntegrityError, which is caught and answered with the winner's row,
  so the first verification always decides the role.

Security:
  All queries use bound parameters. Passcodes are compared with
  hmac.compare_digest.

Layer rule: no imports from api/ or tracking/.
"""

from __future__ import annotations

import hmac
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import OtpRecord, User
from core.database import otps, users
from core.errors import CheckResult

Clock = Callable[[], datetime]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: datetime) -> str:
    return dt.isoformat(timespec="microseconds")


def generate_otp(length: int = 6) -> str:
    """Return a numeric passcode with each digit drawn independently from secrets."""
    return "".join(str(secrets.randbelow(10)) for _ in range(length))


def _latest_unconsumed(email: str):
    return (
        otps.select()
        .where((otps.c.email == email) & (otps.c.consumed == 0))
        .order_by(otps.c.id.desc())
        .limit(1)
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore(engine)
        user = store.get_or_create("a@example.com", "viewer")
    """

    def __init__(self, engine: Engine, clock: Clock = _utcnow) -> None:
        self.engine = engine
        self._clock = clock

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.email == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_or_create(self, email: str, role: str) -> User:
        """Return the verified user for email, creating it with role if absent.

        An existing user keeps its stored role. The verified flag is set on
        every call, covering rows created before verification was recorded.
        """
        user = self.get_by_email(email)
        if user is None:
            try:
                with self.engine.begin() as conn:
                    conn.execute(
                        users.insert().values(
                            email=email,
                            role=role,
                            is_verified=1,
                            created_at=_iso(self._clock()),
                        )
                    )
            except IntegrityError:
                # A concurrent verification created the row first.
                pass
            user = self.get_by_email(email)
        if user is not None and not user.is_verified:
            with self.engine.begin() as conn:
                conn.execute(users.update().where(users.c.email == email).values(is_verified=1))
            user.is_verified = True
        return user


class OtpStore:
    """Repository for one-time passcodes.

    Usage:
        store = OtpStore(engine)
        record = store.issue("a@example.com", ttl_seconds=600)
        result = store.verify("a@example.com", record.code)
    """

    def __init__(self, engine: Engine, clock: Clock = _utcnow, length: int = 6) -> None:
        self.engine = engine
        self._clock = clock
        self.length = length

    def issue(self, email: str, ttl_seconds: int = 600) -> OtpRecord:
        """Persist a fresh passcode for email and return it.

        Earlier unconsumed codes are left in place; verify() only ever looks
        at the newest one.
        """
        now = self._clock()
        record = OtpRecord(
            email=email,
            code=generate_otp(self.length),
            expires_at=_iso(now + timedelta(seconds=ttl_seconds)),
            created_at=_iso(now),
        )
        with self.engine.begin() as conn:
            result = conn.execute(
                otps.insert().values(
                    email=record.email,
                    code=record.code,
                    expires_at=record.expires_at,
                    consumed=0,
                    created_at=record.created_at,
                )
            )
            record.id = result.inserted_primary_key[0]
        return record

    def verify(self, email: str, code: str) -> CheckResult:
        """Check code against the newest unconsumed passcode and consume it on success.

        Reasons, in the order they are checked:
          no_otp_requested -- no unconsumed record (or lost a consume race)
          otp_expired      -- now is past expires_at
          invalid_otp      -- code differs
        """
        with self.engine.begin() as conn:
            row = conn.execute(_latest_unconsumed(email)).fetchone()
            if row is None:
                return CheckResult.failed("no_otp_requested")
            if self._clock() > datetime.fromisoformat(row.expires_at):
                return CheckResult.failed("otp_expired")
            if not hmac.compare_digest(code.encode("utf-8"), row.code.encode("utf-8")):
                return CheckResult.failed("invalid_otp")
            result = conn.execute(
                otps.update().where((otps.c.id == row.id) & (otps.c.consumed == 0)).values(consumed=1)
            )
            if result.rowcount != 1:
                return CheckResult.failed("no_otp_requested")
        return CheckResult.passed()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        role=row.role,
        is_verified=bool(row.is_verified),
        created_at=row.created_at,
    )

