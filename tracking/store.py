"""
tracking/store.py -- SQLAlchemy-backed persistence for locations and permissions.

Uses SQLAlchemy Core (not ORM) so the dataclasses in tracking/models.py
remain the authoritative domain representation.

Pattern: Repository + Data Mapper. LocationStore and PermissionStore are the
repositories; the _row_to_* functions are the mappers.

Concurrency:
  PermissionStore.grant() is a single INSERT ... ON CONFLICT DO UPDATE
  statement against UNIQUE(viewer_email, sharer_email). Two concurrent grants
  for the same pair end with one row, and check() never sees a half-written
  grant.

  LocationStore.record() only ever inserts, so appends need no coordination.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    locations = LocationStore(engine)
    locations.record("s@example.com", 10.0, 20.0)
    current = locations.latest("s@example.com")

    permissions = PermissionStore(engine)
    permissions.grant("s@example.com", "v@example.com")
    permissions.check("v@example.com", "s@example.com")  # True
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine

from core.database import locations, permissions
from tracking.models import LocationRecord, PermissionGrant


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


class LocationStore:
    def __init__(self, engine: Engine, clock: Callable[[], str] = _now_iso) -> None:
        self.engine = engine
        self._clock = clock

    def record(self, email: str, lat: float, lng: float) -> LocationRecord:
        """Append a timestamped position for email. Earlier rows are never touched."""
        rec = LocationRecord(email=email, lat=float(lat), lng=float(lng), updated_at=self._clock())
        with self.engine.begin() as conn:
            result = conn.execute(
                locations.insert().values(
                    email=rec.email,
                    lat=rec.lat,
                    lng=rec.lng,
                    updated_at=rec.updated_at,
                )
            )
            rec.id = result.inserted_primary_key[0]
        return rec

    def latest(self, email: str) -> Optional[LocationRecord]:
        """Return the newest position for email, or None if nothing was ever posted.

        Ordered by timestamp, then by insertion order for identical timestamps.
        """
        with self.engine.connect() as conn:
            row = conn.execute(
                locations.select()
                .where(locations.c.email == email)
                .order_by(locations.c.updated_at.desc(), locations.c.id.desc())
                .limit(1)
            ).fetchone()
        return _row_to_location(row) if row is not None else None


# ---------------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------------


class PermissionStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def _upsert(self, viewer_email: str, sharer_email: str, granted: bool):
        now = _now_iso()
        dialect = postgresql if self.engine.dialect.name == "postgresql" else sqlite
        stmt = dialect.insert(permissions).values(
            viewer_email=viewer_email,
            sharer_email=sharer_email,
            granted=1 if granted else 0,
            created_at=now,
            updated_at=now,
        )
        return stmt.on_conflict_do_update(
            index_elements=["viewer_email", "sharer_email"],
            set_={"granted": 1 if granted else 0, "updated_at": now},
        )

    def grant(self, sharer_email: str, viewer_email: str) -> None:
        """Allow viewer_email to read sharer_email's location. Idempotent."""
        with self.engine.begin() as conn:
            conn.execute(self._upsert(viewer_email, sharer_email, granted=True))

    def revoke(self, sharer_email: str, viewer_email: str) -> bool:
        """Withdraw a grant. Returns True if an active grant was revoked.

        The row stays with granted=0; revoking a pair that was never granted
        changes nothing.
        """
        with self.engine.begin() as conn:
            result = conn.execute(
                permissions.update()
                .where(
                    (permissions.c.viewer_email == viewer_email)
                    & (permissions.c.sharer_email == sharer_email)
                    & (permissions.c.granted == 1)
                )
                .values(granted=0, updated_at=_now_iso())
            )
        return result.rowcount > 0

    def check(self, viewer_email: str, sharer_email: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(
                permissions.select()
                .where(
                    (permissions.c.viewer_email == viewer_email)
                    & (permissions.c.sharer_email == sharer_email)
                    & (permissions.c.granted == 1)
                )
                .limit(1)
            ).fetchone()
        return row is not None

    def list_viewers(self, sharer_email: str) -> list[PermissionGrant]:
        """Return active grants for sharer_email, ordered by viewer email."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                permissions.select()
                .where((permissions.c.sharer_email == sharer_email) & (permissions.c.granted == 1))
                .order_by(permissions.c.viewer_email)
            ).fetchall()
        return [_row_to_grant(r) for r in rows]


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_location(row) -> LocationRecord:
    return LocationRecord(
        id=row.id,
        email=row.email,
        lat=row.lat,
        lng=row.lng,
        updated_at=row.updated_at,
    )


def _row_to_grant(row) -> PermissionGrant:
    return PermissionGrant(
        id=row.id,
        viewer_email=row.viewer_email,
        sharer_email=row.sharer_email,
        granted=bool(row.granted),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
