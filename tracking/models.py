"""
tracking/models.py -- Domain dataclasses for locations and permission grants.

These are pure data containers with zero logic. Access rules live in
tracking/gateway.py; persistence lives in tracking/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class LocationRecord:
    """One reported position. Rows are append-only; the newest one is "current".

    id is None before the record is written to the database.
    """

    email: str
    lat: float
    lng: float
    id: Optional[int] = None
    updated_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class PermissionGrant:
    """A directed grant: viewer_email may read sharer_email's location.

    granted=False is a revoked grant. The row is kept so a later grant
    flips it back rather than inserting a duplicate pair.
    """

    viewer_email: str
    sharer_email: str
    granted: bool = True
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""
