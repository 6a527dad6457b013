"""
tests/conftest.py -- Shared test fixtures for the tracker.

This module provides:
  - FakeMailer / FakeResolver: in-memory stand-ins for SMTP and DNS
  - clock: a settable UTC clock (FakeClock) for passcode expiry tests
  - engine: an isolated named shared-memory SQLite database per test
  - gateway: an AuthGateway over that engine with the fakes wired in
  - api_client: TestClient over the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

The DEBUG env var must be set before any auth module import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import re
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set DEBUG before any auth/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from api.limiter import limiter
from api.main import app
from core.config import get_settings
from core.database import locations, make_engine, otps, permissions
from core.mailer import MailDeliveryError
from tracking.gateway import AuthGateway, build_gateway

# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

MX_DOMAINS = {
    "x.com": ["mx1.x.com"],
    "y.com": ["mx1.y.com", "mx2.y.com"],
    "example.com": ["mail.example.com"],
}


class FakeResolver:
    """MX lookup against a fixed table. Domains listed in `broken` raise."""

    def __init__(self, table: dict[str, list[str]] | None = None, broken: set[str] | None = None) -> None:
        self.table = MX_DOMAINS if table is None else table
        self.broken = broken or set()
        self.lookups: list[str] = []

    def resolve_mx(self, domain: str) -> list[str]:
        self.lookups.append(domain)
        if domain in self.broken:
            raise TimeoutError(f"lookup for {domain} timed out")
        return list(self.table.get(domain, []))


class FakeMailer:
    """Collects sent messages. Set fail=True to simulate a relay rejection."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []
        self.fail = False

    def send(self, to: str, subject: str, body: str) -> None:
        if self.fail:
            raise MailDeliveryError("relay refused the message")
        self.sent.append((to, subject, body))

    def last_code(self, to: str) -> str:
        for recipient, _subject, body in reversed(self.sent):
            if recipient == to:
                match = re.search(r"\b(\d{4,})\b", body)
                assert match, f"no passcode in body: {body!r}"
                return match.group(1)
        raise AssertionError(f"no email sent to {to}")


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


# ---------------------------------------------------------------------------
# Direct table reads
# ---------------------------------------------------------------------------


class TableReader:
    """Read-only views of the raw tables for asserting on persisted state.

    The stores expose only what the operations need; tests that check the
    audit trail or row counts read the tables here.
    """

    def __init__(self, engine) -> None:
        self.engine = engine

    def _all(self, stmt) -> list:
        with self.engine.connect() as conn:
            return conn.execute(stmt).fetchall()

    def count(self, table) -> int:
        return self._all(select(func.count()).select_from(table))[0][0]

    def otp_history(self, email: str) -> list:
        """Every passcode row for email, oldest first."""
        return self._all(otps.select().where(otps.c.email == email).order_by(otps.c.id))

    def latest_unconsumed_otp(self, email: str):
        rows = [r for r in self.otp_history(email) if not r.consumed]
        return rows[-1] if rows else None

    def location_history(self, email: str) -> list:
        return self._all(
            locations.select().where(locations.c.email == email).order_by(locations.c.updated_at, locations.c.id)
        )

    def permission_row(self, viewer_email: str, sharer_email: str):
        rows = self._all(
            permissions.select().where(
                (permissions.c.viewer_email == viewer_email) & (permissions.c.sharer_email == sharer_email)
            )
        )
        return rows[0] if rows else None


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    """Isolated named shared-memory database; each test gets a unique name."""
    eng = make_engine(f"sqlite:///file:test_tracker_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    yield eng
    eng.dispose()


@pytest.fixture
def tables(engine) -> TableReader:
    return TableReader(engine)


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def gateway(engine, mailer, resolver) -> AuthGateway:
    return build_gateway(engine, get_settings(), mailer=mailer, resolver=resolver)


@pytest.fixture
def login_as(gateway, mailer):
    """Return login(email, role) -> token running request + verify through the gateway."""

    def login(email: str, role: str) -> str:
        gateway.request_otp(email)
        return gateway.verify_otp(email, mailer.last_code(email), role).token

    return login


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(engine, gw: AuthGateway):
    """Return an async context manager that replaces the real lifespan.

    Wires the test engine and gateway into app.state so TestClient routes use
    the isolated database and the fake mail/DNS collaborators.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.gateway = gw
        yield

    return test_lifespan


@pytest.fixture
def api_client(engine, gateway, mailer) -> Generator[tuple[TestClient, FakeMailer], None, None]:
    """Yield (client, mailer) over the real app with isolated stores.

    Rate limiting is switched off so tests can log in repeatedly from the
    same TestClient address. Requests go to "localhost", one of the default
    ALLOWED_HOSTS.
    """
    app.router.lifespan_context = _patch_lifespan(engine, gateway)
    limiter.enabled = False
    with TestClient(app, base_url="http://localhost", raise_server_exceptions=True) as client:
        yield client, mailer
    limiter.enabled = True
    limiter.reset()


@pytest.fixture
def api_login_as(api_client):
    """Return login(email, role) -> token running request + verify over HTTP."""
    client, mailer = api_client

    def login(email: str, role: str) -> str:
        resp = client.post("/request-otp", json={"email": email})
        assert resp.status_code == 200, resp.text
        resp = client.post("/verify-otp", json={"email": email, "otp": mailer.last_code(email), "role": role})
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]

    return login


@pytest.fixture
def throttled_client(api_client) -> Generator[tuple[TestClient, FakeMailer], None, None]:
    """api_client with the passcode rate limit switched back on and counters cleared."""
    limiter.reset()
    limiter.enabled = True
    yield api_client
    limiter.enabled = False
    limiter.reset()
