"""
conftest.py — Shared Test Fixtures for quotehub

Provides a temporary file-backed SQLite database per test, a SqlThreadStore
bound to it, a seeding helper for quotes / messages / parties, and a FastAPI
TestClient with the store and session viewer overridden.

Business Rules:
- Each test gets its own database file (store calls run on executor threads,
  each with its own connection)
- Negotiated capabilities are cleared before and after every test
- Timestamps are naive UTC; helpers expose the normalised ISO form

Called by: all test files via pytest autodiscovery
Depends on: quotehub.models (Base), quotehub.store, quotehub.dependencies
"""

import os

os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"  # Must be set before importing quotehub modules

import uuid
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from quotehub.diagnostics import DiagnosticsSink
from quotehub.models import (
    Base,
    Customer,
    Quote,
    QuoteInvite,
    QuoteKickoffTask,
    QuoteMessage,
    QuoteMessageRead,
    Supplier,
    SupplierBid,
)
from quotehub.store import SqlThreadStore, reset_capabilities

# ── Time helpers ─────────────────────────────────────────────────────

T0 = datetime(2025, 1, 10, 10, 0, 0)


def at(minutes: int = 0, *, days: int = 0) -> datetime:
    """Naive UTC timestamp ``minutes``/``days`` after T0."""
    return T0 + timedelta(days=days, minutes=minutes)


def iso(minutes: int = 0, *, days: int = 0) -> str:
    """The normalised ISO string the engine reports for at(minutes, days)."""
    return at(minutes, days=days).strftime("%Y-%m-%dT%H:%M:%S.%f") + "+00:00"


# ── Database ─────────────────────────────────────────────────────────


def make_engine(tmp_path, name: str = "inbox.db"):
    return create_engine(
        f"sqlite:///{tmp_path / name}",
        connect_args={"check_same_thread": False},
    )


@pytest.fixture(autouse=True)
def _fresh_capabilities():
    reset_capabilities()
    yield
    reset_capabilities()


@pytest.fixture()
def db_engine(tmp_path):
    """Engine with the full current schema."""
    engine = make_engine(tmp_path)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(db_engine) -> Session:
    session = Session(bind=db_engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def diagnostics() -> DiagnosticsSink:
    return DiagnosticsSink("test")


@pytest.fixture()
def store(db_engine, diagnostics) -> SqlThreadStore:
    """Store over the test database; capabilities are negotiated on creation."""
    return SqlThreadStore(db_engine, diagnostics=diagnostics)


# ── Seeding ──────────────────────────────────────────────────────────


class Seeder:
    """Small factory for inbox rows; every call commits."""

    def __init__(self, session: Session):
        self.session = session

    def _add(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def customer(self, email="buyer@acme.com", user_id="user-cust-1", **kw) -> Customer:
        return self._add(Customer(id=kw.pop("id", str(uuid.uuid4())), user_id=user_id, email=email, **kw))

    def supplier(self, user_id="user-sup-1", primary_email="sales@fab.example", **kw) -> Supplier:
        return self._add(
            Supplier(id=kw.pop("id", str(uuid.uuid4())), user_id=user_id, primary_email=primary_email, **kw)
        )

    def quote(self, id=None, *, customer_email="buyer@acme.com", updated_at=None, **kw) -> Quote:
        return self._add(
            Quote(
                id=id or str(uuid.uuid4()),
                customer_email=customer_email,
                created_at=at(0, days=-30),
                updated_at=updated_at or at(0),
                **kw,
            )
        )

    def message(self, quote_id, role, when: datetime, *, body="", sender_id=None) -> QuoteMessage:
        return self._add(
            QuoteMessage(
                id=str(uuid.uuid4()),
                quote_id=quote_id,
                sender_role=role,
                sender_id=sender_id,
                body=body,
                created_at=when,
            )
        )

    def bid(self, quote_id, supplier_id) -> SupplierBid:
        return self._add(SupplierBid(id=str(uuid.uuid4()), quote_id=quote_id, supplier_id=supplier_id))

    def invite(self, quote_id, supplier_id) -> QuoteInvite:
        return self._add(QuoteInvite(id=str(uuid.uuid4()), quote_id=quote_id, supplier_id=supplier_id))

    def kickoff_task(self, quote_id, supplier_id, key, *, completed=False) -> QuoteKickoffTask:
        return self._add(
            QuoteKickoffTask(
                id=str(uuid.uuid4()),
                quote_id=quote_id,
                supplier_id=supplier_id,
                task_key=key,
                title=key.replace("_", " ").title(),
                completed=completed,
            )
        )

    def read_marker(self, quote_id, user_id, when: datetime) -> QuoteMessageRead:
        return self._add(QuoteMessageRead(quote_id=quote_id, user_id=user_id, last_read_at=when))


@pytest.fixture()
def seed(db_session) -> Seeder:
    return Seeder(db_session)


# ── App ──────────────────────────────────────────────────────────────


@pytest.fixture()
def app():
    from quotehub.main import app as fastapi_app

    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> TestClient:
    """TestClient without lifespan; tests override get_store and the viewer."""
    return TestClient(app)
