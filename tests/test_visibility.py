"""
test_visibility.py — Tests for which threads each role can see

Covers customer resolution (user id, email fallback, raw viewer email),
the supplier union of awarded / bid / invite / assigned signals, the admin
working set, and degraded deployments without quote_invites.

Business Rules:
- Supplier visibility is the union of every available signal
- A missing optional relation contributes nothing and raises nothing
- No viewer identity -> empty result

Called by: pytest
Depends on: conftest.py fixtures, quotehub.services.visibility
"""

from unittest.mock import MagicMock

import pytest

from conftest import at, make_engine
from quotehub.diagnostics import DiagnosticsSink
from quotehub.models import Base
from quotehub.services.visibility import (
    Viewer,
    resolve_visible_thread_ids,
    resolve_visible_threads,
    supplier_visible_thread_ids,
)
from quotehub.store import SqlThreadStore
from quotehub.store.records import ThreadRecord


async def _ids(store, viewer, diagnostics, **kw):
    return await resolve_visible_thread_ids(store, viewer, diagnostics=diagnostics, timeout=5, **kw)


# ── Customer ─────────────────────────────────────────────────────────


class TestCustomerVisibility:
    @pytest.mark.asyncio
    async def test_by_user_id(self, store, seed, diagnostics):
        seed.customer(email="Buyer@Acme.com", user_id="u1")
        seed.quote("q1", customer_email="buyer@acme.com")
        seed.quote("q2", customer_email="BUYER@ACME.COM")
        seed.quote("q3", customer_email="someone@else.com")

        assert await _ids(store, Viewer("customer", user_id="u1"), diagnostics) == {"q1", "q2"}

    @pytest.mark.asyncio
    async def test_email_fallback_when_no_customer_row(self, store, seed, diagnostics):
        seed.quote("q1", customer_email="walkin@acme.com")

        viewer = Viewer("customer", user_id="unknown-user", email=" WalkIn@Acme.com ")
        assert await _ids(store, viewer, diagnostics) == {"q1"}

    @pytest.mark.asyncio
    async def test_no_identity(self, store, seed, diagnostics):
        seed.quote("q1")
        assert await _ids(store, Viewer("customer"), diagnostics) == set()


# ── Supplier ─────────────────────────────────────────────────────────


class TestSupplierVisibility:
    @pytest.mark.asyncio
    async def test_union_of_signals(self, store, seed, diagnostics):
        sup = seed.supplier(user_id="u-sup", primary_email="Sales@Fab.example")
        other = seed.supplier(user_id="u-other", primary_email="x@other.example")
        seed.quote("awarded", awarded_supplier_id=sup.id)
        seed.quote("bid")
        seed.bid("bid", sup.id)
        seed.quote("invited")
        seed.invite("invited", sup.id)
        seed.quote("assigned", assigned_supplier_email="sales@fab.example")
        seed.quote("both")
        seed.bid("both", sup.id)
        seed.invite("both", sup.id)
        seed.quote("not-mine", awarded_supplier_id=other.id)
        seed.bid("not-mine", other.id)

        ids = await _ids(store, Viewer("supplier", user_id="u-sup"), diagnostics)

        assert ids == {"awarded", "bid", "invited", "assigned", "both"}

    @pytest.mark.asyncio
    async def test_unknown_supplier(self, store, seed, diagnostics):
        seed.quote("q1")
        assert await _ids(store, Viewer("supplier", user_id="nobody"), diagnostics) == set()

    @pytest.mark.asyncio
    async def test_bid_visible_without_invites_relation(self, tmp_path, diagnostics):
        """Bid signal still works when the deployment has no quote_invites."""
        engine = make_engine(tmp_path, "no_invites.db")
        tables = [t for name, t in Base.metadata.tables.items() if name != "quote_invites"]
        Base.metadata.create_all(bind=engine, tables=tables)
        with engine.begin() as conn:
            conn.execute(Base.metadata.tables["suppliers"].insert(), {"id": "s1", "user_id": "u-s"})
            conn.execute(
                Base.metadata.tables["quotes"].insert(),
                {"id": "t6", "customer_email": "c@acme.com", "updated_at": at(0)},
            )
            conn.execute(
                Base.metadata.tables["supplier_bids"].insert(),
                {"id": "b1", "quote_id": "t6", "supplier_id": "s1"},
            )
        store = SqlThreadStore(engine, diagnostics=diagnostics)

        ids = await _ids(store, Viewer("supplier", user_id="u-s"), diagnostics)

        assert ids == {"t6"}
        assert diagnostics.has_seen("missing_schema:quote_invites")
        engine.dispose()

    @pytest.mark.asyncio
    async def test_failing_signal_contributes_nothing(self):
        fake = MagicMock()
        fake.list_awarded_thread_ids.return_value = ["q1"]
        fake.list_bid_thread_ids.side_effect = RuntimeError("boom")
        fake.list_invite_thread_ids.return_value = ["q2", " q2 "]
        fake.list_assigned_thread_ids.return_value = []

        ids = await supplier_visible_thread_ids(
            fake, "s1", "s@fab.example", diagnostics=DiagnosticsSink("t"), timeout=5
        )

        assert ids == {"q1", "q2"}

    @pytest.mark.asyncio
    async def test_assigned_skipped_without_email(self):
        fake = MagicMock()
        for name in ("list_awarded_thread_ids", "list_bid_thread_ids", "list_invite_thread_ids"):
            getattr(fake, name).return_value = []

        ids = await supplier_visible_thread_ids(fake, "s1", None, diagnostics=DiagnosticsSink("t"), timeout=5)

        assert ids == set()
        fake.list_assigned_thread_ids.assert_not_called()


# ── Admin ────────────────────────────────────────────────────────────


class TestAdminVisibility:
    @pytest.mark.asyncio
    async def test_recent_first_capped(self, store, seed, diagnostics):
        for i in range(5):
            seed.quote(f"q{i}", updated_at=at(i))

        threads = await resolve_visible_threads(
            store, Viewer("admin", user_id="admin-1"), diagnostics=diagnostics, timeout=5, admin_limit=3
        )

        assert [t.id for t in threads] == ["q4", "q3", "q2"]

    @pytest.mark.asyncio
    async def test_requires_identity(self, store, seed, diagnostics):
        seed.quote("q1")
        assert await _ids(store, Viewer("admin"), diagnostics) == set()


@pytest.mark.asyncio
async def test_duplicates_collapsed():
    fake = MagicMock()
    fake.list_threads_recent_first.return_value = [ThreadRecord(id="q1"), ThreadRecord(id="q1"), ThreadRecord(id="")]

    threads = await resolve_visible_threads(
        fake, Viewer("admin", user_id="a"), diagnostics=DiagnosticsSink("t"), timeout=5
    )

    assert [t.id for t in threads] == ["q1"]


@pytest.mark.asyncio
async def test_unknown_role():
    assert await resolve_visible_threads(
        MagicMock(), Viewer("auditor", user_id="a"), diagnostics=DiagnosticsSink("t"), timeout=5
    ) == []
