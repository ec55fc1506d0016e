"""
test_thread_signals.py — Tests for per-thread role signals and reply obligation

Covers the reply-obligation rules (customer, supplier and admin last),
the admin tie-break, unknown roles, signal-map completeness, the bounded
message scan and the aggregate fast path.

Business Rules:
- The role that last wrote is owed a reply by any counterpart that has not
  answered since
- Admin last: the more recently active counterpart owes; ties go to customer
- Every requested thread appears in the signal map

Called by: pytest
Depends on: conftest.py fixtures, quotehub.services.thread_signals
"""

from unittest.mock import MagicMock

import pytest

from conftest import at, iso
from quotehub.store.records import MessageRow
from quotehub.services.thread_signals import (
    ThreadSignal,
    compute_needs_reply_from,
    load_thread_signals,
    normalize_role,
    scan_limit,
    signals_from_aggregate,
    signals_from_messages,
)


def _signal(last_role, last_at, customer=None, supplier=None, admin=None) -> ThreadSignal:
    return ThreadSignal(
        quote_id="q1",
        last_message_at=last_at,
        last_message_author_role=last_role,
        last_customer_message_at=customer,
        last_supplier_message_at=supplier,
        last_admin_message_at=admin,
    )


# ═══════════════════════════════════════════════════════════════════════
#  Reply obligation
# ═══════════════════════════════════════════════════════════════════════


class TestNeedsReplyFrom:
    def test_customer_last_supplier_reply_older(self):
        """Customer wrote last, supplier's reply predates it -> supplier owes."""
        sig = _signal(
            "customer",
            "2025-01-10T10:00:00.000000+00:00",
            customer="2025-01-10T10:00:00.000000+00:00",
            supplier="2025-01-09T08:00:00.000000+00:00",
        )
        assert compute_needs_reply_from(sig) == "supplier"

    def test_customer_last_supplier_never_replied(self):
        sig = _signal("customer", iso(0), customer=iso(0))
        assert compute_needs_reply_from(sig) == "supplier"

    def test_customer_last_admin_owes_when_supplier_current(self):
        # Supplier has the same timestamp as the customer: not strictly older
        sig = _signal("customer", iso(5), customer=iso(5), supplier=iso(5), admin=iso(1))
        assert compute_needs_reply_from(sig) == "admin"

    def test_customer_last_everyone_current(self):
        sig = _signal("customer", iso(5), customer=iso(5), supplier=iso(5), admin=iso(5))
        assert compute_needs_reply_from(sig) == "none"

    def test_supplier_last_customer_owes(self):
        sig = _signal("supplier", iso(10), customer=iso(1), supplier=iso(10), admin=iso(20))
        assert compute_needs_reply_from(sig) == "customer"

    def test_supplier_last_admin_owes(self):
        sig = _signal("supplier", iso(10), customer=iso(10), supplier=iso(10))
        assert compute_needs_reply_from(sig) == "admin"

    def test_admin_last_more_recent_counterpart_owes(self):
        """Admin wrote last; supplier was active more recently than customer."""
        sig = _signal(
            "admin",
            "2025-01-10T10:00:00.000000+00:00",
            customer="2025-01-08T00:00:00.000000+00:00",
            supplier="2025-01-09T00:00:00.000000+00:00",
            admin="2025-01-10T10:00:00.000000+00:00",
        )
        assert compute_needs_reply_from(sig) == "supplier"

    def test_admin_last_customer_more_recent(self):
        sig = _signal("admin", iso(10), customer=iso(5), supplier=iso(1), admin=iso(10))
        assert compute_needs_reply_from(sig) == "customer"

    def test_admin_last_tie_goes_to_customer(self):
        sig = _signal("admin", iso(10), customer=iso(5), supplier=iso(5), admin=iso(10))
        assert compute_needs_reply_from(sig) == "customer"

    def test_admin_last_only_supplier_active(self):
        sig = _signal("admin", iso(10), supplier=iso(5), admin=iso(10))
        assert compute_needs_reply_from(sig) == "supplier"

    def test_admin_alone(self):
        sig = _signal("admin", iso(10), admin=iso(10))
        assert compute_needs_reply_from(sig) == "none"

    def test_no_messages(self):
        assert compute_needs_reply_from(ThreadSignal(quote_id="q1")) == "none"

    def test_unrecognised_last_role(self):
        sig = _signal("robot", iso(1))
        assert compute_needs_reply_from(sig) == "unknown"

    def test_always_one_of_five_values(self):
        values = {None, iso(1), iso(2)}
        for role in (None, "customer", "supplier", "admin", "other"):
            for c in values:
                for s in values:
                    for a in values:
                        result = compute_needs_reply_from(_signal(role, iso(3), c, s, a))
                        assert result in {"customer", "supplier", "admin", "none", "unknown"}


# ═══════════════════════════════════════════════════════════════════════
#  Signal folding
# ═══════════════════════════════════════════════════════════════════════


class TestSignalsFromMessages:
    def test_first_row_is_last_message(self):
        rows = [
            MessageRow("q1", iso(10), "supplier"),
            MessageRow("q1", iso(5), "customer"),
            MessageRow("q1", iso(1), "supplier"),
        ]
        sig = signals_from_messages(["q1"], rows)["q1"]
        assert sig.last_message_at == iso(10)
        assert sig.last_message_author_role == "supplier"
        assert sig.last_supplier_message_at == iso(10)
        assert sig.last_customer_message_at == iso(5)
        assert sig.last_admin_message_at is None

    def test_every_requested_thread_present(self):
        signals = signals_from_messages(["q1", "q2", " q3 ", "", None], [])
        assert set(signals) == {"q1", "q2", "q3"}
        assert all(s.last_message_at is None for s in signals.values())

    def test_rows_for_unrequested_threads_ignored(self):
        signals = signals_from_messages(["q1"], [MessageRow("zz", iso(1), "customer")])
        assert list(signals) == ["q1"]
        assert signals["q1"].last_message_at is None

    def test_unknown_role_and_missing_timestamp_skipped(self):
        rows = [
            MessageRow("q1", iso(9), "bot"),
            MessageRow("q1", None, "customer"),
            MessageRow("q1", iso(3), "admin"),
        ]
        sig = signals_from_messages(["q1"], rows)["q1"]
        assert sig.last_message_author_role == "admin"
        assert sig.last_message_at == iso(3)

    def test_provider_is_supplier(self):
        assert normalize_role("Provider") == "supplier"
        assert normalize_role(" ADMIN ") == "admin"
        assert normalize_role("vendor") is None
        assert normalize_role(3) is None

    def test_deterministic(self):
        rows = [MessageRow("q1", iso(2), "customer"), MessageRow("q2", iso(1), "admin")]
        assert signals_from_messages(["q1", "q2"], rows) == signals_from_messages(["q1", "q2"], rows)


class TestSignalsFromAggregate:
    def test_maps_rows_and_fills_gaps(self):
        rows = [
            {
                "quote_id": "q1",
                "last_message_at": "2025-01-10T10:00:00Z",
                "last_message_author_role": "provider",
                "last_customer_message_at": None,
                "last_supplier_message_at": "2025-01-10T10:00:00Z",
                "last_admin_message_at": None,
            }
        ]
        signals = signals_from_aggregate(["q1", "q2"], rows)
        assert signals["q1"].last_message_author_role == "supplier"
        assert signals["q1"].last_message_at == "2025-01-10T10:00:00.000000+00:00"
        assert signals["q2"] == ThreadSignal(quote_id="q2")


def test_scan_limit_bounds():
    assert scan_limit(1) == 250
    assert scan_limit(100) == 3000
    assert scan_limit(10_000) == 8000


# ═══════════════════════════════════════════════════════════════════════
#  Loading from the store
# ═══════════════════════════════════════════════════════════════════════


class TestLoadThreadSignals:
    @pytest.mark.asyncio
    async def test_scan_against_database(self, store, seed, diagnostics):
        seed.quote("t1")
        seed.message("t1", "supplier", at(0, days=-1))
        seed.message("t1", "customer", at(0))
        seed.quote("t2")

        signals = await load_thread_signals(store, ["t1", "t2"], diagnostics=diagnostics, timeout=5)

        assert set(signals) == {"t1", "t2"}
        assert signals["t1"].last_message_author_role == "customer"
        assert signals["t1"].last_message_at == iso(0)
        assert signals["t1"].last_supplier_message_at == iso(0, days=-1)
        assert compute_needs_reply_from(signals["t1"]) == "supplier"
        assert signals["t2"].last_message_at is None

    @pytest.mark.asyncio
    async def test_empty_ids(self, store, diagnostics):
        assert await load_thread_signals(store, [], diagnostics=diagnostics, timeout=5) == {}

    @pytest.mark.asyncio
    async def test_aggregate_used_when_preferred_and_supported(self, diagnostics):
        fake = MagicMock()
        fake.capabilities.supports_aggregate = True
        fake.aggregate_thread_signals.return_value = [
            {"quote_id": "q1", "last_message_at": iso(1), "last_message_author_role": "customer",
             "last_customer_message_at": iso(1)}
        ]

        signals = await load_thread_signals(
            fake, ["q1"], diagnostics=diagnostics, timeout=5, prefer_aggregate=True
        )

        assert signals["q1"].last_customer_message_at == iso(1)
        fake.scan_messages_newest_first.assert_not_called()

    @pytest.mark.asyncio
    async def test_aggregate_unavailable_falls_back_to_scan(self, diagnostics):
        fake = MagicMock()
        fake.capabilities.supports_aggregate = True
        fake.aggregate_thread_signals.return_value = None
        fake.scan_messages_newest_first.return_value = [MessageRow("q1", iso(4), "admin")]

        signals = await load_thread_signals(
            fake, ["q1"], diagnostics=diagnostics, timeout=5, prefer_aggregate=True
        )

        assert signals["q1"].last_message_author_role == "admin"
        fake.scan_messages_newest_first.assert_called_once_with(["q1"], 250)

    @pytest.mark.asyncio
    async def test_store_failure_yields_empty_signals(self, diagnostics):
        fake = MagicMock()
        fake.capabilities.supports_aggregate = False
        fake.scan_messages_newest_first.side_effect = RuntimeError("connection reset")

        signals = await load_thread_signals(fake, ["q1", "q2"], diagnostics=diagnostics, timeout=5)

        assert signals == {"q1": ThreadSignal(quote_id="q1"), "q2": ThreadSignal(quote_id="q2")}
