"""
services/thread_signals.py — Per-thread role timestamps and reply obligation

For each RFQ thread, works out when each role (customer, supplier, admin)
last wrote, who wrote the most recent message, and from that which role owes
the next reply.

Business Rules:
- Fast path: the precomputed aggregate function, when the deployment has it
- Fallback: one newest-first scan of quote_messages, bounded by
  max(250, min(8000, thread_count * 30)) rows
- The first row seen per thread is its last message; per-role maxima are
  tracked separately
- Rows with an unknown role or no timestamp are skipped
- Every requested thread gets an entry, all-null when nothing was found
- Admin wrote last -> the more recently active counterpart owes the reply;
  equal timestamps go to the customer

Called by: services/inbox_service.py
Depends on: store/base.py, services/store_calls.py
"""

from dataclasses import dataclass
from typing import Literal

from ..diagnostics import DiagnosticsSink
from ..store.base import ThreadStore
from ..store.records import MessageRow, normalize_id, to_iso
from .store_calls import run_store_call

NeedsReplyFrom = Literal["customer", "supplier", "admin", "none", "unknown"]

ROLES: tuple[str, ...] = ("customer", "supplier", "admin")

SCAN_FLOOR = 250
SCAN_CEILING = 8000
SCAN_ROWS_PER_THREAD = 30


@dataclass
class ThreadSignal:
    quote_id: str
    last_message_at: str | None = None
    last_message_author_role: str | None = None
    last_customer_message_at: str | None = None
    last_supplier_message_at: str | None = None
    last_admin_message_at: str | None = None

    def last_at_for(self, role: str) -> str | None:
        return getattr(self, f"last_{role}_message_at")

    def record(self, role: str, created_at: str) -> None:
        current = self.last_at_for(role)
        if current is None or created_at > current:
            setattr(self, f"last_{role}_message_at", created_at)


def normalize_role(value) -> str | None:
    """Known role tag or None. ``provider`` is a legacy spelling of supplier."""
    if not isinstance(value, str):
        return None
    role = value.strip().lower()
    if role == "provider":
        return "supplier"
    return role if role in ROLES else None


def scan_limit(thread_count: int) -> int:
    return max(SCAN_FLOOR, min(SCAN_CEILING, thread_count * SCAN_ROWS_PER_THREAD))


def _unique_ids(quote_ids) -> list[str]:
    seen: dict[str, None] = {}
    for raw in quote_ids or []:
        quote_id = normalize_id(raw)
        if quote_id:
            seen.setdefault(quote_id, None)
    return list(seen)


def empty_signals(quote_ids) -> dict[str, ThreadSignal]:
    return {quote_id: ThreadSignal(quote_id=quote_id) for quote_id in _unique_ids(quote_ids)}


def signals_from_messages(quote_ids, rows: list[MessageRow]) -> dict[str, ThreadSignal]:
    """Fold a newest-first message scan into per-thread signals."""
    signals = empty_signals(quote_ids)
    for row in rows:
        signal = signals.get(normalize_id(row.quote_id))
        if signal is None:
            continue
        created_at = to_iso(row.created_at)
        if not created_at:
            continue
        role = normalize_role(row.sender_role)
        if role is None:
            continue
        if signal.last_message_at is None:
            signal.last_message_at = created_at
            signal.last_message_author_role = role
        signal.record(role, created_at)
    return signals


def signals_from_aggregate(quote_ids, rows: list[dict]) -> dict[str, ThreadSignal]:
    """Map aggregate rows onto signals; threads without a row keep defaults."""
    signals = empty_signals(quote_ids)
    for row in rows:
        quote_id = normalize_id(row.get("quote_id"))
        if quote_id not in signals:
            continue
        signals[quote_id] = ThreadSignal(
            quote_id=quote_id,
            last_message_at=to_iso(row.get("last_message_at")),
            last_message_author_role=normalize_role(row.get("last_message_author_role")),
            last_customer_message_at=to_iso(row.get("last_customer_message_at")),
            last_supplier_message_at=to_iso(row.get("last_supplier_message_at")),
            last_admin_message_at=to_iso(row.get("last_admin_message_at")),
        )
    return signals


def _owes(counterpart_at: str | None, author_at: str | None) -> bool:
    """Counterpart owes a reply if it never wrote, or wrote before the author's latest."""
    if not counterpart_at:
        return True
    return bool(author_at) and counterpart_at < author_at


def compute_needs_reply_from(signal: ThreadSignal) -> NeedsReplyFrom:
    """Which role owes the next reply on this thread. Always one of five values."""
    last_role = signal.last_message_author_role
    if not last_role or not signal.last_message_at:
        return "none"

    customer_at = signal.last_customer_message_at
    supplier_at = signal.last_supplier_message_at
    admin_at = signal.last_admin_message_at

    if last_role == "customer":
        if _owes(supplier_at, customer_at):
            return "supplier"
        if _owes(admin_at, customer_at):
            return "admin"
        return "none"

    if last_role == "supplier":
        if _owes(customer_at, supplier_at):
            return "customer"
        if _owes(admin_at, supplier_at):
            return "admin"
        return "none"

    if last_role == "admin":
        if not customer_at and not supplier_at:
            return "none"
        # Ties go to the customer
        if customer_at and (not supplier_at or customer_at >= supplier_at):
            return "customer"
        return "supplier"

    return "unknown"


async def load_thread_signals(
    store: ThreadStore,
    quote_ids,
    *,
    diagnostics: DiagnosticsSink,
    timeout: float,
    prefer_aggregate: bool = False,
) -> dict[str, ThreadSignal]:
    """Signals for every id in ``quote_ids``; never raises."""
    ids = _unique_ids(quote_ids)
    if not ids:
        return {}
    context = {"quote_ids_count": len(ids)}

    if prefer_aggregate and store.capabilities.supports_aggregate:
        rows = await run_store_call(
            store.aggregate_thread_signals,
            ids,
            label="aggregate_thread_signals",
            default=None,
            diagnostics=diagnostics,
            timeout=timeout,
            context=context,
        )
        if rows is not None:
            return signals_from_aggregate(ids, rows)

    rows = await run_store_call(
        store.scan_messages_newest_first,
        ids,
        scan_limit(len(ids)),
        label="scan_messages_newest_first",
        default=[],
        diagnostics=diagnostics,
        timeout=timeout,
        context=context,
    )
    return signals_from_messages(ids, rows)
