"""
services/visibility.py — Which RFQ threads a viewer may see

Business Rules:
- Customer: resolved by user id, then by normalized email; threads whose
  customer_email matches case-insensitively are visible
- Supplier: union of awarded, bid, invite and assigned-email signals; each
  signal is optional and a failing one contributes nothing
- Admin: the most recently updated threads, capped (working set, not a rule)
- Failure of a required lookup (viewer identity, thread listing) yields an
  empty result; nothing here raises

Called by: services/inbox_service.py
Depends on: store/base.py, services/store_calls.py
"""

import asyncio
from dataclasses import dataclass
from typing import Literal

from ..diagnostics import DiagnosticsSink
from ..store.base import ThreadStore
from ..store.records import ThreadRecord, normalize_email, normalize_id
from .store_calls import run_store_call

ViewerRole = Literal["customer", "supplier", "admin"]


@dataclass(frozen=True)
class Viewer:
    role: ViewerRole
    user_id: str | None = None
    email: str | None = None


async def resolve_customer_threads(
    store: ThreadStore, viewer: Viewer, *, diagnostics: DiagnosticsSink, timeout: float
) -> list[ThreadRecord]:
    user_id = normalize_id(viewer.user_id)
    email = normalize_email(viewer.email)

    customer = None
    if user_id:
        customer = await run_store_call(
            store.get_customer_by_user_id, user_id,
            label="get_customer_by_user_id", default=None, diagnostics=diagnostics, timeout=timeout,
        )
    if customer is None and email:
        customer = await run_store_call(
            store.get_customer_by_email, email,
            label="get_customer_by_email", default=None, diagnostics=diagnostics, timeout=timeout,
        )

    customer_email = normalize_email(customer.email if customer else None) or email
    if not customer_email:
        return []

    return await run_store_call(
        store.list_threads_by_customer_email, customer_email,
        label="list_threads_by_customer_email", default=[], diagnostics=diagnostics, timeout=timeout,
    )


async def supplier_visible_thread_ids(
    store: ThreadStore, supplier_id: str, supplier_email: str | None, *, diagnostics: DiagnosticsSink, timeout: float
) -> set[str]:
    """Union of the four supplier signals, each run concurrently."""

    async def _assigned() -> list[str]:
        if not normalize_email(supplier_email):
            return []
        return await run_store_call(
            store.list_assigned_thread_ids, supplier_email,
            label="list_assigned_thread_ids", default=[], diagnostics=diagnostics, timeout=timeout,
            context={"supplier_id": supplier_id},
        )

    results = await asyncio.gather(
        run_store_call(
            store.list_awarded_thread_ids, supplier_id,
            label="list_awarded_thread_ids", default=[], diagnostics=diagnostics, timeout=timeout,
            context={"supplier_id": supplier_id},
        ),
        run_store_call(
            store.list_bid_thread_ids, supplier_id,
            label="list_bid_thread_ids", default=[], diagnostics=diagnostics, timeout=timeout,
            context={"supplier_id": supplier_id},
        ),
        run_store_call(
            store.list_invite_thread_ids, supplier_id,
            label="list_invite_thread_ids", default=[], diagnostics=diagnostics, timeout=timeout,
            context={"supplier_id": supplier_id},
        ),
        _assigned(),
    )

    quote_ids: set[str] = set()
    for ids in results:
        quote_ids.update(i for i in (normalize_id(raw) for raw in ids) if i)
    return quote_ids


async def resolve_supplier_threads(
    store: ThreadStore, viewer: Viewer, *, diagnostics: DiagnosticsSink, timeout: float
) -> list[ThreadRecord]:
    user_id = normalize_id(viewer.user_id)
    if not user_id:
        return []
    supplier = await run_store_call(
        store.get_supplier_by_user_id, user_id,
        label="get_supplier_by_user_id", default=None, diagnostics=diagnostics, timeout=timeout,
    )
    supplier_id = normalize_id(supplier.id) if supplier else ""
    if not supplier_id:
        return []

    quote_ids = await supplier_visible_thread_ids(
        store, supplier_id, supplier.primary_email, diagnostics=diagnostics, timeout=timeout
    )
    if not quote_ids:
        return []
    return await run_store_call(
        store.list_threads_by_ids, sorted(quote_ids),
        label="list_threads_by_ids", default=[], diagnostics=diagnostics, timeout=timeout,
        context={"supplier_id": supplier_id, "quote_ids_count": len(quote_ids)},
    )


async def resolve_admin_threads(
    store: ThreadStore, viewer: Viewer, *, diagnostics: DiagnosticsSink, timeout: float, limit: int
) -> list[ThreadRecord]:
    if not normalize_id(viewer.user_id):
        return []
    return await run_store_call(
        store.list_threads_recent_first, limit,
        label="list_threads_recent_first", default=[], diagnostics=diagnostics, timeout=timeout,
    )


async def resolve_visible_threads(
    store: ThreadStore,
    viewer: Viewer,
    *,
    diagnostics: DiagnosticsSink,
    timeout: float,
    admin_limit: int = 800,
) -> list[ThreadRecord]:
    """Visible thread records for ``viewer``, deduplicated by id."""
    if viewer.role == "customer":
        threads = await resolve_customer_threads(store, viewer, diagnostics=diagnostics, timeout=timeout)
    elif viewer.role == "supplier":
        threads = await resolve_supplier_threads(store, viewer, diagnostics=diagnostics, timeout=timeout)
    elif viewer.role == "admin":
        threads = await resolve_admin_threads(
            store, viewer, diagnostics=diagnostics, timeout=timeout, limit=admin_limit
        )
    else:
        return []

    unique: dict[str, ThreadRecord] = {}
    for thread in threads:
        quote_id = normalize_id(thread.id)
        if quote_id and quote_id not in unique:
            unique[quote_id] = thread
    return list(unique.values())


async def resolve_visible_thread_ids(
    store: ThreadStore,
    viewer: Viewer,
    *,
    diagnostics: DiagnosticsSink,
    timeout: float,
    admin_limit: int = 800,
) -> set[str]:
    threads = await resolve_visible_threads(
        store, viewer, diagnostics=diagnostics, timeout=timeout, admin_limit=admin_limit
    )
    return {thread.id for thread in threads}
