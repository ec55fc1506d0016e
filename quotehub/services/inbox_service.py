"""
services/inbox_service.py — Cross-role message inbox

Builds the customer, supplier and admin message inboxes: resolves the
threads a viewer can see, then loads reply signals, kickoff progress and
unread summaries for them concurrently and joins everything into sorted
InboxRow objects.

Business Rules:
- Only threads with at least one message are inbox rows
- One row per thread per computation
- last_message_at comes from the unread summary preview, falling back to the
  thread signal; rows sort newest first (stable for ties)
- Empty previews render as "—"
- needs_reply_from is "unknown" when a thread has no signal entry
- Reply signals use the aggregate fast path for the admin view only
- Never raises: every dependency degrades to an empty default

Called by: routers/inbox.py
Depends on: services/visibility.py, thread_signals.py, kickoff_status.py,
            unread_summary.py, quote_labels.py
"""

import asyncio

from ..config import settings
from ..diagnostics import DiagnosticsSink
from ..schemas.inbox import InboxRow, RoleView
from ..store.base import ThreadStore
from ..store.records import ThreadRecord, normalize_id
from .kickoff_status import KickoffTotals, has_winner, kickoff_status_for, load_kickoff_state
from .quote_labels import derive_rfq_label, quote_status_label
from .store_calls import InboxOptions
from .thread_signals import ThreadSignal, compute_needs_reply_from, load_thread_signals
from .unread_summary import UnreadSummary, load_unread_summary
from .visibility import Viewer, resolve_visible_threads

EMPTY_PREVIEW = "—"


def build_inbox_rows(
    *,
    role_view: RoleView,
    threads: list[ThreadRecord],
    unread_by_quote_id: dict[str, UnreadSummary],
    signals_by_quote_id: dict[str, ThreadSignal],
    kickoff_completed_at_by_quote_id: dict[str, str | None],
    kickoff_totals_by_key: dict[str, KickoffTotals],
) -> list[InboxRow]:
    rows: list[InboxRow] = []
    seen: set[str] = set()

    for thread in threads:
        quote_id = normalize_id(thread.id)
        if not quote_id or quote_id in seen:
            continue

        summary = unread_by_quote_id.get(quote_id)
        last_message = summary.last_message if summary else None
        signal = signals_by_quote_id.get(quote_id)

        last_message_at = (last_message.created_at if last_message else None) or (
            signal.last_message_at if signal else None
        )
        if not last_message_at:
            continue
        seen.add(quote_id)

        preview = (last_message.body if last_message else "").strip()
        unread_count = int(summary.unread_count or 0) if summary else 0

        rows.append(
            InboxRow(
                quote_id=quote_id,
                rfq_label=derive_rfq_label(thread),
                role_view=role_view,
                last_message_at=last_message_at,
                last_message_preview=preview or EMPTY_PREVIEW,
                needs_reply_from=compute_needs_reply_from(signal) if signal else "unknown",
                unread_count=max(0, unread_count),
                quote_status=quote_status_label(thread.status),
                has_winner=has_winner(thread),
                kickoff_status=kickoff_status_for(
                    thread, kickoff_completed_at_by_quote_id, kickoff_totals_by_key
                ),
            )
        )

    rows.sort(key=lambda row: row.last_message_at, reverse=True)
    return rows


async def _safe_unread(provider, store, quote_ids, viewer, options, diagnostics) -> dict[str, UnreadSummary]:
    try:
        return await provider(
            store,
            quote_ids,
            viewer.user_id,
            diagnostics=diagnostics,
            timeout=options.timeout,
            reads_enabled=options.reads_enabled,
        )
    except Exception as e:
        diagnostics.error("unread summary provider failed", quote_ids_count=len(quote_ids), error=str(e)[:200])
        return {}


async def load_inbox(
    store: ThreadStore,
    viewer: Viewer,
    *,
    options: InboxOptions | None = None,
    diagnostics: DiagnosticsSink | None = None,
    unread_provider=None,
) -> list[InboxRow]:
    """Sorted inbox rows for ``viewer``. Always returns a list."""
    options = options or InboxOptions.from_settings(settings)
    diagnostics = diagnostics or getattr(store, "diagnostics", None) or DiagnosticsSink("inbox")
    provider = unread_provider or load_unread_summary

    threads = await resolve_visible_threads(
        store, viewer, diagnostics=diagnostics, timeout=options.timeout, admin_limit=options.admin_limit
    )
    if not threads:
        return []
    quote_ids = [thread.id for thread in threads]

    signals, (completed_at, totals), unread = await asyncio.gather(
        load_thread_signals(
            store,
            quote_ids,
            diagnostics=diagnostics,
            timeout=options.timeout,
            prefer_aggregate=viewer.role == "admin",
        ),
        load_kickoff_state(store, threads, diagnostics=diagnostics, timeout=options.timeout),
        _safe_unread(provider, store, quote_ids, viewer, options, diagnostics),
    )

    return build_inbox_rows(
        role_view=viewer.role,
        threads=threads,
        unread_by_quote_id=unread,
        signals_by_quote_id=signals,
        kickoff_completed_at_by_quote_id=completed_at,
        kickoff_totals_by_key=totals,
    )


async def load_customer_inbox(
    store: ThreadStore, *, user_id: str | None, email: str | None, **kwargs
) -> list[InboxRow]:
    return await load_inbox(store, Viewer(role="customer", user_id=user_id, email=email), **kwargs)


async def load_supplier_inbox(store: ThreadStore, *, user_id: str | None, **kwargs) -> list[InboxRow]:
    return await load_inbox(store, Viewer(role="supplier", user_id=user_id), **kwargs)


async def load_admin_inbox(store: ThreadStore, *, user_id: str | None, **kwargs) -> list[InboxRow]:
    return await load_inbox(store, Viewer(role="admin", user_id=user_id), **kwargs)
