"""
services/unread_summary.py — Unread counts and last-message previews

Business Rules:
- Every requested thread gets a summary (0 unread, no preview by default)
- Preview = newest message per thread, whitespace squashed, 80 chars max
- Unread counting needs read tracking enabled AND quote_message_reads
  present; otherwise counts stay 0 and previews still load
- A message is unread when someone else sent it after the viewer's
  last_read_at; threads without a marker count from the epoch

Called by: services/inbox_service.py
Depends on: store/base.py, services/store_calls.py
"""

import asyncio
import re
from dataclasses import dataclass

from ..diagnostics import DiagnosticsSink
from ..store.base import ThreadStore
from ..store.records import PreviewRow, ReadMarker, normalize_id, to_iso
from .store_calls import run_store_call

EPOCH = "1970-01-01T00:00:00.000000+00:00"
PREVIEW_MAX_LEN = 80

_WHITESPACE = re.compile(r"\s+")


@dataclass
class LastMessage:
    body: str
    created_at: str
    sender_role: str
    sender_id: str | None = None


@dataclass
class UnreadSummary:
    quote_id: str
    unread_count: int = 0
    last_message: LastMessage | None = None


def truncate_preview(value, max_len: int = PREVIEW_MAX_LEN) -> str:
    raw = value if isinstance(value, str) else ""
    squashed = _WHITESPACE.sub(" ", raw).strip()
    if len(squashed) <= max_len:
        return squashed
    return squashed[: max(0, max_len - 1)] + "…"


def preview_limit(thread_count: int) -> int:
    return max(50, min(1000, thread_count * 8))


def unread_limit(thread_count: int) -> int:
    return max(250, min(2500, thread_count * 25))


def earliest_last_read(quote_ids: list[str], markers: dict[str, str]) -> str:
    if any(quote_id not in markers for quote_id in quote_ids):
        return EPOCH
    return min(markers.values(), default=EPOCH)


def apply_previews(summaries: dict[str, UnreadSummary], rows: list[PreviewRow]) -> None:
    for row in rows:
        summary = summaries.get(normalize_id(row.quote_id))
        created_at = to_iso(row.created_at)
        if summary is None or summary.last_message is not None or not created_at:
            continue
        summary.last_message = LastMessage(
            body=truncate_preview(row.body),
            created_at=created_at,
            sender_role=row.sender_role or "admin",
            sender_id=row.sender_id,
        )


def apply_unread_counts(
    summaries: dict[str, UnreadSummary], rows: list[PreviewRow], markers: dict[str, str], viewer_id: str
) -> None:
    for row in rows:
        quote_id = normalize_id(row.quote_id)
        summary = summaries.get(quote_id)
        created_at = to_iso(row.created_at)
        if summary is None or not created_at:
            continue
        if row.sender_id and row.sender_id == viewer_id:
            continue
        if created_at > markers.get(quote_id, EPOCH):
            summary.unread_count += 1


async def load_unread_summary(
    store: ThreadStore,
    quote_ids,
    user_id: str | None,
    *,
    diagnostics: DiagnosticsSink,
    timeout: float,
    reads_enabled: bool = False,
) -> dict[str, UnreadSummary]:
    ids = [i for i in dict.fromkeys(normalize_id(q) for q in quote_ids or []) if i]
    summaries = {quote_id: UnreadSummary(quote_id=quote_id) for quote_id in ids}
    if not ids:
        return summaries
    viewer_id = normalize_id(user_id)
    context = {"quote_ids_count": len(ids)}

    async def _markers() -> list[ReadMarker] | None:
        if not reads_enabled or not viewer_id:
            return None
        return await run_store_call(
            store.list_read_markers, viewer_id, ids,
            label="list_read_markers", default=None, diagnostics=diagnostics, timeout=timeout,
            context=context,
        )

    preview_rows, marker_rows = await asyncio.gather(
        run_store_call(
            store.scan_messages_for_preview, ids, preview_limit(len(ids)),
            label="scan_messages_for_preview", default=[], diagnostics=diagnostics, timeout=timeout,
            context=context,
        ),
        _markers(),
    )
    apply_previews(summaries, preview_rows)

    if marker_rows is None:
        return summaries

    markers = {m.quote_id: m.last_read_at for m in marker_rows}
    unread_rows = await run_store_call(
        store.scan_unread_messages, ids, viewer_id, earliest_last_read(ids, markers), unread_limit(len(ids)),
        label="scan_unread_messages", default=[], diagnostics=diagnostics, timeout=timeout,
        context=context,
    )
    apply_unread_counts(summaries, unread_rows, markers, viewer_id)
    return summaries
