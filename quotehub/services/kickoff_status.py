"""
services/kickoff_status.py — Post-award kickoff checklist progress

Business Rules:
- A quote has a winner if awarded_at, awarded_bid_id or awarded_supplier_id
  is set, or its status is "won"
- Only tasks belonging to the recorded winning supplier count toward totals
- n/a (no winner) → complete (kickoff_completed_at stamped, or
  completed >= total > 0) → not_started (no tasks or none done) → in_progress
- completed > total is treated as complete, never as an error

Called by: services/inbox_service.py
Depends on: store/base.py, services/store_calls.py
"""

import asyncio
from dataclasses import dataclass
from typing import Literal

from ..diagnostics import DiagnosticsSink
from ..store.base import ThreadStore
from ..store.records import KickoffTaskRow, ThreadRecord, normalize_id
from .store_calls import run_store_call

KickoffStatus = Literal["not_started", "in_progress", "complete", "n/a"]


@dataclass
class KickoffTotals:
    total: int = 0
    completed: int = 0


def has_winner(thread: ThreadRecord) -> bool:
    status = (thread.status or "").strip().lower()
    return bool(
        thread.awarded_at
        or thread.awarded_bid_id
        or thread.awarded_supplier_id
        or status == "won"
    )


def kickoff_key(quote_id: str, supplier_id: str) -> str:
    return f"{quote_id}:{supplier_id}"


def winner_pairs(threads: list[ThreadRecord]) -> dict[str, str]:
    """quote id → recorded winning supplier id, for threads with a winner."""
    pairs: dict[str, str] = {}
    for thread in threads:
        quote_id = normalize_id(thread.id)
        supplier_id = normalize_id(thread.awarded_supplier_id)
        if quote_id and supplier_id and has_winner(thread):
            pairs[quote_id] = supplier_id
    return pairs


def aggregate_kickoff_totals(
    winners: dict[str, str], tasks: list[KickoffTaskRow]
) -> dict[str, KickoffTotals]:
    """Totals keyed by ``quote_id:supplier_id``, winner tasks only."""
    totals: dict[str, KickoffTotals] = {}
    for task in tasks:
        quote_id = normalize_id(task.quote_id)
        supplier_id = normalize_id(task.supplier_id)
        if not quote_id or not supplier_id:
            continue
        if winners.get(quote_id) != supplier_id:
            continue
        entry = totals.setdefault(kickoff_key(quote_id, supplier_id), KickoffTotals())
        entry.total += 1
        if task.completed:
            entry.completed += 1
    return totals


def derive_kickoff_status(
    *,
    has_winner: bool,
    kickoff_completed_at: str | None,
    totals: KickoffTotals | None,
) -> KickoffStatus:
    if not has_winner:
        return "n/a"
    if kickoff_completed_at:
        return "complete"
    totals = totals or KickoffTotals()
    if totals.total <= 0 or totals.completed <= 0:
        return "not_started"
    if totals.completed >= totals.total:
        return "complete"
    return "in_progress"


def kickoff_status_for(
    thread: ThreadRecord,
    completed_at_by_quote: dict[str, str | None],
    totals_by_key: dict[str, KickoffTotals],
) -> KickoffStatus:
    quote_id = normalize_id(thread.id)
    supplier_id = normalize_id(thread.awarded_supplier_id)
    totals = totals_by_key.get(kickoff_key(quote_id, supplier_id)) if supplier_id else None
    return derive_kickoff_status(
        has_winner=has_winner(thread),
        kickoff_completed_at=completed_at_by_quote.get(quote_id),
        totals=totals,
    )


async def load_kickoff_state(
    store: ThreadStore,
    threads: list[ThreadRecord],
    *,
    diagnostics: DiagnosticsSink,
    timeout: float,
) -> tuple[dict[str, str | None], dict[str, KickoffTotals]]:
    """(kickoff_completed_at by quote id, winner totals by key); never raises."""
    quote_ids = [normalize_id(t.id) for t in threads if normalize_id(t.id)]
    if not quote_ids:
        return {}, {}
    winners = winner_pairs(threads)

    async def _tasks() -> list[KickoffTaskRow]:
        if not winners:
            return []
        return await run_store_call(
            store.list_kickoff_tasks,
            sorted(winners),
            sorted(set(winners.values())),
            label="list_kickoff_tasks",
            default=[],
            diagnostics=diagnostics,
            timeout=timeout,
            context={"quote_ids_count": len(winners)},
        )

    completed_at, tasks = await asyncio.gather(
        run_store_call(
            store.load_kickoff_completed_at,
            quote_ids,
            label="load_kickoff_completed_at",
            default={},
            diagnostics=diagnostics,
            timeout=timeout,
            context={"quote_ids_count": len(quote_ids)},
        ),
        _tasks(),
    )
    return completed_at, aggregate_kickoff_totals(winners, tasks)
