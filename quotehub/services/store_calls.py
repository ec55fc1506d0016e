"""
services/store_calls.py — Bounded, fail-safe execution of blocking store calls

Every store read runs in the default executor under a per-call timeout so
that independent lookups proceed concurrently and a slow optional signal
cannot stall the whole inbox load.

Business Rules:
- Timeout -> signal unavailable, caller's default returned
- Missing-schema error -> default, logged once per label
- Any other error -> default, logged with counts only (never raw id lists)

Called by: services/visibility.py, thread_signals.py, kickoff_status.py,
           unread_summary.py
Depends on: store/errors.py, diagnostics.py
"""

import asyncio
import functools
from dataclasses import dataclass

from ..config import Settings
from ..diagnostics import DiagnosticsSink
from ..store.errors import is_missing_schema_error, serialize_error


@dataclass(frozen=True)
class InboxOptions:
    timeout: float = 5.0
    admin_limit: int = 800
    reads_enabled: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "InboxOptions":
        return cls(
            timeout=settings.inbox_call_timeout_seconds,
            admin_limit=settings.admin_inbox_limit,
            reads_enabled=settings.message_reads_enabled,
        )


async def run_store_call(
    fn,
    *args,
    label: str,
    default,
    diagnostics: DiagnosticsSink,
    timeout: float,
    context: dict | None = None,
):
    """Run ``fn(*args)`` off the event loop; never raises."""
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(
            loop.run_in_executor(None, functools.partial(fn, *args)),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        diagnostics.warn(f"{label} timed out; treating as unavailable", timeout=timeout, **(context or {}))
        return default
    except Exception as e:
        if is_missing_schema_error(e):
            diagnostics.warn_once(
                f"missing_schema:{label}",
                f"{label} hit missing schema; skipping",
                **serialize_error(e),
            )
        else:
            diagnostics.error(f"{label} failed", **(context or {}), **serialize_error(e))
        return default
