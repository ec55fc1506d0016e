"""
diagnostics.py — Deduplicating diagnostics sink for the inbox engine

Schema drift (a table, column or function missing in one deployment) is
expected and recovered from locally, but it would otherwise be reported on
every inbox load. The sink is created once per store and passed into the
services that need it; each distinct cause is logged a single time.

Business Rules:
- warn_once() logs a given key at most once per sink
- error() always logs; callers pass counts, never raw identifier lists
- Sinks are independent: no module-level dedupe state

Called by: store/sql.py, store/capabilities.py, services/*
Depends on: loguru
"""

import threading

from loguru import logger


class DiagnosticsSink:
    """Warn-once log sink with an explicit, per-instance dedupe set."""

    def __init__(self, scope: str = "quotehub"):
        self.scope = scope
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    def warn_once(self, key: str, msg: str, **context) -> bool:
        """Log ``msg`` the first time ``key`` is seen. Returns True if logged.

        ``context`` may carry a ``message`` field (see store.errors.serialize_error).
        """
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
        logger.opt(depth=1).warning("[{}] {} {}", self.scope, msg, _clean(context))
        return True

    def warn(self, msg: str, **context) -> None:
        logger.opt(depth=1).warning("[{}] {} {}", self.scope, msg, _clean(context))

    def error(self, msg: str, **context) -> None:
        logger.opt(depth=1).error("[{}] {} {}", self.scope, msg, _clean(context))

    def has_seen(self, key: str) -> bool:
        with self._lock:
            return key in self._seen

    def reset(self) -> None:
        with self._lock:
            self._seen.clear()


def _clean(context: dict) -> dict:
    return {k: v for k, v in context.items() if v is not None}
