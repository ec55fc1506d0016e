"""
dependencies.py — Shared FastAPI Dependencies

Store construction and viewer resolution for the inbox routes.

Business Rules:
- get_viewer returns None if not logged in (non-throwing)
- require_role raises 401 if not logged in, 403 if the session role does not
  match the requested inbox
- Schema capabilities are negotiated once per process and shared by every
  store; the diagnostics sink (warn-once dedupe) is shared too

Called by: routers/inbox.py, main.py
Depends on: store/sql.py, database.py, config.py
"""

from fastapi import HTTPException, Request

from .config import settings
from .database import engine
from .diagnostics import DiagnosticsSink
from .services.store_calls import InboxOptions
from .services.visibility import Viewer
from .store import SqlThreadStore, ThreadStore

VIEWER_ROLES = ("customer", "supplier", "admin")


# ── Store ─────────────────────────────────────────────────────────────


_diagnostics = DiagnosticsSink("inbox")


def get_store() -> ThreadStore:
    """Store bound to the shared engine; capabilities come from the process cache."""
    return SqlThreadStore(
        engine,
        diagnostics=_diagnostics,
        aggregate_function=settings.aggregate_signals_function,
    )


def get_inbox_options() -> InboxOptions:
    return InboxOptions.from_settings(settings)


# ── Viewer ────────────────────────────────────────────────────────────


def get_viewer(request: Request) -> Viewer | None:
    """Return the session viewer, or None if not logged in."""
    uid = request.session.get("user_id")
    role = (request.session.get("role") or "").strip().lower()
    if not uid or role not in VIEWER_ROLES:
        return None
    return Viewer(role=role, user_id=str(uid), email=request.session.get("email"))


def require_role(role: str):
    """Dependency factory: the logged-in viewer, which must hold ``role``."""

    def _dependency(request: Request) -> Viewer:
        viewer = get_viewer(request)
        if viewer is None:
            raise HTTPException(401, "Not authenticated")
        if viewer.role != role:
            raise HTTPException(403, f"{role.capitalize()} access required")
        return viewer

    return _dependency


require_customer = require_role("customer")
require_supplier = require_role("supplier")
require_admin = require_role("admin")
