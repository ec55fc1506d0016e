"""
store/sql.py — SQLAlchemy implementation of ThreadStore

Builds every query against the negotiated schema: only columns that exist
are selected, optional relations are skipped without a round trip, and the
message / kickoff adapters matching the deployed table shapes are bound once
at construction.

Business Rules:
- Each call opens its own pooled connection (calls run concurrently)
- Absent optional relation -> empty result plus one warning per cause
- Thread listings are ordered most-recently-updated first, id as tiebreak
- Customer and assigned-contact emails match case-insensitively

Called by: dependencies.py, services/inbox_service.py
Depends on: store/capabilities.py, store/messages.py, store/kickoff.py
"""

import json
from datetime import datetime

from sqlalchemy import column, func, select, table, text
from sqlalchemy.engine import Engine

from ..diagnostics import DiagnosticsSink
from .base import ThreadStore
from .capabilities import (
    BIDS_TABLE,
    CUSTOMERS_TABLE,
    INVITES_TABLE,
    MESSAGE_READS_TABLE,
    SUPPLIERS_TABLE,
    THREADS_TABLE,
    StoreCapabilities,
    negotiate_capabilities,
)
from .errors import is_missing_schema_error, serialize_error
from .kickoff import kickoff_adapter_for
from .messages import message_adapter_for
from .records import (
    CustomerRecord,
    KickoffTaskRow,
    MessageRow,
    PreviewRow,
    ReadMarker,
    SupplierRecord,
    ThreadRecord,
    normalize_email,
    normalize_id,
    to_iso,
)

THREAD_COLUMNS = (
    "id",
    "file_name",
    "file_names",
    "upload_file_names",
    "file_count",
    "upload_file_count",
    "company",
    "customer_name",
    "customer_email",
    "status",
    "created_at",
    "updated_at",
    "awarded_at",
    "awarded_supplier_id",
    "awarded_bid_id",
)

_TIMESTAMP_FIELDS = {"created_at", "updated_at", "awarded_at"}
_ID_FIELDS = {"id", "awarded_supplier_id", "awarded_bid_id"}
_LIST_FIELDS = {"file_names", "upload_file_names"}


def _string_list(value) -> list[str]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return [value] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v).strip() for v in value if isinstance(v, str) and v.strip()]


def _to_thread(row) -> ThreadRecord:
    data = dict(row._mapping)
    values = {}
    for key, raw in data.items():
        if key in _TIMESTAMP_FIELDS:
            values[key] = to_iso(raw)
        elif key in _ID_FIELDS:
            values[key] = normalize_id(raw) or None
        elif key in _LIST_FIELDS:
            values[key] = _string_list(raw)
        elif key in ("file_count", "upload_file_count"):
            values[key] = raw if isinstance(raw, int) else None
        else:
            values[key] = raw.strip() if isinstance(raw, str) else raw
    values["id"] = values.get("id") or ""
    return ThreadRecord(**values)


class SqlThreadStore(ThreadStore):
    def __init__(
        self,
        engine: Engine,
        *,
        diagnostics: DiagnosticsSink | None = None,
        aggregate_function: str | None = None,
        capabilities: StoreCapabilities | None = None,
    ):
        self.engine = engine
        self.diagnostics = diagnostics or DiagnosticsSink("store")
        self.capabilities = capabilities or negotiate_capabilities(
            engine, aggregate_function=aggregate_function, diagnostics=self.diagnostics
        )
        self.messages = message_adapter_for(self.capabilities)
        self.kickoff = kickoff_adapter_for(self.capabilities)

    # ── helpers ───────────────────────────────────────────────────────

    def _absent(self, relation: str, column_name: str | None = None) -> None:
        target = f"{relation}.{column_name}" if column_name else relation
        self.diagnostics.warn_once(f"missing_schema:{target}", f"{target} not present in this deployment; skipping")

    def _relation(self, name: str, *required: str):
        """Lightweight table for ``name`` or None when it (or a required column) is absent."""
        caps = self.capabilities
        if not caps.has_relation(name):
            self._absent(name)
            return None
        cols = caps.columns_of(name)
        for col in required:
            if col not in cols:
                self._absent(name, col)
                return None
        return table(name, *[column(c) for c in sorted(cols)])

    def _threads(self):
        caps = self.capabilities
        if caps.thread_relation is None:
            self._absent(THREADS_TABLE)
            return None
        present = [c for c in THREAD_COLUMNS if c in caps.thread_columns]
        if "id" not in present:
            self._absent(caps.thread_relation, "id")
            return None
        return table(caps.thread_relation, *[column(c) for c in present])

    def _ordered(self, t, stmt):
        if "updated_at" in t.c:
            return stmt.order_by(t.c.updated_at.desc(), t.c.id)
        return stmt.order_by(t.c.id)

    def _fetch_threads(self, stmt) -> list[ThreadRecord]:
        with self.engine.connect() as conn:
            return [_to_thread(row) for row in conn.execute(stmt)]

    def _fetch_ids(self, stmt) -> list[str]:
        with self.engine.connect() as conn:
            ids = [normalize_id(row[0]) for row in conn.execute(stmt)]
        return [i for i in ids if i]

    # ── Viewer identity ───────────────────────────────────────────────

    def _first_customer(self, stmt) -> CustomerRecord | None:
        with self.engine.connect() as conn:
            row = conn.execute(stmt.limit(1)).first()
        if row is None:
            return None
        data = row._mapping
        return CustomerRecord(id=normalize_id(data["id"]), email=normalize_email(data.get("email")) or None)

    def get_customer_by_user_id(self, user_id: str) -> CustomerRecord | None:
        t = self._relation(CUSTOMERS_TABLE, "id", "user_id")
        if t is None:
            return None
        return self._first_customer(select(*t.c).where(t.c.user_id == user_id))

    def get_customer_by_email(self, email: str) -> CustomerRecord | None:
        t = self._relation(CUSTOMERS_TABLE, "id", "email")
        if t is None:
            return None
        return self._first_customer(select(*t.c).where(func.lower(t.c.email) == normalize_email(email)))

    def get_supplier_by_user_id(self, user_id: str) -> SupplierRecord | None:
        t = self._relation(SUPPLIERS_TABLE, "id", "user_id")
        if t is None:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(select(*t.c).where(t.c.user_id == user_id).limit(1)).first()
        if row is None:
            return None
        data = row._mapping
        return SupplierRecord(
            id=normalize_id(data["id"]),
            primary_email=normalize_email(data.get("primary_email")) or None,
        )

    # ── Threads ───────────────────────────────────────────────────────

    def list_threads_by_customer_email(self, email: str) -> list[ThreadRecord]:
        t = self._threads()
        if t is None:
            return []
        if "customer_email" not in t.c:
            self._absent(self.capabilities.thread_relation, "customer_email")
            return []
        stmt = select(*t.c).where(func.lower(t.c.customer_email) == normalize_email(email))
        return self._fetch_threads(self._ordered(t, stmt))

    def list_threads_by_ids(self, quote_ids: list[str]) -> list[ThreadRecord]:
        t = self._threads()
        if t is None or not quote_ids:
            return []
        stmt = select(*t.c).where(t.c.id.in_(quote_ids))
        return self._fetch_threads(self._ordered(t, stmt))

    def list_threads_recent_first(self, limit: int) -> list[ThreadRecord]:
        t = self._threads()
        if t is None:
            return []
        stmt = self._ordered(t, select(*t.c)).limit(limit)
        return self._fetch_threads(stmt)

    # ── Supplier visibility signals ───────────────────────────────────

    def list_awarded_thread_ids(self, supplier_id: str) -> list[str]:
        t = self._relation(THREADS_TABLE, "id", "awarded_supplier_id")
        if t is None:
            return []
        return self._fetch_ids(select(t.c.id).where(t.c.awarded_supplier_id == supplier_id))

    def list_bid_thread_ids(self, supplier_id: str) -> list[str]:
        t = self._relation(BIDS_TABLE, "quote_id", "supplier_id")
        if t is None:
            return []
        return self._fetch_ids(select(t.c.quote_id).where(t.c.supplier_id == supplier_id).distinct())

    def list_invite_thread_ids(self, supplier_id: str) -> list[str]:
        t = self._relation(INVITES_TABLE, "quote_id", "supplier_id")
        if t is None:
            return []
        return self._fetch_ids(select(t.c.quote_id).where(t.c.supplier_id == supplier_id).distinct())

    def list_assigned_thread_ids(self, supplier_email: str) -> list[str]:
        email = normalize_email(supplier_email)
        if not email:
            return []
        t = self._relation(THREADS_TABLE, "id", "assigned_supplier_email")
        if t is None:
            return []
        return self._fetch_ids(select(t.c.id).where(func.lower(t.c.assigned_supplier_email) == email))

    # ── Messages ──────────────────────────────────────────────────────

    def aggregate_thread_signals(self, quote_ids: list[str]) -> list[dict] | None:
        fn = self.capabilities.aggregate_function
        if fn is None:
            return None
        stmt = text(f"SELECT * FROM {fn}(CAST(:p_quote_ids AS uuid[]))")
        try:
            with self.engine.connect() as conn:
                return [dict(row._mapping) for row in conn.execute(stmt, {"p_quote_ids": list(quote_ids)})]
        except Exception as e:
            if is_missing_schema_error(e):
                self.diagnostics.warn_once(
                    f"missing_function:{fn}", "aggregate signals function unavailable", **serialize_error(e)
                )
                return None
            raise

    def scan_messages_newest_first(self, quote_ids: list[str], limit: int) -> list[MessageRow]:
        adapter = self.messages
        if adapter is None:
            self._absent("quote_messages")
            return []
        if not quote_ids:
            return []
        c = adapter.c
        stmt = (
            select(*adapter.signal_columns())
            .select_from(adapter.table)
            .where(c.quote_id.in_(quote_ids))
            .order_by(c.created_at.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            return [adapter.to_message_row(row) for row in conn.execute(stmt)]

    def scan_messages_for_preview(self, quote_ids: list[str], limit: int) -> list[PreviewRow]:
        adapter = self.messages
        if adapter is None:
            self._absent("quote_messages")
            return []
        if not quote_ids:
            return []
        c = adapter.c
        stmt = (
            select(*adapter.preview_columns())
            .select_from(adapter.table)
            .where(c.quote_id.in_(quote_ids))
            .order_by(c.created_at.desc())
            .limit(limit)
        )
        with self.engine.connect() as conn:
            return [adapter.to_preview_row(row) for row in conn.execute(stmt)]

    def scan_unread_messages(
        self,
        quote_ids: list[str],
        exclude_sender_id: str,
        since: str | None,
        limit: int,
    ) -> list[PreviewRow]:
        adapter = self.messages
        if adapter is None or not quote_ids:
            return []
        c = adapter.c
        stmt = select(*adapter.preview_columns()).select_from(adapter.table).where(c.quote_id.in_(quote_ids))
        if adapter.has_sender:
            sender = c[adapter.sender_column]
            stmt = stmt.where((sender.is_(None)) | (sender != exclude_sender_id))
        if since:
            stmt = stmt.where(c.created_at > datetime.fromisoformat(since))
        stmt = stmt.order_by(c.created_at.desc()).limit(limit)
        with self.engine.connect() as conn:
            return [adapter.to_preview_row(row) for row in conn.execute(stmt)]

    def list_read_markers(self, user_id: str, quote_ids: list[str]) -> list[ReadMarker] | None:
        t = self._relation(MESSAGE_READS_TABLE, "quote_id", "user_id", "last_read_at")
        if t is None:
            return None
        if not quote_ids:
            return []
        stmt = select(t.c.quote_id, t.c.last_read_at).where(t.c.user_id == user_id, t.c.quote_id.in_(quote_ids))
        markers = []
        with self.engine.connect() as conn:
            for row in conn.execute(stmt):
                quote_id = normalize_id(row.quote_id)
                last_read_at = to_iso(row.last_read_at)
                if quote_id and last_read_at:
                    markers.append(ReadMarker(quote_id=quote_id, last_read_at=last_read_at))
        return markers

    # ── Kickoff ───────────────────────────────────────────────────────

    def list_kickoff_tasks(self, quote_ids: list[str], supplier_ids: list[str]) -> list[KickoffTaskRow]:
        if self.kickoff is None:
            self._absent("quote_kickoff_tasks")
            return []
        if not quote_ids or not supplier_ids:
            return []
        with self.engine.connect() as conn:
            return self.kickoff.fetch(conn, quote_ids, supplier_ids)

    def load_kickoff_completed_at(self, quote_ids: list[str]) -> dict[str, str | None]:
        result: dict[str, str | None] = {qid: None for qid in quote_ids}
        t = self._relation(THREADS_TABLE, "id", "kickoff_completed_at")
        if t is None or not quote_ids:
            return result
        stmt = select(t.c.id, t.c.kickoff_completed_at).where(t.c.id.in_(quote_ids))
        with self.engine.connect() as conn:
            for row in conn.execute(stmt):
                quote_id = normalize_id(row.id)
                if quote_id in result:
                    result[quote_id] = to_iso(row.kickoff_completed_at)
        return result
