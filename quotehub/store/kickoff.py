"""Kickoff task table adapters, one per deployed checklist shape.

- supplier-scoped: ``quote_kickoff_tasks(quote_id, supplier_id, completed)``
- renamed supplier-scoped: same columns under ``quote_supplier_kickoff_tasks``
- quote-level: ``quote_kickoff_tasks(quote_id, status, completed_at)`` with no
  supplier column; every row belongs to the quote's awarded supplier
"""

from sqlalchemy import column, select, table
from sqlalchemy.engine import Connection

from .capabilities import THREADS_TABLE, KickoffShape, StoreCapabilities
from .records import KickoffTaskRow, normalize_id


class SupplierScopedKickoffTasks:
    def __init__(self, table_name: str, available_columns: frozenset[str]):
        self.available = available_columns
        cols = [column("quote_id"), column("supplier_id"), column("completed")]
        if "completed_at" in available_columns:
            cols.append(column("completed_at"))
        self.table = table(table_name, *cols)

    def fetch(self, conn: Connection, quote_ids: list[str], supplier_ids: list[str]) -> list[KickoffTaskRow]:
        t = self.table
        stmt = select(*t.c).where(t.c.quote_id.in_(quote_ids), t.c.supplier_id.in_(supplier_ids))
        rows = []
        for row in conn.execute(stmt):
            data = row._mapping
            rows.append(
                KickoffTaskRow(
                    quote_id=normalize_id(data["quote_id"]),
                    supplier_id=normalize_id(data["supplier_id"]),
                    completed=bool(data["completed"]) or bool(data.get("completed_at")),
                )
            )
        return rows


class QuoteLevelKickoffTasks:
    def __init__(self, table_name: str, available_columns: frozenset[str]):
        self.available = available_columns
        cols = [column("quote_id")]
        for name in ("status", "completed_at"):
            if name in available_columns:
                cols.append(column(name))
        self.table = table(table_name, *cols)
        self.quotes = table(THREADS_TABLE, column("id"), column("awarded_supplier_id"))

    def fetch(self, conn: Connection, quote_ids: list[str], supplier_ids: list[str]) -> list[KickoffTaskRow]:
        t, q = self.table, self.quotes
        stmt = (
            select(*t.c, q.c.awarded_supplier_id)
            .select_from(t.join(q, q.c.id == t.c.quote_id))
            .where(t.c.quote_id.in_(quote_ids), q.c.awarded_supplier_id.in_(supplier_ids))
        )
        rows = []
        for row in conn.execute(stmt):
            data = row._mapping
            status = str(data.get("status") or "").strip().lower()
            rows.append(
                KickoffTaskRow(
                    quote_id=normalize_id(data["quote_id"]),
                    supplier_id=normalize_id(data["awarded_supplier_id"]),
                    completed=status == "complete" or bool(data.get("completed_at")),
                )
            )
        return rows


def kickoff_adapter_for(caps: StoreCapabilities):
    table_name = caps.kickoff_table
    if table_name is None:
        return None
    if caps.kickoff_shape == KickoffShape.QUOTE_LEVEL:
        return QuoteLevelKickoffTasks(table_name, caps.kickoff_columns)
    return SupplierScopedKickoffTasks(table_name, caps.kickoff_columns)
