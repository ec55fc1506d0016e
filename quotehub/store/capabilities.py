"""
store/capabilities.py — One-time schema capability negotiation

Deployments drift: older environments lack quote_invites or the
quotes_with_uploads view, kickoff tasks live in one of several table shapes,
and the aggregate signals function may not be installed. Instead of probing
per request, the schema is inspected once per database and the result is
cached for the life of the process.

Business Rules:
- Negotiation never raises: an inspection failure yields "absent" and is
  not cached, so the next store construction probes again
- The message table shape (sender_role vs legacy author_role) and the
  kickoff shape are chosen here, once, and drive adapter selection
- reset_capabilities() drops the cache (tests, post-migration)
- The cache lock guards only the dict; live inspection runs outside it

Called by: store/sql.py, main.py (lifespan warm-up)
Depends on: sqlalchemy inspector, diagnostics.py
"""

import re
import threading
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from ..diagnostics import DiagnosticsSink
from .errors import serialize_error

THREADS_VIEW = "quotes_with_uploads"
THREADS_TABLE = "quotes"
MESSAGES_TABLE = "quote_messages"
MESSAGE_READS_TABLE = "quote_message_reads"
KICKOFF_TASKS_TABLE = "quote_kickoff_tasks"
SUPPLIER_KICKOFF_TASKS_TABLE = "quote_supplier_kickoff_tasks"
CUSTOMERS_TABLE = "customers"
SUPPLIERS_TABLE = "suppliers"
BIDS_TABLE = "supplier_bids"
INVITES_TABLE = "quote_invites"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class MessageShape(str, Enum):
    SENDER_ROLE = "sender_role"
    AUTHOR_ROLE = "author_role"
    ABSENT = "absent"


class KickoffShape(str, Enum):
    SUPPLIER_SCOPED = "supplier_scoped"
    RENAMED_SUPPLIER_SCOPED = "renamed_supplier_scoped"
    QUOTE_LEVEL = "quote_level"
    ABSENT = "absent"


@dataclass(frozen=True)
class StoreCapabilities:
    thread_relation: str | None = None
    thread_columns: frozenset[str] = frozenset()
    message_shape: MessageShape = MessageShape.ABSENT
    message_columns: frozenset[str] = frozenset()
    kickoff_shape: KickoffShape = KickoffShape.ABSENT
    kickoff_columns: frozenset[str] = frozenset()
    relations: dict[str, frozenset[str]] = field(default_factory=dict)
    aggregate_function: str | None = None
    inspected: bool = False

    def has_relation(self, name: str) -> bool:
        return name in self.relations

    def columns_of(self, name: str) -> frozenset[str]:
        return self.relations.get(name, frozenset())

    def has_column(self, relation: str, column: str) -> bool:
        return column in self.columns_of(relation)

    @property
    def supports_aggregate(self) -> bool:
        return self.aggregate_function is not None

    @property
    def kickoff_table(self) -> str | None:
        if self.kickoff_shape == KickoffShape.RENAMED_SUPPLIER_SCOPED:
            return SUPPLIER_KICKOFF_TASKS_TABLE
        if self.kickoff_shape in (KickoffShape.SUPPLIER_SCOPED, KickoffShape.QUOTE_LEVEL):
            return KICKOFF_TASKS_TABLE
        return None


_cache: dict[str, StoreCapabilities] = {}
_cache_lock = threading.Lock()


def reset_capabilities() -> None:
    with _cache_lock:
        _cache.clear()


def negotiate_capabilities(
    engine: Engine,
    *,
    aggregate_function: str | None = None,
    diagnostics: DiagnosticsSink | None = None,
) -> StoreCapabilities:
    """Return the cached capabilities for ``engine``, probing on first use."""
    key = engine.url.render_as_string(hide_password=True)
    with _cache_lock:
        cached = _cache.get(key)
    if cached is not None:
        return cached

    # Inspected outside the lock; the first result cached wins.
    caps = probe_capabilities(engine, aggregate_function=aggregate_function, diagnostics=diagnostics)
    if not caps.inspected:
        return caps
    with _cache_lock:
        return _cache.setdefault(key, caps)


def probe_capabilities(
    engine: Engine,
    *,
    aggregate_function: str | None = None,
    diagnostics: DiagnosticsSink | None = None,
) -> StoreCapabilities:
    """Inspect the live schema. Prefer negotiate_capabilities(), which caches."""
    diagnostics = diagnostics or DiagnosticsSink("capabilities")
    try:
        relations = _load_relations(engine)
    except Exception as e:
        diagnostics.error("schema inspection failed; treating every relation as absent", **serialize_error(e))
        return StoreCapabilities()

    if THREADS_VIEW in relations:
        thread_relation = THREADS_VIEW
    elif THREADS_TABLE in relations:
        thread_relation = THREADS_TABLE
    else:
        thread_relation = None
        diagnostics.warn_once("missing_relation:quotes", "no quotes relation; inbox will be empty")

    message_columns = relations.get(MESSAGES_TABLE, frozenset())
    if "sender_role" in message_columns:
        message_shape = MessageShape.SENDER_ROLE
    elif "author_role" in message_columns:
        message_shape = MessageShape.AUTHOR_ROLE
    else:
        message_shape = MessageShape.ABSENT

    kickoff_shape, kickoff_columns = _resolve_kickoff_shape(relations)

    caps = StoreCapabilities(
        thread_relation=thread_relation,
        thread_columns=relations.get(thread_relation, frozenset()) if thread_relation else frozenset(),
        message_shape=message_shape,
        message_columns=message_columns,
        kickoff_shape=kickoff_shape,
        kickoff_columns=kickoff_columns,
        relations=relations,
        aggregate_function=_probe_aggregate_function(engine, aggregate_function, diagnostics),
        inspected=True,
    )
    logger.info(
        "Store capabilities negotiated: relation={} messages={} kickoff={} invites={} aggregate={}",
        caps.thread_relation,
        caps.message_shape.value,
        caps.kickoff_shape.value,
        caps.has_relation(INVITES_TABLE),
        caps.aggregate_function,
    )
    return caps


def _load_relations(engine: Engine) -> dict[str, frozenset[str]]:
    inspector = inspect(engine)
    names = set(inspector.get_table_names()) | set(inspector.get_view_names())
    relations: dict[str, frozenset[str]] = {}
    for name in names:
        relations[name] = frozenset(col["name"] for col in inspector.get_columns(name))
    return relations


def _resolve_kickoff_shape(relations: dict[str, frozenset[str]]) -> tuple[KickoffShape, frozenset[str]]:
    renamed = relations.get(SUPPLIER_KICKOFF_TASKS_TABLE)
    current = relations.get(KICKOFF_TASKS_TABLE)
    if current is not None and {"supplier_id", "completed"} <= current:
        return KickoffShape.SUPPLIER_SCOPED, current
    if renamed is not None and {"supplier_id", "completed"} <= renamed:
        return KickoffShape.RENAMED_SUPPLIER_SCOPED, renamed
    if current is not None and ("completed_at" in current or "status" in current):
        return KickoffShape.QUOTE_LEVEL, current
    return KickoffShape.ABSENT, frozenset()


def _probe_aggregate_function(
    engine: Engine, name: str | None, diagnostics: DiagnosticsSink
) -> str | None:
    if not name:
        return None
    if not _IDENTIFIER.match(name):
        diagnostics.warn_once(f"aggregate:invalid:{name}", "aggregate function name rejected", name=name)
        return None
    if engine.dialect.name != "postgresql":
        return None
    try:
        with engine.connect() as conn:
            found = conn.execute(
                text("SELECT 1 FROM pg_proc WHERE proname = :name LIMIT 1"), {"name": name}
            ).first()
    except Exception as e:
        diagnostics.warn_once(f"aggregate:probe:{name}", "aggregate function probe failed", **serialize_error(e))
        return None
    if found is None:
        diagnostics.warn_once(f"missing_function:{name}", "aggregate function not installed; using message scan")
        return None
    return name
