"""Row types returned by the thread store.

Timestamps are normalised to UTC ISO-8601 strings with microsecond precision
so that lexicographic comparison orders them chronologically.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


def to_iso(value) -> str | None:
    """Normalise a driver timestamp (datetime or string) to an ISO string."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return text
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    return None


def normalize_id(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_email(value) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip().lower()


@dataclass
class CustomerRecord:
    id: str
    email: str | None = None


@dataclass
class SupplierRecord:
    id: str
    primary_email: str | None = None


@dataclass
class ThreadRecord:
    id: str
    status: str | None = None
    file_name: str | None = None
    file_names: list[str] = field(default_factory=list)
    upload_file_names: list[str] = field(default_factory=list)
    file_count: int | None = None
    upload_file_count: int | None = None
    company: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    awarded_at: str | None = None
    awarded_supplier_id: str | None = None
    awarded_bid_id: str | None = None


@dataclass
class MessageRow:
    """One message as seen by the role-signal scan. ``sender_role`` is raw."""

    quote_id: str
    created_at: str | None
    sender_role: str | None


@dataclass
class PreviewRow:
    quote_id: str
    created_at: str | None
    sender_role: str | None
    sender_id: str | None
    body: str


@dataclass
class KickoffTaskRow:
    quote_id: str
    supplier_id: str
    completed: bool


@dataclass
class ReadMarker:
    quote_id: str
    last_read_at: str
