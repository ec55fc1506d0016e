"""
store/base.py — ThreadStore interface consumed by the inbox services

All operations are read-only. Implementations return empty results when the
capability behind an operation is absent from the deployment, and raise for
anything else; the services decide how each failure degrades.

Called by: services/*
Depends on: store/records.py, store/capabilities.py
"""

from abc import ABC, abstractmethod

from .capabilities import StoreCapabilities
from .records import (
    CustomerRecord,
    KickoffTaskRow,
    MessageRow,
    PreviewRow,
    ReadMarker,
    SupplierRecord,
    ThreadRecord,
)


class ThreadStore(ABC):
    capabilities: StoreCapabilities

    # ── Viewer identity ───────────────────────────────────────────────

    @abstractmethod
    def get_customer_by_user_id(self, user_id: str) -> CustomerRecord | None: ...

    @abstractmethod
    def get_customer_by_email(self, email: str) -> CustomerRecord | None: ...

    @abstractmethod
    def get_supplier_by_user_id(self, user_id: str) -> SupplierRecord | None: ...

    # ── Threads ───────────────────────────────────────────────────────

    @abstractmethod
    def list_threads_by_customer_email(self, email: str) -> list[ThreadRecord]: ...

    @abstractmethod
    def list_threads_by_ids(self, quote_ids: list[str]) -> list[ThreadRecord]: ...

    @abstractmethod
    def list_threads_recent_first(self, limit: int) -> list[ThreadRecord]: ...

    # ── Supplier visibility signals (each independently optional) ─────

    @abstractmethod
    def list_awarded_thread_ids(self, supplier_id: str) -> list[str]: ...

    @abstractmethod
    def list_bid_thread_ids(self, supplier_id: str) -> list[str]: ...

    @abstractmethod
    def list_invite_thread_ids(self, supplier_id: str) -> list[str]: ...

    @abstractmethod
    def list_assigned_thread_ids(self, supplier_email: str) -> list[str]: ...

    # ── Messages ──────────────────────────────────────────────────────

    @abstractmethod
    def aggregate_thread_signals(self, quote_ids: list[str]) -> list[dict] | None:
        """Precomputed per-thread signals, or None when the aggregate is unavailable."""

    @abstractmethod
    def scan_messages_newest_first(self, quote_ids: list[str], limit: int) -> list[MessageRow]: ...

    @abstractmethod
    def scan_messages_for_preview(self, quote_ids: list[str], limit: int) -> list[PreviewRow]: ...

    @abstractmethod
    def scan_unread_messages(
        self,
        quote_ids: list[str],
        exclude_sender_id: str,
        since: str | None,
        limit: int,
    ) -> list[PreviewRow]: ...

    @abstractmethod
    def list_read_markers(self, user_id: str, quote_ids: list[str]) -> list[ReadMarker] | None:
        """Read markers for the viewer, or None when read tracking is absent."""

    # ── Kickoff ───────────────────────────────────────────────────────

    @abstractmethod
    def list_kickoff_tasks(self, quote_ids: list[str], supplier_ids: list[str]) -> list[KickoffTaskRow]: ...

    @abstractmethod
    def load_kickoff_completed_at(self, quote_ids: list[str]) -> dict[str, str | None]: ...
