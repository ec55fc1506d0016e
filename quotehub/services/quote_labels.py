"""Display labels for RFQ threads: primary label and human status."""

from ..store.records import ThreadRecord

STATUS_LABELS = {
    "submitted": "Submitted",
    "in_review": "In review",
    "quoted": "Quote prepared",
    "approved": "Approved",
    "won": "Won",
    "lost": "Lost",
    "cancelled": "Cancelled",
}

DEFAULT_STATUS = "submitted"


def quote_status_label(status: str | None) -> str:
    key = (status or "").strip().lower()
    if not key:
        return STATUS_LABELS[DEFAULT_STATUS]
    if key in STATUS_LABELS:
        return STATUS_LABELS[key]
    return key.replace("_", " ").capitalize()


def _file_names(thread: ThreadRecord) -> list[str]:
    names = []
    for name in [thread.file_name, *thread.file_names, *thread.upload_file_names]:
        if name and name not in names:
            names.append(name)
    return names


def _file_count(thread: ThreadRecord, names: list[str]) -> int:
    counts = [c for c in (thread.file_count, thread.upload_file_count) if isinstance(c, int)]
    return max([len(names), *counts])


def derive_rfq_label(thread: ThreadRecord) -> str:
    """First file name (with a "+N more" suffix), else company, customer or id."""
    names = _file_names(thread)
    if names:
        extra = _file_count(thread, names) - 1
        return f"{names[0]} (+{extra} more)" if extra > 0 else names[0]
    for fallback in (thread.company, thread.customer_name):
        if fallback and fallback.strip():
            return fallback.strip()
    return f"Quote {thread.id[:6]}" if thread.id else "Quote"
