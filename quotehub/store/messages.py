"""Message table adapters, one per deployed ``quote_messages`` shape.

Current deployments store ``sender_role`` / ``body`` / ``sender_id``. Older
ones store ``author_role`` / ``message`` / ``author_user_id`` and tag
suppliers as ``provider``. The adapter is chosen once from the negotiated
capabilities; callers never branch on column names.
"""

from sqlalchemy import DateTime, column, table

from .capabilities import MESSAGES_TABLE, MessageShape, StoreCapabilities
from .records import MessageRow, PreviewRow, normalize_id, to_iso


class MessageTableAdapter:
    role_column = "sender_role"
    body_column = "body"
    sender_column = "sender_id"
    role_aliases: dict[str, str] = {}

    def __init__(self, available_columns: frozenset[str]):
        self.available = available_columns
        self.table = table(
            MESSAGES_TABLE,
            column("quote_id"),
            column("created_at", DateTime(timezone=True)),
            column(self.role_column),
            column(self.body_column),
            column(self.sender_column),
        )

    @property
    def c(self):
        return self.table.c

    @property
    def has_body(self) -> bool:
        return self.body_column in self.available

    @property
    def has_sender(self) -> bool:
        return self.sender_column in self.available

    def role_of(self, raw) -> str | None:
        """Canonical role tag for a stored value; unknown tags pass through lowercased."""
        if not isinstance(raw, str):
            return None
        value = raw.strip().lower()
        if not value:
            return None
        return self.role_aliases.get(value, value)

    def signal_columns(self):
        return [self.c.quote_id, self.c.created_at, self.c[self.role_column]]

    def preview_columns(self):
        cols = [self.c.quote_id, self.c.created_at, self.c[self.role_column]]
        if self.has_body:
            cols.append(self.c[self.body_column])
        if self.has_sender:
            cols.append(self.c[self.sender_column])
        return cols

    def to_message_row(self, row) -> MessageRow:
        data = row._mapping
        return MessageRow(
            quote_id=normalize_id(data["quote_id"]),
            created_at=to_iso(data["created_at"]),
            sender_role=self.role_of(data[self.role_column]),
        )

    def to_preview_row(self, row) -> PreviewRow:
        data = row._mapping
        body = data.get(self.body_column) if self.has_body else None
        sender = data.get(self.sender_column) if self.has_sender else None
        return PreviewRow(
            quote_id=normalize_id(data["quote_id"]),
            created_at=to_iso(data["created_at"]),
            sender_role=self.role_of(data[self.role_column]),
            sender_id=normalize_id(sender) or None,
            body=body if isinstance(body, str) else "",
        )


class SenderRoleMessages(MessageTableAdapter):
    pass


class AuthorRoleMessages(MessageTableAdapter):
    role_column = "author_role"
    body_column = "message"
    sender_column = "author_user_id"
    role_aliases = {"provider": "supplier"}


def message_adapter_for(caps: StoreCapabilities) -> MessageTableAdapter | None:
    if caps.message_shape == MessageShape.SENDER_ROLE:
        return SenderRoleMessages(caps.message_columns)
    if caps.message_shape == MessageShape.AUTHOR_ROLE:
        return AuthorRoleMessages(caps.message_columns)
    return None
