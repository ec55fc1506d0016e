"""Quote (RFQ thread), message and read-marker models."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text

from .base import Base


class Quote(Base):
    """One RFQ. Its message history is the inbox thread."""

    __tablename__ = "quotes"
    id = Column(String(36), primary_key=True)

    file_name = Column(String(255))
    file_names = Column(JSON)
    upload_file_names = Column(JSON)
    file_count = Column(Integer)
    upload_file_count = Column(Integer)

    company = Column(String(255))
    customer_name = Column(String(255))
    customer_email = Column(String(255))
    assigned_supplier_email = Column(String(255))

    status = Column(String(30), default="submitted")
    awarded_at = Column(DateTime)
    awarded_supplier_id = Column(String(36), ForeignKey("suppliers.id"))
    awarded_bid_id = Column(String(36))
    kickoff_completed_at = Column(DateTime)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_quotes_customer_email", "customer_email"),
        Index("ix_quotes_awarded_supplier", "awarded_supplier_id"),
        Index("ix_quotes_updated", "updated_at"),
    )


class QuoteMessage(Base):
    __tablename__ = "quote_messages"
    id = Column(String(36), primary_key=True)
    quote_id = Column(String(36), ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False)
    sender_role = Column(String(20), nullable=False)  # customer, supplier, admin
    sender_id = Column(String(36))
    body = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("ix_quote_messages_quote_created", "quote_id", "created_at"),)


class QuoteMessageRead(Base):
    """Per-user read marker; unread = messages by others after last_read_at."""

    __tablename__ = "quote_message_reads"
    quote_id = Column(String(36), ForeignKey("quotes.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String(36), primary_key=True)
    last_read_at = Column(DateTime, nullable=False)
