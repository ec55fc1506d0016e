"""Post-award kickoff checklist tasks (supplier-scoped shape)."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint

from .base import Base


class QuoteKickoffTask(Base):
    __tablename__ = "quote_kickoff_tasks"
    id = Column(String(36), primary_key=True)
    quote_id = Column(String(36), ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False)
    supplier_id = Column(String(36), ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    task_key = Column(String(80), nullable=False)
    title = Column(String(255), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    sort_order = Column(Integer)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (UniqueConstraint("quote_id", "supplier_id", "task_key", name="uq_kickoff_task"),)
