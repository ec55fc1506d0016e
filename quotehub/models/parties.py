"""Customer, supplier, bid and invite models."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Numeric, String

from .base import Base


class Customer(Base):
    __tablename__ = "customers"
    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), unique=True)
    email = Column(String(255), nullable=False)
    company_name = Column(String(255))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("ix_customers_email", "email"),)


class Supplier(Base):
    __tablename__ = "suppliers"
    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), unique=True)
    company_name = Column(String(255))
    primary_email = Column(String(255))
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))


class SupplierBid(Base):
    """A supplier's bid on a quote. Only quote/supplier linkage matters to the inbox."""

    __tablename__ = "supplier_bids"
    id = Column(String(36), primary_key=True)
    quote_id = Column(String(36), ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False)
    supplier_id = Column(String(36), ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    unit_price = Column(Numeric(12, 2))
    status = Column(String(20), default="submitted")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("ix_supplier_bids_supplier", "supplier_id"),)


class QuoteInvite(Base):
    """Standing invite for a supplier to bid. Absent in older deployments."""

    __tablename__ = "quote_invites"
    id = Column(String(36), primary_key=True)
    quote_id = Column(String(36), ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False)
    supplier_id = Column(String(36), ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (Index("ix_quote_invites_supplier", "supplier_id"),)
