"""
Database entity for mirrored invoices.
"""

from sqlalchemy import Column, String, Numeric, JSON

from common.db.base import Base, UTCDateTime


class InvoiceEntity(Base):
    """Invoice mirror. Line items are kept as a JSON array."""

    __tablename__ = "invoices"

    id = Column(String(64), primary_key=True)
    customer_id = Column(String(64), nullable=False, index=True)
    contract_id = Column(String(64), nullable=True, index=True)

    amount = Column(Numeric(12, 2, asdecimal=True), nullable=False)
    currency = Column(String(3), nullable=False, server_default="USD")
    status = Column(String(20), nullable=False, index=True)

    due_date = Column(UTCDateTime, nullable=True)
    paid_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=True)

    line_items = Column(JSON, nullable=False, default=list)
