"""
Database entity for the credit ledger.
"""

from sqlalchemy import Column, String, Integer, Index

from common.db.base import Base, UTCDateTime, utcnow


class CreditEntity(Base):
    """
    One credit ledger row.

    Rows are never summed into a running total; balance queries aggregate
    the balance column per customer.
    """

    __tablename__ = "credits"

    id = Column(String(64), primary_key=True)
    customer_id = Column(String(64), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    balance = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, server_default="USD")
    expires_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (Index("idx_credit_customer_created", "customer_id", "created_at"),)
