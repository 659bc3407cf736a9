"""
Database entity for mirrored subscription contracts.
"""

from sqlalchemy import Column, String, Index

from common.db.base import Base, UTCDateTime, utcnow


class ContractEntity(Base):
    """
    Contract mirror.

    Authoritative state lives with the subscription provider; this row is
    overwritten by tier changes and contract webhooks.
    """

    __tablename__ = "contracts"

    id = Column(String(64), primary_key=True)
    customer_id = Column(String(64), nullable=False, index=True)

    tier = Column(String(20), nullable=False)  # free, pro, team, enterprise
    status = Column(String(20), nullable=False)  # active, cancelled, expired, pending
    billing_period = Column(String(20), nullable=False)  # monthly, yearly

    start_date = Column(UTCDateTime, nullable=False)
    end_date = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)

    rate_card_id = Column(String(64), nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_contract_customer_status", "customer_id", "status"),
    )
