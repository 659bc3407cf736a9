"""
Database entities mirroring provider-side customers.
"""

from sqlalchemy import Column, String, JSON, Integer

from common.db.base import Base, UTCDateTime, utcnow


class SubscriptionCustomerEntity(Base):
    """
    Subscription provider customer mirror.

    Keyed by the provider's customer ID; entity_id points back to our
    billing entity.
    """

    __tablename__ = "subscription_customers"

    id = Column(String(64), primary_key=True)
    entity_id = Column(String(64), nullable=False, unique=True, index=True)
    entity_type = Column(String(20), nullable=False)
    email = Column(String(255), nullable=False, server_default="")
    name = Column(String(255), nullable=False, server_default="")

    customer_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)


class PaymentCustomerEntity(Base):
    """Stripe customer mirror."""

    __tablename__ = "payment_customers"

    id = Column(String(64), primary_key=True)
    entity_id = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, server_default="")
    name = Column(String(255), nullable=False, server_default="")

    # Unix timestamp as reported by Stripe
    created = Column(Integer, nullable=False)

    customer_metadata = Column("metadata", JSON, nullable=False, default=dict)
