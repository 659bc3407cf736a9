"""
Database entity for first-party billing entities.
"""

from sqlalchemy import Column, String

from common.db.base import Base, UTCDateTime, utcnow


class BillingEntityEntity(Base):
    """A user or organization that we bill."""

    __tablename__ = "billing_entities"

    id = Column(String(64), primary_key=True)
    type = Column(String(20), nullable=False)  # user, organization
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)

    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
