"""
Database entities for the webhook event log and the idempotency index.
"""

from sqlalchemy import Column, String, Integer, Text, JSON, Index

from common.db.base import Base, UTCDateTime, utcnow


class WebhookEventEntity(Base):
    """
    Append-only log of received webhook events.

    Keyed by the provider event ID so redelivery updates the existing row.
    Trimmed to the most recent N rows by received_at.
    """

    __tablename__ = "webhook_events"

    id = Column(String(255), primary_key=True)
    source = Column(String(20), nullable=False, index=True)  # metronome, stripe
    type = Column(String(100), nullable=False, index=True)
    data = Column(JSON, nullable=False, default=dict)

    created_at = Column(UTCDateTime, nullable=False)
    received_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)

    status = Column(String(20), nullable=False)  # received, processed, failed
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)


class ProcessedWebhookEventEntity(Base):
    """Idempotency index: one row per event whose side effects were applied."""

    __tablename__ = "processed_webhook_events"

    event_id = Column(String(255), primary_key=True)
    source = Column(String(20), nullable=False)
    processed_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (Index("idx_processed_event_at", "processed_at"),)
