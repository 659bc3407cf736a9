"""
Repositories for the webhook event log and the idempotency index.
"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, delete, update, func
from sqlalchemy.exc import IntegrityError

from common.repositories.base import BaseRepository
from common.db.base import utcnow
from packages.billing.models.database.webhook_event import (
    WebhookEventEntity,
    ProcessedWebhookEventEntity,
)
from packages.billing.models.domain.enums import WebhookEventStatus, WebhookSource
from packages.billing.models.domain.webhooks import (
    WebhookEventRecord,
    ProcessedWebhookEvent,
)
from common.core.otel_axiom_exporter import get_logger, trace_span

logger = get_logger(__name__)


class WebhookEventRepository(BaseRepository[WebhookEventEntity, WebhookEventRecord]):
    """
    Append-only log of inbound webhook events.

    Keyed by provider event ID: appending an event that is already in the
    log refreshes the row and bumps its attempt counter instead of adding a
    duplicate.
    """

    def __init__(self):
        super().__init__(WebhookEventEntity, WebhookEventRecord)

    @trace_span
    async def append(self, record: WebhookEventRecord) -> WebhookEventRecord:
        async with self._get_session() as session:
            existing = await session.get(WebhookEventEntity, record.id)
            if existing is None:
                entity = WebhookEventEntity(
                    **self._domain_to_values(
                        record.model_copy(
                            update={
                                "status": WebhookEventStatus.RECEIVED,
                                "attempts": 1,
                            }
                        )
                    )
                )
                session.add(entity)
            else:
                existing.type = record.type
                existing.data = self._domain_to_values(record)["data"]
                existing.status = WebhookEventStatus.RECEIVED.value
                existing.attempts = (existing.attempts or 0) + 1
                entity = existing
            await session.flush()
            return self._entity_to_domain(entity)

    @trace_span
    async def mark_status(
        self,
        event_id: str,
        status: WebhookEventStatus,
        error: Optional[str] = None,
    ) -> None:
        async with self._get_session() as session:
            await session.execute(
                update(WebhookEventEntity)
                .where(WebhookEventEntity.id == event_id)
                .values(status=status.value, last_error=error)
            )

    @trace_span
    async def list_recent(
        self,
        limit: int = 100,
        source: Optional[WebhookSource] = None,
        status: Optional[WebhookEventStatus] = None,
    ) -> list[WebhookEventRecord]:
        """Most recently received events first."""
        query = select(WebhookEventEntity)
        if source is not None:
            query = query.where(WebhookEventEntity.source == source.value)
        if status is not None:
            query = query.where(WebhookEventEntity.status == status.value)
        query = query.order_by(
            WebhookEventEntity.received_at.desc(), WebhookEventEntity.id.desc()
        ).limit(limit)

        async with self._get_session() as session:
            result = await session.execute(query)
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def count(self) -> int:
        async with self._get_session() as session:
            result = await session.execute(select(func.count(WebhookEventEntity.id)))
            return result.scalar_one()

    @trace_span
    async def trim(self, keep: int) -> int:
        """Delete everything but the `keep` most recently received events."""
        async with self._get_session() as session:
            result = await session.execute(
                select(WebhookEventEntity.id)
                .order_by(
                    WebhookEventEntity.received_at.desc(),
                    WebhookEventEntity.id.desc(),
                )
                .offset(keep)
            )
            stale_ids = list(result.scalars().all())
            if not stale_ids:
                return 0

            await session.execute(
                delete(WebhookEventEntity).where(WebhookEventEntity.id.in_(stale_ids))
            )
            await session.flush()

        logger.info(
            f"Trimmed {len(stale_ids)} webhook events beyond retention",
            extra={"retention": keep, "trimmed": len(stale_ids)},
        )
        return len(stale_ids)


class ProcessedWebhookEventRepository(
    BaseRepository[ProcessedWebhookEventEntity, ProcessedWebhookEvent]
):
    """
    Persisted idempotency index.

    With a retention window, entries older than the window no longer count
    as processed and are purged by purge_expired().
    """

    def __init__(self, retention_days: Optional[int] = None):
        super().__init__(ProcessedWebhookEventEntity, ProcessedWebhookEvent)
        self.retention_days = retention_days

    def _cutoff(self) -> Optional[datetime]:
        if self.retention_days is None:
            return None
        return utcnow() - timedelta(days=self.retention_days)

    @trace_span
    async def is_processed(self, event_id: str) -> bool:
        query = select(ProcessedWebhookEventEntity.event_id).where(
            ProcessedWebhookEventEntity.event_id == event_id
        )
        cutoff = self._cutoff()
        if cutoff is not None:
            query = query.where(ProcessedWebhookEventEntity.processed_at >= cutoff)

        async with self._get_session() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none() is not None

    @trace_span
    async def claim(self, event_id: str, source: WebhookSource) -> bool:
        """
        Insert the index row for an event before its handler runs.

        The primary key admits one claimant, so of several concurrent
        deliveries only one gets True. An entry outside the retention
        window is replaced.
        """
        async with self._get_session() as session:
            cutoff = self._cutoff()
            if cutoff is not None:
                await session.execute(
                    delete(ProcessedWebhookEventEntity).where(
                        ProcessedWebhookEventEntity.event_id == event_id,
                        ProcessedWebhookEventEntity.processed_at < cutoff,
                    )
                )
            try:
                async with session.begin_nested():
                    session.add(
                        ProcessedWebhookEventEntity(
                            event_id=event_id,
                            source=source.value,
                            processed_at=utcnow(),
                        )
                    )
            except IntegrityError:
                logger.info(
                    f"Event {event_id} already claimed",
                    extra={"event_id": event_id, "source": source.value},
                )
                return False
            return True

    @trace_span
    async def release(self, event_id: str) -> bool:
        """Drop a claim so a later delivery runs the handler again."""
        async with self._get_session() as session:
            result = await session.execute(
                delete(ProcessedWebhookEventEntity).where(
                    ProcessedWebhookEventEntity.event_id == event_id
                )
            )
            await session.flush()
            return result.rowcount > 0

    @trace_span
    async def mark_processed(
        self, event_id: str, source: WebhookSource
    ) -> ProcessedWebhookEvent:
        async with self._get_session() as session:
            entity = await session.merge(
                ProcessedWebhookEventEntity(
                    event_id=event_id,
                    source=source.value,
                    processed_at=utcnow(),
                )
            )
            await session.flush()
            return self._entity_to_domain(entity)

    @trace_span
    async def purge_expired(self) -> int:
        cutoff = self._cutoff()
        if cutoff is None:
            return 0
        async with self._get_session() as session:
            result = await session.execute(
                delete(ProcessedWebhookEventEntity).where(
                    ProcessedWebhookEventEntity.processed_at < cutoff
                )
            )
            await session.flush()
            return result.rowcount
