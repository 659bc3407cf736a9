from contextlib import asynccontextmanager
from enum import Enum
from typing import Generic, TypeVar, Optional, List, Type, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy import JSON, update
from sqlalchemy import inspect as sa_inspect
from pydantic import BaseModel

from common.core.otel_axiom_exporter import trace_span
from common.db.scoped import get_session

EntityType = TypeVar("EntityType")
DomainModelType = TypeVar("DomainModelType", bound=BaseModel)
UpdateModelType = TypeVar("UpdateModelType", bound=BaseModel)


class BaseRepository(Generic[EntityType, DomainModelType]):
    """
    Base repository for the local mirror of provider-owned records.

    Records are keyed by the provider-assigned string ID, so writes are
    upserts: saving a record that already exists replaces its columns.

    Two modes of operation:
    1. Explicit session: pass db_session to the constructor; the caller
       manages the lifecycle (used by tests and request-scoped code).
    2. Lazy session: sessions acquired per operation via get_session(),
       which joins an enclosing transaction() if there is one.
    """

    def __init__(
        self,
        entity_class: Type[EntityType],
        domain_class: Type[DomainModelType],
        db_session: Optional[AsyncSession] = None,
    ):
        self.entity_class = entity_class
        self.domain_class = domain_class
        self._explicit_session = db_session

    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._explicit_session is not None:
            yield self._explicit_session
        else:
            async with get_session() as session:
                yield session

    def _entity_to_domain(self, entity: EntityType) -> DomainModelType:
        """Convert database entity to domain model."""
        return self.domain_class.model_validate(entity)

    def _entities_to_domain(self, entities: List[EntityType]) -> List[DomainModelType]:
        """Convert list of database entities to domain models."""
        return [self._entity_to_domain(entity) for entity in entities]

    def _domain_to_values(self, model: BaseModel) -> dict:
        """Column values for a domain model, restricted to mapped columns.

        JSON columns take the JSON-mode dump so nested Decimals and
        datetimes serialise.
        """
        columns = {
            attr.key: attr.columns[0]
            for attr in sa_inspect(self.entity_class).column_attrs
        }
        data = model.model_dump(mode="python")
        json_data = model.model_dump(mode="json")
        values = {}
        for key, value in data.items():
            column = columns.get(key)
            if column is None:
                continue
            if isinstance(column.type, JSON):
                values[key] = json_data[key]
            elif isinstance(value, Enum):
                values[key] = value.value
            else:
                values[key] = value
        return values

    @trace_span
    async def get(self, id: str) -> Optional[DomainModelType]:
        async with self._get_session() as session:
            entity = await session.get(self.entity_class, id)
            return self._entity_to_domain(entity) if entity else None

    @trace_span
    async def get_multi(self, skip: int = 0, limit: int = 100) -> List[DomainModelType]:
        query = select(self.entity_class).offset(skip).limit(limit)
        async with self._get_session() as session:
            result = await session.execute(query)
            return self._entities_to_domain(result.scalars().all())

    @trace_span
    async def save(self, model: DomainModelType) -> DomainModelType:
        """Insert or replace a record keyed by its ID."""
        values = self._domain_to_values(model)
        async with self._get_session() as session:
            entity = await session.merge(self.entity_class(**values))
            await session.flush()
            return self._entity_to_domain(entity)

    @trace_span
    async def update(
        self, id: str, update_model: UpdateModelType
    ) -> Optional[DomainModelType]:
        """Update an entity with a typed update model."""
        data = {
            key: value.value if isinstance(value, Enum) else value
            for key, value in update_model.model_dump(exclude_unset=True).items()
        }
        if not data:
            return await self.get(id)

        async with self._get_session() as session:
            await session.execute(
                update(self.entity_class).where(self.entity_class.id == id).values(data)
            )
            await session.flush()
            session.expire_all()
        return await self.get(id)

