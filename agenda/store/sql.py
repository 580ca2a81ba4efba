"""SQLModel-backed record store.

Implements ``RecordStore`` on top of an async SQLAlchemy session factory and
publishes a ``ChangeEvent`` on the change feed after every committed write.
Each operation runs in its own short-lived session: one call, one
transaction, mirroring the per-request atomicity of a hosted table store.
"""

import logging
from datetime import UTC, datetime
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import SQLModel, col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from agenda.core.errors import StoreError
from agenda.store.base import (
    ChangeEvent,
    ChangeFilter,
    ChangeKind,
    Entity,
    Filter,
    RecordStore,
)
from agenda.store.feed import ChangeFeed, Subscription

logger = logging.getLogger(__name__)


def _where_clauses(model: type[SQLModel], where: Filter | None) -> list:
    clauses = []
    for key, value in (where or {}).items():
        column = getattr(model, key, None)
        if column is None:
            raise StoreError(f"Unknown column '{key}' on {model.__tablename__}")
        if isinstance(value, (list, tuple, set, frozenset)):
            clauses.append(col(column).in_(list(value)))
        elif value is None:
            clauses.append(col(column).is_(None))
        else:
            clauses.append(col(column) == value)
    return clauses


class SQLRecordStore(RecordStore):
    """Record store over any SQLAlchemy async engine."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], feed: ChangeFeed):
        self._session_factory = session_factory
        self.feed = feed

    async def find(self, entity: Entity, where: Filter | None = None) -> list[SQLModel]:
        model = entity.model
        statement = select(model).where(*_where_clauses(model, where)).order_by(model.id)
        try:
            async with self._session_factory() as session:
                result = await session.exec(statement)
                return list(result.all())
        except SQLAlchemyError as e:
            logger.error(f"find({entity.value}) failed: {e}")
            raise StoreError(f"Failed to read {entity.value} records: {e}") from e

    async def insert(self, entity: Entity, record: SQLModel) -> SQLModel:
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
                await session.refresh(record)
        except SQLAlchemyError as e:
            logger.error(f"insert({entity.value}) failed: {e}")
            raise StoreError(f"Failed to insert {entity.value}: {e}") from e

        self.feed.publish(ChangeEvent(entity, ChangeKind.insert, new=record.model_dump()))
        return record

    async def update(
        self, entity: Entity, record_id: UUID, patch: Mapping[str, Any]
    ) -> SQLModel:
        model = entity.model
        try:
            async with self._session_factory() as session:
                record = await session.get(model, record_id)
                if record is None:
                    raise StoreError(f"{entity.value} {record_id} does not exist")
                old = record.model_dump()
                for key, value in patch.items():
                    if key not in model.model_fields:
                        raise StoreError(f"Unknown column '{key}' on {model.__tablename__}")
                    setattr(record, key, value)
                if "updated_at" in model.model_fields and "updated_at" not in patch:
                    record.updated_at = datetime.now(UTC)
                session.add(record)
                await session.commit()
                await session.refresh(record)
        except SQLAlchemyError as e:
            logger.error(f"update({entity.value}, {record_id}) failed: {e}")
            raise StoreError(f"Failed to update {entity.value}: {e}") from e

        self.feed.publish(
            ChangeEvent(entity, ChangeKind.update, new=record.model_dump(), old=old)
        )
        return record

    async def delete(self, entity: Entity, where: Filter) -> int:
        if not where:
            raise StoreError(f"Refusing to delete every {entity.value} record")
        model = entity.model
        statement = select(model).where(*_where_clauses(model, where))
        try:
            async with self._session_factory() as session:
                result = await session.exec(statement)
                records = list(result.all())
                removed = [record.model_dump() for record in records]
                for record in records:
                    await session.delete(record)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"delete({entity.value}) failed: {e}")
            raise StoreError(f"Failed to delete {entity.value} records: {e}") from e

        for row in removed:
            self.feed.publish(ChangeEvent(entity, ChangeKind.delete, old=row))
        return len(removed)

    def subscribe(self, entity: Entity, where: Filter | None = None) -> Subscription:
        return self.feed.subscribe(ChangeFilter(entity, dict(where or {})))
