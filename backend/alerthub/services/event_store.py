from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

import structlog
from sqlalchemy import ColumnElement, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from alerthub.exceptions import NotFoundOrDeleted, StorageError, ValidationError
from alerthub.models.alert_event import MonitorAlertEvent


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _live():
    return MonitorAlertEvent.deleted_at == 0


class AlertEventStore:
    """Persistence for alert events.

    Every query carries ``deleted_at = 0``; soft-deleted rows never surface
    and never match an update. Each call runs in its own session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, logger: Any = None):
        self._sf = session_factory
        self._log = logger or structlog.get_logger(__name__)

    async def get_by_id(self, event_id: int) -> MonitorAlertEvent:
        if event_id <= 0:
            raise ValidationError(f"Invalid event id: {event_id}", details={"id": event_id})
        stmt = select(MonitorAlertEvent).where(MonitorAlertEvent.id == event_id, _live())
        try:
            async with self._sf() as session:
                row = (await session.execute(stmt)).scalars().first()
        except SQLAlchemyError as e:
            raise self._storage_error("get_by_id", e, event_id=event_id) from e
        if row is None:
            raise NotFoundOrDeleted(f"Alert event {event_id} not found", details={"id": event_id})
        return row

    async def search_by_name(self, name: str) -> list[MonitorAlertEvent]:
        if not name:
            raise ValidationError("Search name must not be empty")
        stmt = (
            select(MonitorAlertEvent)
            .where(_live(), MonitorAlertEvent.alert_name.contains(name, autoescape=True))
            .order_by(MonitorAlertEvent.created_at.desc(), MonitorAlertEvent.id.desc())
        )
        try:
            async with self._sf() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise self._storage_error("search_by_name", e, alert_name=name) from e
        return list(rows)

    async def list(self, offset: int, limit: int) -> list[MonitorAlertEvent]:
        if offset < 0:
            raise ValidationError("offset must not be negative", details={"offset": offset})
        if limit <= 0:
            raise ValidationError("limit must be greater than 0", details={"limit": limit})
        stmt = (
            select(MonitorAlertEvent)
            .where(_live())
            .order_by(MonitorAlertEvent.created_at.desc(), MonitorAlertEvent.id.desc())
            .offset(offset)
            .limit(limit)
        )
        try:
            async with self._sf() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            raise self._storage_error("list", e, offset=offset, limit=limit) from e
        return list(rows)

    async def count(self) -> int:
        stmt = select(func.count()).select_from(MonitorAlertEvent).where(_live())
        try:
            async with self._sf() as session:
                return int((await session.execute(stmt)).scalar_one())
        except SQLAlchemyError as e:
            raise self._storage_error("count", e) from e

    async def conditional_update(
        self,
        event_id: int,
        fields: dict[str, Any],
        *,
        where: Iterable[ColumnElement[bool]] = (),
    ) -> int:
        """Single ``UPDATE ... WHERE id = ? AND deleted_at = 0 [AND where...]``.

        ``updated_at`` is always written. Returns the affected row count; 0
        means missing, deleted or a failed precondition, and is not an error
        at this layer.
        """
        if event_id <= 0:
            raise ValidationError(f"Invalid event id: {event_id}", details={"id": event_id})
        values = dict(fields)
        values["updated_at"] = utcnow()
        stmt = (
            update(MonitorAlertEvent)
            .where(MonitorAlertEvent.id == event_id, _live(), *where)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._sf() as session:
            try:
                result = await session.execute(stmt)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise self._storage_error("conditional_update", e, event_id=event_id, fields=sorted(fields)) from e
        return result.rowcount or 0

    def _storage_error(self, op: str, exc: Exception, **context: Any) -> StorageError:
        self._log.error("alert_event_store.error", op=op, error=str(exc), **context)
        return StorageError("Alert event storage unavailable", details={"op": op, **context})
