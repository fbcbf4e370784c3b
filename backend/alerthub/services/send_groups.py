from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from alerthub.exceptions import StorageError
from alerthub.models.send_group import MonitorSendGroup


class SendGroupService:
    """Read-only view of notification groups; they are managed elsewhere."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, logger: Any = None):
        self._sf = session_factory
        self._log = logger or structlog.get_logger(__name__)

    async def get_webhook(self, send_group_id: int) -> str | None:
        if send_group_id <= 0:
            return None
        stmt = select(MonitorSendGroup.webhook_url).where(
            MonitorSendGroup.id == send_group_id,
            MonitorSendGroup.deleted_at == 0,
        )
        try:
            async with self._sf() as session:
                url = (await session.execute(stmt)).scalars().first()
        except SQLAlchemyError as e:
            self._log.error("send_group.lookup_error", send_group_id=send_group_id, error=str(e))
            raise StorageError("Send group storage unavailable", details={"send_group_id": send_group_id}) from e
        return url or None
