from __future__ import annotations

import json
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from alerthub.db import init_db
from alerthub.models.alert_event import MonitorAlertEvent
from alerthub.models.send_group import MonitorSendGroup
from alerthub.services.claim import ClaimCoordinator
from alerthub.services.event_store import AlertEventStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Fresh SQLite file database per test (a file, so concurrent sessions get separate connections)."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'alerthub.db'}")
    await init_db(engine)
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
def store(session_factory) -> AlertEventStore:
    return AlertEventStore(session_factory)


@pytest.fixture
def coordinator(store) -> ClaimCoordinator:
    return ClaimCoordinator(store)


@pytest.fixture
def make_event(session_factory) -> Callable[..., Awaitable[MonitorAlertEvent]]:
    """Insert an alert event the way the upstream ingester would: firing and unclaimed."""

    async def _make(**fields: Any) -> MonitorAlertEvent:
        created = fields.pop("created_at", datetime.now(timezone.utc) - timedelta(hours=1))
        labels = fields.pop("labels", {"severity": "critical"})
        values: dict[str, Any] = {
            "alert_name": "HighCPUUsage",
            "fingerprint": uuid.uuid4().hex,
            "status": "firing",
            "labels": json.dumps(labels),
            "created_at": created,
            "updated_at": created,
        }
        values.update(fields)
        async with session_factory() as session:
            event = MonitorAlertEvent(**values)
            session.add(event)
            await session.commit()
            await session.refresh(event)
        return event

    return _make


@pytest.fixture
def make_send_group(session_factory) -> Callable[..., Awaitable[MonitorSendGroup]]:
    async def _make(webhook_url: str | None, **fields: Any) -> MonitorSendGroup:
        now = datetime.now(timezone.utc)
        async with session_factory() as session:
            group = MonitorSendGroup(
                name=fields.pop("name", "oncall"),
                webhook_url=webhook_url,
                created_at=now,
                updated_at=now,
                **fields,
            )
            session.add(group)
            await session.commit()
            await session.refresh(group)
        return group

    return _make


class WebhookRecorder:
    """httpx.MockTransport handler that records requests and replies with a canned response."""

    def __init__(self, status_code: int = 200, body: str = '{"code":0,"msg":"success"}'):
        self.status_code = status_code
        self.body = body
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.body)

    @property
    def payloads(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def webhook() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
async def webhook_client(webhook: WebhookRecorder) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(webhook)) as client:
        yield client
