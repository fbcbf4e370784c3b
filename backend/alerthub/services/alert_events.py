from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import structlog

from alerthub.exceptions import NotFoundOrDeleted, StorageError, TransportError, ValidationError
from alerthub.models.alert_event import MonitorAlertEvent
from alerthub.services.claim import ClaimCoordinator
from alerthub.services.event_store import AlertEventStore
from alerthub.services.notifier import DEFAULT_TIMEOUT_SECONDS, NotificationDispatcher, format_claim_message
from alerthub.services.send_groups import SendGroupService


@dataclass
class ClaimResult:
    event_id: int
    # None when the claim committed but the row could not be read back
    event: Optional[MonitorAlertEvent] = None
    notified: bool = False
    # set when the claim committed but the group message did not go out
    notification_error: Optional[str] = None


@dataclass
class EventPage:
    items: list[MonitorAlertEvent]
    total: int
    page: int
    size: int


class AlertEventService:
    """Entry point for alert-event operations used by the HTTP layer.

    Claims are durable before any notification is attempted; a failed
    notification is reported on the result and never reverts the claim.
    """

    def __init__(
        self,
        store: AlertEventStore,
        coordinator: ClaimCoordinator,
        dispatcher: NotificationDispatcher,
        send_groups: SendGroupService,
        *,
        notify_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        default_webhook_url: str | None = None,
        logger: Any = None,
    ):
        self._store = store
        self._coordinator = coordinator
        self._dispatcher = dispatcher
        self._send_groups = send_groups
        self._notify_timeout = notify_timeout
        self._default_webhook_url = default_webhook_url
        self._log = logger or structlog.get_logger(__name__)

    async def get_event(self, event_id: int) -> MonitorAlertEvent:
        return await self._store.get_by_id(event_id)

    async def search_events(self, name: str) -> list[MonitorAlertEvent]:
        return await self._store.search_by_name(name)

    async def list_events(self, page: int, size: int) -> EventPage:
        if page < 1:
            raise ValidationError("page must be at least 1", details={"page": page})
        if size < 1:
            raise ValidationError("size must be at least 1", details={"size": size})
        items = await self._store.list((page - 1) * size, size)
        total = await self._store.count()
        return EventPage(items=items, total=total, page=page, size=size)

    async def claim_event(
        self,
        event_id: int,
        user_id: int,
        username: str,
        *,
        expected_user_id: Optional[int] = None,
        notify: bool = True,
    ) -> ClaimResult:
        await self._coordinator.claim(event_id, user_id, expected_user_id=expected_user_id)
        result = ClaimResult(event_id=event_id)
        try:
            result.event = await self._store.get_by_id(event_id)
        except (StorageError, NotFoundOrDeleted) as e:
            # the claim is durable; only the fresh copy is missing
            self._log.warning("alert_event.claim_readback_failed", event_id=event_id, code=e.code)
            if notify:
                result.notification_error = "claim saved but the event could not be reloaded; notification skipped"
            return result
        if notify:
            await self._notify_claim(result, username)
        return result

    async def update_event(self, event_id: int, changes: dict[str, Any]) -> MonitorAlertEvent:
        await self._coordinator.update(event_id, changes)
        return await self._store.get_by_id(event_id)

    async def silence_event(self, event_id: int, silence_id: str) -> MonitorAlertEvent:
        await self._coordinator.silence(event_id, silence_id)
        return await self._store.get_by_id(event_id)

    async def resolve_event(self, event_id: int) -> MonitorAlertEvent:
        await self._coordinator.resolve(event_id)
        return await self._store.get_by_id(event_id)

    async def send_message(self, endpoint: str, message: str) -> str:
        return await self._dispatcher.notify(endpoint, message)

    async def _notify_claim(self, result: ClaimResult, username: str) -> None:
        event = result.event
        try:
            url = await self._send_groups.get_webhook(event.send_group_id) or self._default_webhook_url
            if not url:
                self._log.info("alert_event.notify_skipped", event_id=event.id, send_group_id=event.send_group_id)
                return
            message = format_claim_message(event, username)
            await asyncio.wait_for(self._dispatcher.notify(url, message), timeout=self._notify_timeout)
            result.notified = True
        except asyncio.TimeoutError:
            result.notification_error = f"notification timed out after {self._notify_timeout}s"
            self._log.warning("alert_event.notify_timeout", event_id=event.id, timeout=self._notify_timeout)
        except (TransportError, StorageError) as e:
            result.notification_error = e.message
            self._log.warning("alert_event.notify_failed", event_id=event.id, code=e.code, details=e.details)
