from __future__ import annotations

import json
from typing import Any, Optional

import structlog
from sqlalchemy import ColumnElement

from alerthub.exceptions import ClaimConflict, NotFoundOrDeleted, ValidationError
from alerthub.models.alert_event import TERMINAL_STATUSES, AlertEventStatus, MonitorAlertEvent
from alerthub.services.event_store import AlertEventStore

# columns an update may touch; claimant, identity and timestamps are excluded
UPDATABLE_FIELDS = ("status", "silence_id", "rule_id", "send_group_id", "labels", "event_times")


class ClaimCoordinator:
    """Claim and update transitions for alert events.

    Every transition is one conditional write; the affected row count is the
    only concurrency primitive, so several service instances can share a
    database without any in-process lock.
    """

    def __init__(self, store: AlertEventStore, *, logger: Any = None):
        self._store = store
        self._log = logger or structlog.get_logger(__name__)

    async def claim(self, event_id: int, user_id: int, *, expected_user_id: Optional[int] = None) -> None:
        """Assign ``event_id`` to ``user_id``.

        The write only matches when the event is live, not silenced or
        resolved, and unclaimed or already held by ``user_id``. When the caller
        passes the claimant it observed, the write also requires the row to
        still hold that value. A same-user re-claim succeeds and only
        refreshes ``updated_at``.
        """
        if event_id <= 0:
            raise ValidationError(f"Invalid event id: {event_id}", details={"id": event_id})
        if user_id <= 0:
            raise ValidationError(f"Invalid user id: {user_id}", details={"user_id": user_id})
        if expected_user_id is not None and expected_user_id < 0:
            raise ValidationError("expected_user_id must not be negative", details={"expected_user_id": expected_user_id})

        where: list[ColumnElement[bool]] = [
            MonitorAlertEvent.status.not_in(TERMINAL_STATUSES),
            MonitorAlertEvent.ren_ling_user_id.in_((0, user_id)),
        ]
        if expected_user_id is not None:
            where.append(MonitorAlertEvent.ren_ling_user_id == expected_user_id)

        affected = await self._store.conditional_update(event_id, {"ren_ling_user_id": user_id}, where=where)
        if affected == 0:
            self._log.warning(
                "alert_event.claim_conflict",
                event_id=event_id,
                user_id=user_id,
                expected_user_id=expected_user_id,
            )
            raise ClaimConflict(
                f"Alert event {event_id} is already claimed, closed or no longer exists",
                details={"id": event_id},
            )
        self._log.info("alert_event.claimed", event_id=event_id, user_id=user_id)

    async def update(self, event_id: int, changes: dict[str, Any]) -> None:
        """Write any subset of the updatable fields atomically."""
        if event_id <= 0:
            raise ValidationError(f"Invalid event id: {event_id}", details={"id": event_id})
        values = self._validate_changes(changes)

        where: list[ColumnElement[bool]] = []
        if "event_times" in values:
            # firing count never goes backwards
            where.append(MonitorAlertEvent.event_times <= values["event_times"])

        affected = await self._store.conditional_update(event_id, values, where=where)
        if affected == 0:
            self._log.warning("alert_event.update_missed", event_id=event_id, fields=sorted(values))
            raise NotFoundOrDeleted(
                f"Alert event {event_id} not found, deleted or precondition failed",
                details={"id": event_id},
            )
        self._log.info("alert_event.updated", event_id=event_id, fields=sorted(values))

    async def silence(self, event_id: int, silence_id: str) -> None:
        if not silence_id:
            raise ValidationError("silence_id must not be empty")
        await self.update(event_id, {"status": AlertEventStatus.SILENCED.value, "silence_id": silence_id})

    async def resolve(self, event_id: int) -> None:
        await self.update(event_id, {"status": AlertEventStatus.RESOLVED.value})

    @staticmethod
    def _validate_changes(changes: dict[str, Any]) -> dict[str, Any]:
        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError("Fields cannot be updated", details={"fields": unknown})
        if not changes:
            raise ValidationError("No fields to update")

        values: dict[str, Any] = {}
        for key, value in changes.items():
            if key == "status":
                try:
                    values[key] = AlertEventStatus(value).value
                except ValueError:
                    raise ValidationError(f"Unknown status: {value}", details={"status": value})
            elif key in ("rule_id", "send_group_id"):
                if not isinstance(value, int) or value < 0:
                    raise ValidationError(f"{key} must be a non-negative integer", details={key: value})
                values[key] = value
            elif key == "event_times":
                if not isinstance(value, int) or value < 1:
                    raise ValidationError("event_times must be a positive integer", details={key: value})
                values[key] = value
            elif key == "labels":
                if not isinstance(value, dict):
                    raise ValidationError("labels must be a mapping")
                values[key] = json.dumps(value, ensure_ascii=False, sort_keys=True)
            elif key == "silence_id":
                values[key] = str(value or "")
        return values
