from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from alerthub.models.alert_event import AlertEventStatus, MonitorAlertEvent


class AlertEventOut(BaseModel):
    id: int
    alert_name: str
    fingerprint: str
    status: str
    rule_id: int
    send_group_id: int
    event_times: int
    silence_id: str
    ren_ling_user_id: int
    labels: dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, r: MonitorAlertEvent) -> "AlertEventOut":
        return cls(
            id=r.id,
            alert_name=r.alert_name,
            fingerprint=r.fingerprint,
            status=r.status,
            rule_id=r.rule_id,
            send_group_id=r.send_group_id,
            event_times=r.event_times,
            silence_id=r.silence_id,
            ren_ling_user_id=r.ren_ling_user_id,
            labels=r.labels_dict,
            created_at=r.created_at,
            updated_at=r.updated_at,
        )


class AlertEventPage(BaseModel):
    items: list[AlertEventOut]
    total: int
    page: int
    size: int


class ClaimIn(BaseModel):
    # claimant the caller saw; 0 = "I saw it unclaimed"
    expected_user_id: Optional[int] = Field(default=None, ge=0)
    notify: bool = True


class ClaimOut(BaseModel):
    event_id: int
    # null when the claim was saved but the event could not be reloaded
    event: Optional[AlertEventOut] = None
    notified: bool
    notification_error: Optional[str] = None


class AlertEventUpdate(BaseModel):
    status: Optional[AlertEventStatus] = None
    silence_id: Optional[str] = None
    rule_id: Optional[int] = None
    send_group_id: Optional[int] = None
    labels: Optional[dict[str, Any]] = None
    event_times: Optional[int] = None


class SilenceIn(BaseModel):
    silence_id: str


class SendMessageIn(BaseModel):
    url: str
    message: str


class SendMessageOut(BaseModel):
    response: str
