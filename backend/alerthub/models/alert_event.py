from __future__ import annotations

import enum
import json
from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from alerthub.db import Base


class AlertEventStatus(str, enum.Enum):
    FIRING = "firing"
    SILENCED = "silenced"
    RESOLVED = "resolved"


# statuses that no longer accept a claim
TERMINAL_STATUSES = (AlertEventStatus.SILENCED.value, AlertEventStatus.RESOLVED.value)


class MonitorAlertEvent(Base):
    __tablename__ = "monitor_alert_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    alert_name: Mapped[str] = mapped_column(String(255), index=True, default="")
    fingerprint: Mapped[str] = mapped_column(String(128), index=True, default="")
    status: Mapped[str] = mapped_column(String(32), index=True, default=AlertEventStatus.FIRING.value)
    rule_id: Mapped[int] = mapped_column(Integer, default=0)
    send_group_id: Mapped[int] = mapped_column(Integer, default=0)
    event_times: Mapped[int] = mapped_column(Integer, default=1)
    silence_id: Mapped[str] = mapped_column(String(64), default="")
    # 0 until an operator claims the event
    ren_ling_user_id: Mapped[int] = mapped_column(Integer, index=True, default=0)
    labels: Mapped[str] = mapped_column(Text, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # unix seconds of soft deletion, 0 = live
    deleted_at: Mapped[int] = mapped_column(BigInteger, index=True, default=0)

    @property
    def labels_dict(self) -> dict[str, Any]:
        try:
            value = json.loads(self.labels) if self.labels else {}
        except ValueError:
            return {}
        return value if isinstance(value, dict) else {}

    @property
    def claimed(self) -> bool:
        return bool(self.ren_ling_user_id)
