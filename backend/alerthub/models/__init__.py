from alerthub.models.alert_event import AlertEventStatus, MonitorAlertEvent
from alerthub.models.menu import Menu
from alerthub.models.send_group import MonitorSendGroup

__all__ = [
    "AlertEventStatus",
    "MonitorAlertEvent",
    "MonitorSendGroup",
    "Menu",
]
