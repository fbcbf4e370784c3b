from functools import lru_cache

from alerthub.config import get_settings
from alerthub.db import get_session_factory
from alerthub.services.alert_events import AlertEventService
from alerthub.services.claim import ClaimCoordinator
from alerthub.services.event_store import AlertEventStore
from alerthub.services.menus import MenuService
from alerthub.services.notifier import NotificationDispatcher
from alerthub.services.send_groups import SendGroupService


@lru_cache(maxsize=1)
def get_alert_event_service() -> AlertEventService:
    settings = get_settings()
    session_factory = get_session_factory()
    store = AlertEventStore(session_factory)
    return AlertEventService(
        store,
        ClaimCoordinator(store),
        NotificationDispatcher(timeout=settings.notify_timeout_seconds),
        SendGroupService(session_factory),
        notify_timeout=settings.notify_timeout_seconds,
        default_webhook_url=settings.default_webhook_url,
    )


@lru_cache(maxsize=1)
def get_menu_service() -> MenuService:
    return MenuService(get_session_factory())
