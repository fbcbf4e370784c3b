from fastapi import APIRouter

from alerthub.api.routes import alert_events, menus

# every route below checks the bearer token itself
api_router = APIRouter(prefix="/api/v1")
api_router.include_router(alert_events.router)
api_router.include_router(menus.router)
