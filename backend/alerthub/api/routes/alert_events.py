from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from alerthub.core.auth import CurrentUser, get_current_user, require_roles
from alerthub.dependencies import get_alert_event_service
from alerthub.schemas.alert_events import (
    AlertEventOut,
    AlertEventPage,
    AlertEventUpdate,
    ClaimIn,
    ClaimOut,
    SendMessageIn,
    SendMessageOut,
    SilenceIn,
)
from alerthub.services.alert_events import AlertEventService


router = APIRouter(prefix="/alert-events", tags=["alert-events"], dependencies=[Depends(get_current_user)])

_operator = require_roles("operator", "admin")


@router.get("/", response_model=AlertEventPage, summary="List alert events, newest first")
async def list_events(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=500),
    service: AlertEventService = Depends(get_alert_event_service),
) -> AlertEventPage:
    result = await service.list_events(page, size)
    return AlertEventPage(
        items=[AlertEventOut.from_model(r) for r in result.items],
        total=result.total,
        page=result.page,
        size=result.size,
    )


@router.get("/search", response_model=list[AlertEventOut], summary="Search alert events by name")
async def search_events(
    name: str = Query(default=""),
    service: AlertEventService = Depends(get_alert_event_service),
) -> list[AlertEventOut]:
    rows = await service.search_events(name)
    return [AlertEventOut.from_model(r) for r in rows]


@router.post("/send-message", response_model=SendMessageOut, dependencies=[Depends(_operator)])
async def send_message(body: SendMessageIn, service: AlertEventService = Depends(get_alert_event_service)) -> SendMessageOut:
    response = await service.send_message(body.url, body.message)
    return SendMessageOut(response=response)


@router.get("/{event_id}", response_model=AlertEventOut)
async def get_event(event_id: int, service: AlertEventService = Depends(get_alert_event_service)) -> AlertEventOut:
    return AlertEventOut.from_model(await service.get_event(event_id))


@router.post("/{event_id}/claim", response_model=ClaimOut, summary="Claim an alert event")
async def claim_event(
    event_id: int,
    body: ClaimIn | None = None,
    current: CurrentUser = Depends(_operator),
    service: AlertEventService = Depends(get_alert_event_service),
) -> ClaimOut:
    body = body or ClaimIn()
    result = await service.claim_event(
        event_id,
        current.id,
        current.username,
        expected_user_id=body.expected_user_id,
        notify=body.notify,
    )
    return ClaimOut(
        event_id=result.event_id,
        event=AlertEventOut.from_model(result.event) if result.event is not None else None,
        notified=result.notified,
        notification_error=result.notification_error,
    )


@router.patch("/{event_id}", response_model=AlertEventOut, dependencies=[Depends(_operator)])
async def update_event(
    event_id: int,
    body: AlertEventUpdate,
    service: AlertEventService = Depends(get_alert_event_service),
) -> AlertEventOut:
    changes = body.model_dump(exclude_unset=True, mode="json")
    return AlertEventOut.from_model(await service.update_event(event_id, changes))


@router.post("/{event_id}/silence", response_model=AlertEventOut, dependencies=[Depends(_operator)])
async def silence_event(
    event_id: int,
    body: SilenceIn,
    service: AlertEventService = Depends(get_alert_event_service),
) -> AlertEventOut:
    return AlertEventOut.from_model(await service.silence_event(event_id, body.silence_id))


@router.post("/{event_id}/resolve", response_model=AlertEventOut, dependencies=[Depends(_operator)])
async def resolve_event(event_id: int, service: AlertEventService = Depends(get_alert_event_service)) -> AlertEventOut:
    return AlertEventOut.from_model(await service.resolve_event(event_id))
