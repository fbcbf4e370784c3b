from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest

from alerthub.core.security import create_access_token
from alerthub.dependencies import get_alert_event_service, get_menu_service
from alerthub.main import app
from alerthub.services.alert_events import AlertEventService
from alerthub.services.claim import ClaimCoordinator
from alerthub.services.event_store import AlertEventStore
from alerthub.services.menus import MenuService
from alerthub.services.notifier import NotificationDispatcher
from alerthub.services.send_groups import SendGroupService


def _auth(user_id: int, username: str, *roles: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, username, list(roles))}"}


ALICE = _auth(101, "alice", "operator")
BOB = _auth(202, "bob", "operator")
VIEWER = _auth(303, "victor", "viewer")
ADMIN = _auth(1, "root", "admin")


@pytest.fixture
async def async_client(session_factory, webhook_client) -> AsyncIterator[httpx.AsyncClient]:
    """ASGI client with services bound to the per-test database."""
    store = AlertEventStore(session_factory)
    service = AlertEventService(
        store,
        ClaimCoordinator(store),
        NotificationDispatcher(client=webhook_client),
        SendGroupService(session_factory),
        default_webhook_url="https://hooks.example.com/default",
    )
    app.dependency_overrides[get_alert_event_service] = lambda: service
    app.dependency_overrides[get_menu_service] = lambda: MenuService(session_factory)
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_health(async_client: httpx.AsyncClient):
    res = await async_client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "healthy"}
    assert res.headers["X-Request-ID"]


@pytest.mark.anyio
async def test_requires_bearer_token(async_client: httpx.AsyncClient):
    res = await async_client.get("/api/v1/alert-events/")
    assert res.status_code == 401
    body = res.json()
    assert body["success"] is False
    assert body["error"]["code"] == "HTTP_ERROR"

    res = await async_client.get("/api/v1/alert-events/", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


@pytest.mark.anyio
async def test_claim_flow_and_conflict_envelope(async_client: httpx.AsyncClient, make_event, webhook):
    event = await make_event(id=42, alert_name="HighCPUUsage")

    res = await async_client.post("/api/v1/alert-events/42/claim", json={"expected_user_id": 0}, headers=ALICE)
    assert res.status_code == 200, res.text
    data = res.json()
    assert data["event_id"] == 42
    assert data["event"]["ren_ling_user_id"] == 101
    assert data["event"]["status"] == "firing"
    assert data["notified"] is True
    assert len(webhook.requests) == 1

    res = await async_client.post("/api/v1/alert-events/42/claim", json={"expected_user_id": 0}, headers=BOB)
    assert res.status_code == 409
    body = res.json()
    assert body["error"]["code"] == "CLAIM_CONFLICT"
    assert res.headers["X-Request-ID"] == body["request_id"]

    res = await async_client.get(f"/api/v1/alert-events/{event.id}", headers=BOB)
    assert res.json()["ren_ling_user_id"] == 101


@pytest.mark.anyio
async def test_claim_reports_notification_failure_as_warning(async_client: httpx.AsyncClient, make_event, webhook):
    webhook.status_code = 500
    event = await make_event()

    res = await async_client.post(f"/api/v1/alert-events/{event.id}/claim", headers=ALICE)

    assert res.status_code == 200
    data = res.json()
    assert data["notified"] is False
    assert "500" in data["notification_error"]
    assert data["event"]["ren_ling_user_id"] == 101


@pytest.mark.anyio
async def test_viewer_cannot_claim(async_client: httpx.AsyncClient, make_event):
    event = await make_event()

    res = await async_client.post(f"/api/v1/alert-events/{event.id}/claim", headers=VIEWER)

    assert res.status_code == 403


@pytest.mark.anyio
async def test_error_kinds_map_to_status_codes(async_client: httpx.AsyncClient):
    res = await async_client.get("/api/v1/alert-events/0", headers=ALICE)
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"

    res = await async_client.get("/api/v1/alert-events/999999", headers=ALICE)
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "NOT_FOUND"

    res = await async_client.patch("/api/v1/alert-events/999999", json={"status": "resolved"}, headers=ALICE)
    assert res.status_code == 404

    res = await async_client.get("/api/v1/alert-events/search", params={"name": ""}, headers=ALICE)
    assert res.status_code == 400


@pytest.mark.anyio
async def test_list_search_update(async_client: httpx.AsyncClient, make_event):
    await make_event(alert_name="DiskFull")
    target = await make_event(alert_name="NodeNotReady")

    res = await async_client.get("/api/v1/alert-events/", params={"page": 1, "size": 1}, headers=VIEWER)
    assert res.status_code == 200
    page = res.json()
    assert page["total"] == 2
    assert len(page["items"]) == 1

    res = await async_client.get("/api/v1/alert-events/search", params={"name": "NotReady"}, headers=VIEWER)
    assert [e["id"] for e in res.json()] == [target.id]

    res = await async_client.patch(
        f"/api/v1/alert-events/{target.id}",
        json={"status": "silenced", "silence_id": "sil-9", "labels": {"team": "infra"}},
        headers=ALICE,
    )
    assert res.status_code == 200, res.text
    data = res.json()
    assert (data["status"], data["silence_id"], data["labels"]) == ("silenced", "sil-9", {"team": "infra"})

    res = await async_client.post(f"/api/v1/alert-events/{target.id}/resolve", headers=ALICE)
    assert res.json()["status"] == "resolved"


@pytest.mark.anyio
async def test_send_message_transport_error(async_client: httpx.AsyncClient, webhook):
    webhook.status_code = 503

    res = await async_client.post(
        "/api/v1/alert-events/send-message",
        json={"url": "https://hooks.example.com/x", "message": "ping"},
        headers=ALICE,
    )

    assert res.status_code == 502
    assert res.json()["error"]["code"] == "TRANSPORT_ERROR"


@pytest.mark.anyio
async def test_menu_crud_and_tree(async_client: httpx.AsyncClient):
    res = await async_client.post("/api/v1/menus/", json={"name": "System", "path": "/system"}, headers=ADMIN)
    assert res.status_code == 201, res.text
    parent_id = res.json()["id"]

    res = await async_client.post(
        "/api/v1/menus/",
        json={"name": "Users", "path": "/system/users", "parent_id": parent_id},
        headers=ADMIN,
    )
    child_id = res.json()["id"]

    res = await async_client.post("/api/v1/menus/", json={"name": "Nope", "path": "/nope"}, headers=ALICE)
    assert res.status_code == 403

    res = await async_client.get("/api/v1/menus/", params={"is_tree": True}, headers=ALICE)
    tree = res.json()
    assert tree["total"] == 1
    assert tree["items"][0]["id"] == parent_id
    assert [c["id"] for c in tree["items"][0]["children"]] == [child_id]

    res = await async_client.put(f"/api/v1/menus/{child_id}", json={"hidden": 1}, headers=ADMIN)
    assert res.json()["hidden"] == 1

    res = await async_client.delete(f"/api/v1/menus/{child_id}", headers=ADMIN)
    assert res.json() == {"status": "ok"}
    res = await async_client.get(f"/api/v1/menus/{child_id}", headers=ADMIN)
    assert res.status_code == 404


@pytest.mark.anyio
async def test_send_message_malformed_url_is_502_without_echoing_url(async_client: httpx.AsyncClient):
    res = await async_client.post(
        "/api/v1/alert-events/send-message",
        json={"url": "http://[::1", "message": "ping"},
        headers=ALICE,
    )

    assert res.status_code == 502
    assert res.json()["error"]["code"] == "TRANSPORT_ERROR"
    assert "url" not in res.json()["error"].get("details", {})
