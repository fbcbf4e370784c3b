from __future__ import annotations

from typing import Any

import httpx
import structlog

from alerthub.exceptions import TransportError, ValidationError
from alerthub.models.alert_event import MonitorAlertEvent

DEFAULT_TIMEOUT_SECONDS = 10.0
_BODY_PREVIEW = 512


def build_text_payload(message: str) -> dict[str, Any]:
    # group robot text message format
    return {"msg_type": "text", "content": {"text": message}}


def format_claim_message(event: MonitorAlertEvent, username: str) -> str:
    return (
        f"[Alert claimed] {event.alert_name}\n"
        f"fingerprint: {event.fingerprint}\n"
        f"status: {event.status}\n"
        f"claimed by: {username} (id {event.ren_ling_user_id})\n"
        f"fired: {event.event_times} time(s)"
    )


class NotificationDispatcher:
    """Posts text messages to a group webhook.

    One attempt per call, no retries. Failures raise ``TransportError`` so the
    caller can tell them apart from storage failures. Webhook URLs usually
    embed the robot token, so they are logged under ``webhook_url`` (masked
    by the JSON formatter) and never copied into error details.
    """

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
        logger: Any = None,
    ):
        self._timeout = timeout
        self._client = client
        self._log = logger or structlog.get_logger(__name__)

    async def notify(self, endpoint: str, message: str) -> str:
        """Send ``message`` to ``endpoint`` and return the raw response body."""
        if not endpoint:
            raise ValidationError("endpoint must not be empty")
        if not message:
            raise ValidationError("message must not be empty")

        payload = build_text_payload(message)
        try:
            if self._client is not None:
                response = await self._client.post(endpoint, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(endpoint, json=payload)
        except httpx.InvalidURL as e:
            # raised while building the request, outside the HTTPError tree
            self._log.error("notify.invalid_url", webhook_url=endpoint, text=message, error=str(e))
            raise TransportError("Group notification URL is invalid", details={"error": str(e)}) from e
        except httpx.TimeoutException as e:
            self._log.error("notify.timeout", webhook_url=endpoint, text=message, timeout=self._timeout)
            raise TransportError("Group notification timed out", details={"timeout": self._timeout}) from e
        except httpx.HTTPError as e:
            self._log.error("notify.failed", webhook_url=endpoint, text=message, error=str(e))
            raise TransportError("Group notification failed", details={"error": type(e).__name__}) from e

        body = response.text
        if not response.is_success:
            self._log.error(
                "notify.rejected",
                webhook_url=endpoint,
                text=message,
                status_code=response.status_code,
                response=body[:_BODY_PREVIEW],
            )
            raise TransportError(
                f"Group notification rejected with HTTP {response.status_code}",
                details={"status_code": response.status_code, "response": body[:_BODY_PREVIEW]},
            )

        self._log.info("notify.sent", webhook_url=endpoint, text=message, response=body[:_BODY_PREVIEW])
        return body
