"""
Collaborator webhook.

Document rendering, email delivery and QR images are owned by a separate
service. When `APP_COLLABORATOR_WEBHOOK_URL` is set, every committed
transition is forwarded there as JSON. Delivery is single-shot: failures
are logged and dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from campuspass.workflow.events import TransitionEvent

logger = logging.getLogger(__name__)


class WebhookForwarder:
    def __init__(self, url: str, timeout: float = 5.0, session: requests.Session | None = None):
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()

    async def __call__(self, event: TransitionEvent) -> None:
        await asyncio.to_thread(self.forward, event)

    def body_for(self, event: TransitionEvent) -> dict[str, Any]:
        return {
            "event": event.event_name,
            "payload": {
                **event.live_payload(),
                "student_id": event.student_id,
                "hostel": event.hostel,
                "details": event.details,
            },
        }

    def forward(self, event: TransitionEvent) -> bool:
        try:
            resp = self._session.post(self.url, json=self.body_for(event), timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Webhook delivery failed for %s outpass=%s: %s", event.event_name, event.outpass_number, exc)
            return False

        if resp.status_code >= 300:
            logger.warning(
                "Webhook rejected %s outpass=%s status=%s",
                event.event_name,
                event.outpass_number,
                resp.status_code,
            )
            return False

        logger.debug("Webhook accepted %s outpass=%s", event.event_name, event.outpass_number)
        return True

    def close(self) -> None:
        self._session.close()
