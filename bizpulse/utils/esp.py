"""Email sending helpers."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import httpx

from bizpulse.utils.retry import retry_async

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"
DEFAULT_SENDER = "BizPulse Reports <reports@bizpulse.app>"


@dataclass(slots=True)
class EmailMessage:
    to: str
    subject: str
    html: str


class EmailProvider:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self.provider = os.environ.get("ESP_PROVIDER", "log")
        self.resend_api_key = os.environ.get("RESEND_API_KEY")
        self.sender = os.environ.get("EMAIL_SENDER", DEFAULT_SENDER)
        self._client = client

    async def send(self, message: EmailMessage) -> None:
        if self.provider == "resend" and self.resend_api_key:
            await self._send_resend(message)
        else:
            logger.info("Email (log) → %s: %s", message.to, message.subject)

    async def _send_resend(self, message: EmailMessage) -> None:
        payload = {
            "from": self.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        headers = {"Authorization": f"Bearer {self.resend_api_key}"}
        if self._client is not None:
            await self._post(self._client, payload, headers)
            return
        async with httpx.AsyncClient(timeout=15.0) as client:
            await self._post(client, payload, headers)

    @retry_async(base_delay=0.5)
    async def _post(self, client: httpx.AsyncClient, payload: dict, headers: dict[str, str]) -> None:
        response = await client.post(RESEND_URL, json=payload, headers=headers)
        response.raise_for_status()
