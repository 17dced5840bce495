"""HTTP email transport.

Posts each message as JSON to an email provider endpoint with a bearer API
key. Retries with exponential backoff; raises NotificationDeliveryError once
retries are exhausted so the dispatcher can record the failure.

Environment Variables:
- EMAIL_API_URL: Provider endpoint (required for this transport)
- EMAIL_API_KEY: Bearer token
- EMAIL_SENDER: From address (default: covenant@localhost)
"""

from __future__ import annotations

import asyncio
import os

import httpx
import structlog

from covenant_registry.domain.errors import NotificationDeliveryError
from covenant_registry.domain.models.notification import OutboundMessage

log = structlog.get_logger()

DEFAULT_SENDER = "covenant@localhost"


class HttpEmailTransport:
    """Delivers notifications through an HTTP email API."""

    def __init__(
        self,
        api_url: str,
        api_key: str | None = None,
        sender: str = DEFAULT_SENDER,
        timeout: float = 10.0,
        max_retries: int = 3,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            api_url: Provider endpoint receiving the JSON message.
            api_key: Optional bearer token.
            sender: From address.
            timeout: Per-request timeout in seconds.
            max_retries: Attempts per message before giving up.
            client: Optional shared client (tests inject a mock transport).
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self._api_url = api_url
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout
        self._max_retries = max_retries
        self._client = client

    @classmethod
    def from_environment(cls) -> HttpEmailTransport | None:
        """Build a transport from EMAIL_* variables, or None when unset."""
        api_url = os.environ.get("EMAIL_API_URL")
        if not api_url:
            return None
        return cls(
            api_url=api_url,
            api_key=os.environ.get("EMAIL_API_KEY") or None,
            sender=os.environ.get("EMAIL_SENDER", DEFAULT_SENDER),
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _body(self, message: OutboundMessage) -> dict[str, str]:
        return {
            "from": self._sender,
            "to": message.recipient,
            "subject": message.subject,
            "text": message.body,
            "tag": message.kind.value,
            "priority": message.priority,
        }

    async def send(self, message: OutboundMessage) -> None:
        if self._client is not None:
            await self._send_with(self._client, message)
            return
        async with httpx.AsyncClient() as client:
            await self._send_with(client, message)

    async def _send_with(self, client: httpx.AsyncClient, message: OutboundMessage) -> None:
        reason = "no attempt made"
        for attempt in range(self._max_retries):
            try:
                response = await client.post(
                    self._api_url,
                    json=self._body(message),
                    headers=self._headers(),
                    timeout=self._timeout,
                )
                if response.status_code < 300:
                    log.info(
                        "email_delivered",
                        kind=message.kind.value,
                        recipient=message.recipient,
                        status_code=response.status_code,
                        attempt=attempt + 1,
                    )
                    return

                reason = f"provider returned HTTP {response.status_code}"
                log.warning(
                    "email_delivery_failed",
                    recipient=message.recipient,
                    status_code=response.status_code,
                    attempt=attempt + 1,
                )
                # Client errors will not improve on retry
                if 400 <= response.status_code < 500 and response.status_code != 429:
                    break

            except httpx.HTTPError as e:
                reason = str(e) or type(e).__name__
                log.warning(
                    "email_delivery_error",
                    recipient=message.recipient,
                    error=reason,
                    attempt=attempt + 1,
                )

            # Exponential backoff before retry
            if attempt < self._max_retries - 1:
                await asyncio.sleep(2**attempt)

        log.error(
            "email_delivery_exhausted",
            recipient=message.recipient,
            max_retries=self._max_retries,
        )
        raise NotificationDeliveryError(message.recipient, reason)
