"""Outbound SMS and email senders: log-only and HTTP provider relay.

The engine treats providers as opaque: an HTTP sender POSTs a JSON body to
the configured relay URL with a bearer key and reads an optional message id
from the response. Non-2xx responses and transport errors raise
SenderException so the step is recorded as failed.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.application.dtos.messaging import EmailMessage, SendReceipt, SmsMessage
from app.application.interfaces.services import IEmailSender, ISmsSender
from app.core.config import Settings
from app.domain.exceptions import SenderException
from app.shared.telemetry.logging import get_logger

logger = get_logger(__name__)


def _mask(address: str) -> str:
    """Keep the last 4 characters of a phone number or the domain of an email."""
    if "@" in address:
        local, _, domain = address.partition("@")
        return f"{local[:1]}***@{domain}"
    return f"***{address[-4:]}" if len(address) > 4 else "***"


class LogOnlySmsSender:
    """ISmsSender implementation that logs instead of sending.

    Use when no SMS provider is configured.
    """

    async def send(self, message: SmsMessage) -> SendReceipt:
        logger.info(
            "SMS: would send %d chars to %s", len(message.body), _mask(message.to)
        )
        logger.debug("SMS body (first 500 chars): %s", message.body[:500])
        return SendReceipt(channel="sms")


class LogOnlyEmailSender:
    """IEmailSender implementation that logs instead of sending.

    Use when no email provider is configured.
    """

    async def send(self, message: EmailMessage) -> SendReceipt:
        logger.info(
            "Email: would send to %s (subject=%r)",
            _mask(message.to),
            (message.subject or "")[:80],
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Email text (first 500 chars): %s", message.text[:500])
        return SendReceipt(channel="email")


class _HttpRelaySender:
    """POST JSON to a provider relay. Uses the shared client when one is given."""

    channel = "message"

    def __init__(
        self,
        url: str,
        api_key: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.url = url
        self.api_key = api_key
        self._client = client
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, payload: dict[str, Any]) -> SendReceipt:
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.url, json=payload, headers=self._headers(), timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(
                        self.url, json=payload, headers=self._headers()
                    )
        except httpx.HTTPError as e:
            raise SenderException(self.channel, f"transport error: {e}") from e
        if response.status_code >= 300:
            raise SenderException(
                self.channel,
                f"provider returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        return SendReceipt(channel=self.channel, external_id=_message_id(response))


def _message_id(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    data = body.get("data") if isinstance(body.get("data"), dict) else body
    value = data.get("id") or data.get("message_id")
    return str(value) if value else None


class HttpSmsSender(_HttpRelaySender):
    channel = "sms"

    def __init__(self, *args: Any, from_number: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.from_number = from_number

    async def send(self, message: SmsMessage) -> SendReceipt:
        receipt = await self._post(
            {
                "to": message.to,
                "from": message.from_number or self.from_number,
                "text": message.body,
                "metadata": message.metadata,
            }
        )
        logger.info("SMS sent to %s (external_id=%s)", _mask(message.to), receipt.external_id)
        return receipt


class HttpEmailSender(_HttpRelaySender):
    channel = "email"

    def __init__(self, *args: Any, from_address: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.from_address = from_address

    async def send(self, message: EmailMessage) -> SendReceipt:
        receipt = await self._post(
            {
                "to": message.to,
                "from": message.from_address or self.from_address,
                "subject": message.subject,
                "text": message.text,
                "html": message.html,
                "metadata": message.metadata,
            }
        )
        logger.info(
            "Email sent to %s (external_id=%s)", _mask(message.to), receipt.external_id
        )
        return receipt


def build_sms_sender(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> ISmsSender:
    """Sender for settings.sms_sender_backend ("log" or "http")."""
    if settings.sms_sender_backend == "http" and settings.sms_api_url:
        return HttpSmsSender(
            settings.sms_api_url,
            settings.sms_api_key.get_secret_value() if settings.sms_api_key else None,
            client=client,
            timeout=settings.sender_timeout_seconds,
            from_number=settings.sms_from_number or None,
        )
    return LogOnlySmsSender()


def build_email_sender(
    settings: Settings, client: httpx.AsyncClient | None = None
) -> IEmailSender:
    """Sender for settings.email_sender_backend ("log" or "http")."""
    if settings.email_sender_backend == "http" and settings.email_api_url:
        return HttpEmailSender(
            settings.email_api_url,
            settings.email_api_key.get_secret_value() if settings.email_api_key else None,
            client=client,
            timeout=settings.sender_timeout_seconds,
            from_address=settings.email_from_address or None,
        )
    return LogOnlyEmailSender()
