"""Tests for the HTTP relay senders and sender selection from settings."""

import json

import httpx
import pytest

from app.application.dtos.messaging import EmailMessage, SmsMessage
from app.core.config import Settings
from app.domain.exceptions import SenderException
from app.infrastructure.services.message_senders import (
    HttpEmailSender,
    HttpSmsSender,
    LogOnlyEmailSender,
    LogOnlySmsSender,
    build_email_sender,
    build_sms_sender,
)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_http_sms_sender_posts_json_with_bearer_key() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": {"id": "prov-123"}})

    async with _client(handler) as client:
        sender = HttpSmsSender(
            "https://sms.example.test/messages", "secret", client=client, from_number="+15550009999"
        )
        receipt = await sender.send(SmsMessage(to="+15550001111", body="Hi"))

    assert receipt.channel == "sms"
    assert receipt.external_id == "prov-123"
    request = seen[0]
    assert request.headers["Authorization"] == "Bearer secret"
    assert json.loads(request.content) == {
        "to": "+15550001111",
        "from": "+15550009999",
        "text": "Hi",
        "metadata": {},
    }


async def test_http_email_sender_reads_message_id() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert body["subject"] == "Invoice"
        assert body["html"] == "<p>Due</p>"
        return httpx.Response(202, json={"message_id": "em-9"})

    async with _client(handler) as client:
        sender = HttpEmailSender("https://mail.example.test/send", client=client)
        receipt = await sender.send(
            EmailMessage(to="ada@example.com", subject="Invoice", text="Due", html="<p>Due</p>")
        )
    assert receipt.external_id == "em-9"


async def test_non_2xx_raises_sender_exception() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, text="invalid number")

    async with _client(handler) as client:
        sender = HttpSmsSender("https://sms.example.test/messages", client=client)
        with pytest.raises(SenderException) as exc_info:
            await sender.send(SmsMessage(to="bad", body="Hi"))
    assert exc_info.value.details["status_code"] == 422


async def test_transport_error_raises_sender_exception() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        sender = HttpSmsSender("https://sms.example.test/messages", client=client)
        with pytest.raises(SenderException):
            await sender.send(SmsMessage(to="+15550001111", body="Hi"))


def test_build_senders_from_settings() -> None:
    log_settings = Settings(database_url="sqlite+aiosqlite:///x.db")
    assert isinstance(build_sms_sender(log_settings), LogOnlySmsSender)
    assert isinstance(build_email_sender(log_settings), LogOnlyEmailSender)

    http_settings = Settings(
        database_url="sqlite+aiosqlite:///x.db",
        sms_sender_backend="http",
        sms_api_url="https://sms.example.test/messages",
        email_sender_backend="http",
        email_api_url="https://mail.example.test/send",
    )
    assert isinstance(build_sms_sender(http_settings), HttpSmsSender)
    assert isinstance(build_email_sender(http_settings), HttpEmailSender)


def test_http_backend_requires_url() -> None:
    with pytest.raises(ValueError):
        Settings(database_url="sqlite+aiosqlite:///x.db", sms_sender_backend="http")


async def test_log_only_sender_accepts_without_provider_id() -> None:
    receipt = await LogOnlySmsSender().send(SmsMessage(to="+15550001111", body="Hi"))
    assert receipt.accepted
    assert receipt.external_id is None
