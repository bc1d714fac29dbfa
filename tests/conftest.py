"""Pytest configuration and fixtures for the automation service.

Uses app.main:app for HTTP tests and a file-backed SQLite database (aiosqlite)
for repository, integration and API tests. Each test gets its own database
file; the app's get_session_factory dependency is overridden to point at it.
"""

import os

# Settings validation needs a DATABASE_URL; the real engine is never used in tests.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./unused-test.db")

from collections.abc import AsyncIterator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.application.dtos.messaging import EmailMessage, SendReceipt, SmsMessage
from app.api.v1.dependencies import get_email_sender, get_sms_sender
from app.core.limiter import limiter
from app.domain.exceptions import SenderException
from app.infrastructure.persistence import models  # noqa: F401 registers tables
from app.infrastructure.persistence.database import (
    Base,
    get_session_factory,
    make_session_factory,
)
from app.infrastructure.persistence.models.messaging import Conversation
from app.infrastructure.persistence.models.workflow import AutomationWorkflow
from app.main import app


class RecordingSmsSender:
    """ISmsSender that records messages; fail=True makes every send raise."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[SmsMessage] = []
        self.fail = fail

    async def send(self, message: SmsMessage) -> SendReceipt:
        if self.fail:
            raise SenderException("sms", "provider unavailable", status_code=503)
        self.sent.append(message)
        return SendReceipt(channel="sms", external_id=f"sms-{len(self.sent)}")


class RecordingEmailSender:
    def __init__(self) -> None:
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> SendReceipt:
        self.sent.append(message)
        return SendReceipt(channel="email", external_id=f"email-{len(self.sent)}")


class RecordingSleeper:
    """Sleeper that records requested delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
async def session_factory(tmp_path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Session factory on a fresh SQLite file with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'automation.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Database session for repository tests. Rolls back after test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client against the FastAPI app (ASGI) backed by the test database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    limiter.enabled = False
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True


@pytest.fixture
def sms_sender() -> RecordingSmsSender:
    return RecordingSmsSender()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def api_senders(
    client: AsyncClient,
    sms_sender: RecordingSmsSender,
    email_sender: RecordingEmailSender,
) -> tuple[RecordingSmsSender, RecordingEmailSender]:
    """Route the app's outbound messages to the recording senders."""
    app.dependency_overrides[get_sms_sender] = lambda: sms_sender
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    return sms_sender, email_sender


@pytest.fixture
def make_workflow(session_factory: async_sessionmaker[AsyncSession]):
    """Insert an AutomationWorkflow and return it (committed)."""

    async def _make(**overrides: Any) -> AutomationWorkflow:
        values: dict[str, Any] = {
            "name": "Job completed follow-up",
            "entity_type": "job",
            "trigger_type": "status_changed_to",
            "to_status": "completed",
            "steps": [
                {
                    "id": "thank-you",
                    "type": "send_sms",
                    "message": "Hi {{client.name}}, thanks for choosing {{company.name}}!",
                }
            ],
            "trigger_conditions": [],
            "is_active": True,
        }
        values.update(overrides)
        async with session_factory() as session, session.begin():
            workflow = AutomationWorkflow(**values)
            session.add(workflow)
        return workflow

    return _make


@pytest.fixture
def make_conversation(session_factory: async_sessionmaker[AsyncSession]):
    """Insert a Conversation and return it (committed)."""

    async def _make(address: str = "+15550001111", **overrides: Any) -> Conversation:
        async with session_factory() as session, session.begin():
            conversation = Conversation(counterparty_address=address, **overrides)
            session.add(conversation)
        return conversation

    return _make
