"""Presentation-layer dependency injection (composition root).

Provides FastAPI Depends() for DB sessions, repositories and the automation
services. Services are built from infrastructure implementations here;
routes depend only on these dependencies, not on infra directly.

Everything that touches the database hangs off get_session_factory, so tests
override that single dependency with a SQLite-backed factory.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from typing import Annotated, Any

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.application.interfaces import IEmailSender, ISmsSender
from app.core.config import Settings, get_settings
from app.infrastructure.persistence.database import get_session_factory
from app.infrastructure.persistence.repositories import (
    ExecutionLogRepository,
    WorkflowRepository,
)
from app.infrastructure.services import (
    ActionRunner,
    ExecutionDispatcher,
    RetryCoordinator,
    SentMessageStore,
    TriggerDetector,
    WebhookDeduplicator,
    build_email_sender,
    build_sms_sender,
)

SessionFactory = Annotated[
    async_sessionmaker[AsyncSession], Depends(get_session_factory)
]
AppSettings = Annotated[Settings, Depends(get_settings)]


# ---- DB sessions ----


async def get_db(factory: SessionFactory) -> AsyncGenerator[AsyncSession, None]:
    """Session for read-only routes (no commit)."""
    async with factory() as session:
        yield session


async def get_db_transactional(
    factory: SessionFactory,
) -> AsyncGenerator[AsyncSession, None]:
    """Session for write routes: commits on success, rolls back on error."""
    async with factory() as session:
        async with session.begin():
            yield session


# ---- Repositories ----


def get_workflow_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> WorkflowRepository:
    return WorkflowRepository(db)


def get_workflow_repo_for_write(
    db: Annotated[AsyncSession, Depends(get_db_transactional)],
) -> WorkflowRepository:
    return WorkflowRepository(db)


def get_execution_log_repo(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> ExecutionLogRepository:
    return ExecutionLogRepository(db)


# ---- Outbound senders ----


def get_http_client(request: Request) -> httpx.AsyncClient | None:
    """Shared client from the lifespan; None when the lifespan did not run."""
    return getattr(request.app.state, "http_client", None)


def get_sms_sender(
    settings: AppSettings,
    client: Annotated[httpx.AsyncClient | None, Depends(get_http_client)],
) -> ISmsSender:
    return build_sms_sender(settings, client)


def get_email_sender(
    settings: AppSettings,
    client: Annotated[httpx.AsyncClient | None, Depends(get_http_client)],
) -> IEmailSender:
    return build_email_sender(settings, client)


# ---- Automation services ----


def _company(settings: Settings) -> dict[str, Any]:
    return {
        "name": settings.company_name,
        "phone": settings.company_phone,
        "email": settings.company_email,
    }


def get_action_runner(
    settings: AppSettings,
    factory: SessionFactory,
    sms_sender: Annotated[ISmsSender, Depends(get_sms_sender)],
    email_sender: Annotated[IEmailSender, Depends(get_email_sender)],
) -> ActionRunner:
    return ActionRunner(
        sms_sender,
        email_sender,
        sms_from_number=settings.sms_from_number or None,
        email_from_address=settings.email_from_address or None,
        sent_messages=SentMessageStore(factory),
    )


def get_execution_dispatcher(
    settings: AppSettings,
    factory: SessionFactory,
    action_runner: Annotated[ActionRunner, Depends(get_action_runner)],
) -> ExecutionDispatcher:
    return ExecutionDispatcher(
        factory,
        action_runner,
        company=_company(settings),
        batch_size=settings.automation_dispatch_batch_size,
        timezone=settings.company_timezone,
    )


def get_retry_coordinator(
    settings: AppSettings, factory: SessionFactory
) -> RetryCoordinator:
    return RetryCoordinator(
        factory,
        max_retries=settings.automation_max_retries,
        cool_down_seconds=settings.automation_cool_down_seconds,
        base_delay_seconds=settings.automation_retry_base_delay_seconds,
        backoff_multiplier=settings.automation_retry_backoff_multiplier,
        batch_size=settings.automation_retry_batch_size,
    )


def get_webhook_deduplicator(
    settings: AppSettings, factory: SessionFactory
) -> WebhookDeduplicator:
    return WebhookDeduplicator(
        factory,
        opt_out_keywords=settings.opt_out_keyword_set,
        preview_length=settings.message_preview_length,
    )


def get_trigger_detector_builder(
    settings: AppSettings,
) -> Callable[[AsyncSession], TriggerDetector]:
    """Builder binding a detector to the caller's transaction.

    The trigger route commits enqueued rows itself before scheduling dispatch,
    so it owns the session instead of taking one from get_db_transactional.
    """

    def build(db: AsyncSession) -> TriggerDetector:
        return TriggerDetector(
            WorkflowRepository(db),
            ExecutionLogRepository(db),
            status_field=settings.tracked_status_field,
        )

    return build
