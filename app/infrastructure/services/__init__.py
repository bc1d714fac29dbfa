"""Infrastructure implementations of the automation engine services."""

from app.infrastructure.services.action_runner import ActionRunner
from app.infrastructure.services.email_layout import EmailLayoutRenderer
from app.infrastructure.services.execution_dispatcher import ExecutionDispatcher
from app.infrastructure.services.message_senders import (
    HttpEmailSender,
    HttpSmsSender,
    LogOnlyEmailSender,
    LogOnlySmsSender,
    build_email_sender,
    build_sms_sender,
)
from app.infrastructure.services.retry_coordinator import RetryCoordinator
from app.infrastructure.services.sent_message_store import SentMessageStore
from app.infrastructure.services.template_renderer import TemplateRenderer
from app.infrastructure.services.trigger_detector import TriggerDetector
from app.infrastructure.services.webhook_deduplicator import WebhookDeduplicator

__all__ = [
    "ActionRunner",
    "EmailLayoutRenderer",
    "ExecutionDispatcher",
    "HttpEmailSender",
    "HttpSmsSender",
    "LogOnlyEmailSender",
    "LogOnlySmsSender",
    "RetryCoordinator",
    "SentMessageStore",
    "TemplateRenderer",
    "TriggerDetector",
    "WebhookDeduplicator",
    "build_email_sender",
    "build_sms_sender",
]
