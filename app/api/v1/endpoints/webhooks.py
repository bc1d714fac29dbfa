"""Provider webhooks.

Inbound SMS pushes are always acknowledged with 200 so the provider does not
retry; malformed bodies, bad signatures and processing errors are logged.
Not rate limited: a throttled provider would redeliver in bursts.
"""

import hashlib
import hmac
import json
from typing import Annotated, Any

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from app.api.v1.dependencies import get_webhook_deduplicator
from app.core.config import Settings, get_settings
from app.infrastructure.services import WebhookDeduplicator
from app.schemas.webhook import WebhookAckResponse
from app.shared.telemetry import get_logger

logger = get_logger(__name__)

router = APIRouter()

SIGNATURE_HEADER = "X-Webhook-Signature-256"


def _verify_webhook_signature(body: bytes, signature_header: str | None, secret: str) -> bool:
    """Verify X-Webhook-Signature-256: sha256=<hex(hmac_sha256(secret, body))>."""
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.HMAC(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature_header[7:].strip(), expected)


async def process_sms_payload(deduplicator: WebhookDeduplicator, payload: Any) -> None:
    """Background ingest; errors are logged, the provider already has its 200."""
    try:
        outcome = await deduplicator.ingest(payload)
    except Exception:
        logger.exception("SMS webhook processing failed")
        return
    logger.debug(
        "SMS webhook %s: %s", outcome.external_id, outcome.status.value
    )


@router.post("/sms", response_model=WebhookAckResponse)
async def receive_sms_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    settings: Annotated[Settings, Depends(get_settings)],
    deduplicator: Annotated[WebhookDeduplicator, Depends(get_webhook_deduplicator)],
):
    """Acknowledge an SMS provider push and ingest it in the background."""
    body = await request.body()
    secret = settings.sms_webhook_secret
    if secret is not None and not _verify_webhook_signature(
        body, request.headers.get(SIGNATURE_HEADER), secret.get_secret_value()
    ):
        logger.warning("SMS webhook rejected: invalid or missing signature")
        return WebhookAckResponse()
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        logger.warning("SMS webhook rejected: body is not valid JSON (%d bytes)", len(body))
        return WebhookAckResponse()
    background_tasks.add_task(process_sms_payload, deduplicator, payload)
    return WebhookAckResponse()
