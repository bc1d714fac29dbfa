"""Provider webhook API schemas."""

from pydantic import BaseModel


class WebhookAckResponse(BaseModel):
    """Response for provider webhooks; always returned with 200."""

    received: bool = True
