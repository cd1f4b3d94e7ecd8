"""Payment provider webhook endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from fastapi_orderflow.dependencies import (
    get_payment_handlers,
    get_webhook_processor,
)
from fastapi_orderflow.exceptions import InvalidCallbackError
from fastapi_orderflow.handlers import PaymentHandlers, to_response
from fastapi_orderflow.schemas import PaymentWebhookPayload, WebhookResponse
from fastapi_orderflow.webhooks import PaymentWebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhooks/payments/{provider}", response_model=WebhookResponse)
async def payment_webhook(
    provider: str,
    request: Request,
    processor: PaymentWebhookProcessor = Depends(get_webhook_processor),
) -> WebhookResponse:
    """Verify, deduplicate and apply a provider payment event."""
    raw_body = await request.body()
    processor.verify_signature(provider, request.headers, raw_body)

    try:
        payload = PaymentWebhookPayload.model_validate_json(raw_body)
    except ValidationError as exc:
        logger.warning("Malformed %s webhook payload: %s", provider, exc)
        raise InvalidCallbackError("Malformed webhook payload") from exc

    return await processor.apply(provider, payload)


@router.get("/webhooks/events")
async def list_webhook_events(
    request: Request,
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    """Applied provider events, filterable by provider and event type."""
    result = await handlers.list_webhook_events(dict(request.query_params))
    return to_response(result)
