"""Payment intent endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse

from fastapi_orderflow.dependencies import get_payment_handlers
from fastapi_orderflow.handlers import PaymentHandlers, to_response

router = APIRouter()

OptionalBody = Body(default=None)


@router.post("/payment-intents")
async def create_payment_intent(
    payload: dict[str, Any] = Body(...),
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    """Create a payment intent, reusing any intent for the same checkout."""
    result = await handlers.create_payment_intent(payload)
    return to_response(result, success_status=201)


@router.post("/payment-intents/checkout")
async def start_checkout(
    payload: dict[str, Any] = Body(...),
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    """Create an intent and start a hosted checkout with the gateway."""
    result = await handlers.initiate_gateway_payment(payload)
    return to_response(result, success_status=201)


@router.get("/payment-intents/{intent_id}")
async def get_payment_intent(
    intent_id: str,
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    return to_response(await handlers.get_payment_intent(intent_id))


@router.get("/payment-intents/{intent_id}/transactions")
async def get_payment_transactions(
    intent_id: str,
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    return to_response(await handlers.get_payment_transactions(intent_id))


@router.get("/orders/{order_id}/payment-intent")
async def get_order_payment_intent(
    order_id: str,
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    return to_response(await handlers.get_payment_intent_by_order_id(order_id))


@router.post("/payment-intents/{intent_id}/authorize")
async def authorize_payment(
    intent_id: str,
    payload: dict[str, Any] | None = OptionalBody,
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    return to_response(await handlers.authorize_payment(intent_id, payload))


@router.post("/payment-intents/{intent_id}/capture")
async def capture_payment(
    intent_id: str,
    payload: dict[str, Any] | None = OptionalBody,
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    return to_response(await handlers.capture_payment(intent_id, payload))


@router.post("/payment-intents/{intent_id}/refund")
async def refund_payment(
    intent_id: str,
    payload: dict[str, Any] | None = OptionalBody,
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    return to_response(await handlers.refund_payment(intent_id, payload))


@router.post("/payment-intents/{intent_id}/cancel")
async def cancel_payment(
    intent_id: str,
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    return to_response(await handlers.cancel_payment(intent_id))


@router.post("/payment-intents/{intent_id}/void")
async def void_payment(
    intent_id: str,
    payload: dict[str, Any] | None = OptionalBody,
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    return to_response(await handlers.void_payment(intent_id, payload))


@router.post("/payment-intents/{intent_id}/fail")
async def fail_payment(
    intent_id: str,
    payload: dict[str, Any] | None = OptionalBody,
    handlers: PaymentHandlers = Depends(get_payment_handlers),
) -> JSONResponse:
    return to_response(await handlers.fail_payment(intent_id, payload))
