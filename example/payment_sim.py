"""Sandbox payment gateway with HTTP simulator endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any
from uuid import uuid4

import httpx
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from fastapi_orderflow.protocols import (
    GatewayPaymentRequest,
    GatewayPaymentResponse,
    GatewayRefundResponse,
)
from fastapi_orderflow.webhooks import HmacSignatureVerifier

logger = logging.getLogger(__name__)

PROVIDER = "sandbox"

# --- Simulator state (in-memory, ephemeral) ---

_sim_payments: dict[str, dict[str, Any]] = {}

OUTCOME_EVENTS = {
    "pay": "payment.success",
    "decline": "payment.failed",
    "abandon": "payment.cancelled",
}


class SandboxGateway:
    """PaymentGateway that keeps payments in memory."""

    def __init__(
        self,
        secret: str,
        base_url: str = "http://localhost:8000",
    ) -> None:
        self.signer = HmacSignatureVerifier(secret)
        self.base_url = base_url

    async def create_payment(
        self, request: GatewayPaymentRequest
    ) -> GatewayPaymentResponse:
        if request.amount <= 0:
            return GatewayPaymentResponse(
                success=False, error="Amount must be positive"
            )
        transaction_id = f"sbx-{uuid4().hex[:12]}"
        _sim_payments[transaction_id] = {
            "transaction_id": transaction_id,
            "intent_id": request.intent_id,
            "amount": request.amount,
            "currency": request.currency,
            "status": "pending",
            "webhook_url": request.webhook_url,
        }
        return GatewayPaymentResponse(
            success=True,
            transaction_id=transaction_id,
            redirect_url=f"{self.base_url}/payment-sim/pay/{transaction_id}",
            status="pending",
        )

    async def verify_payment(
        self, transaction_id: str
    ) -> GatewayPaymentResponse:
        entry = _sim_payments.get(transaction_id)
        if entry is None:
            return GatewayPaymentResponse(
                success=False, error="Unknown transaction"
            )
        return GatewayPaymentResponse(
            success=True,
            transaction_id=transaction_id,
            status=entry["status"],
            raw=dict(entry),
        )

    async def refund_payment(
        self,
        transaction_id: str,
        amount: float,
        reason: str | None = None,
    ) -> GatewayRefundResponse:
        entry = _sim_payments.get(transaction_id)
        if entry is None or entry["status"] != "paid":
            return GatewayRefundResponse(
                success=False, error="Transaction is not refundable"
            )
        return GatewayRefundResponse(
            success=True, refund_id=f"rfd-{uuid4().hex[:12]}", status="done"
        )

    def validate_webhook_signature(
        self, payload: bytes, signature: str
    ) -> bool:
        return self.signer.verify(payload, signature)


# --- Simulator API endpoints ---


class SimOutcomeResponse(BaseModel):
    transaction_id: str
    status: str
    webhook_sent: bool


def build_sim_router(gateway: SandboxGateway) -> APIRouter:
    """Endpoints a shopper would hit on the hosted payment page."""
    sim_router = APIRouter(prefix="/payment-sim", tags=["payment-sim"])

    @sim_router.get("/pay/{transaction_id}")
    async def sim_payment_page(transaction_id: str) -> dict[str, Any]:
        entry = _sim_payments.get(transaction_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="Unknown payment")
        return entry

    @sim_router.post(
        "/pay/{transaction_id}/{outcome}",
        response_model=SimOutcomeResponse,
    )
    async def sim_complete_payment(
        transaction_id: str, outcome: str
    ) -> SimOutcomeResponse:
        """Settle the payment and notify the shop's webhook."""
        entry = _sim_payments.get(transaction_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="Unknown payment")
        event = OUTCOME_EVENTS.get(outcome)
        if event is None:
            raise HTTPException(status_code=400, detail="Unknown outcome")
        if entry["status"] != "pending":
            raise HTTPException(
                status_code=400,
                detail=f"Payment already {entry['status']}",
            )

        entry["status"] = {"pay": "paid", "decline": "declined"}.get(
            outcome, "abandoned"
        )
        body = json.dumps(
            {
                "event": event,
                "event_id": f"evt-{uuid4().hex[:12]}",
                "transaction_id": transaction_id,
                "order_id": entry["intent_id"],
                "status": entry["status"],
            }
        ).encode()
        webhook_url = entry["webhook_url"] or (
            f"{gateway.base_url}/api/webhooks/payments/{PROVIDER}"
        )

        webhook_sent = False
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    webhook_url,
                    content=body,
                    headers={
                        "content-type": "application/json",
                        "x-webhook-signature": gateway.signer.sign(body),
                    },
                    timeout=5.0,
                )
                webhook_sent = resp.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning(
                "Webhook delivery to %s failed: %s", webhook_url, exc
            )

        return SimOutcomeResponse(
            transaction_id=transaction_id,
            status=entry["status"],
            webhook_sent=webhook_sent,
        )

    return sim_router
