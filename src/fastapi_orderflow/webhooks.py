"""Payment provider webhook verification and correlation."""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Mapping
from typing import Any

from fastapi_orderflow.domain.payments import PaymentIntent, PaymentTransaction
from fastapi_orderflow.domain.values import (
    PaymentTransactionType,
    TransactionStatus,
)
from fastapi_orderflow.exceptions import (
    InvalidCallbackError,
    PaymentIntentNotFoundError,
)
from fastapi_orderflow.protocols import (
    PaymentGateway,
    Transaction,
    UnitOfWork,
    WebhookSignatureVerifier,
)
from fastapi_orderflow.schemas import PaymentWebhookPayload, WebhookResponse

logger = logging.getLogger(__name__)

SUCCESS_EVENTS = frozenset({"payment.success", "payment.completed"})


class HmacSignatureVerifier:
    """Checks a hex HMAC-SHA256 digest of the raw request body."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("webhook secret must not be empty")
        self._secret = secret.encode()

    def sign(self, payload: bytes) -> str:
        return hmac.new(self._secret, payload, hashlib.sha256).hexdigest()

    def verify(self, payload: bytes, signature: str) -> bool:
        if not signature:
            return False
        return hmac.compare_digest(self.sign(payload), signature.strip())


class GatewaySignatureVerifier:
    """Delegates signature checks to the payment gateway adapter."""

    def __init__(self, gateway: PaymentGateway) -> None:
        self.gateway = gateway

    def verify(self, payload: bytes, signature: str) -> bool:
        if not signature:
            return False
        return self.gateway.validate_webhook_signature(payload, signature)


class PaymentWebhookProcessor:
    """Applies provider events to the matching payment intent.

    The intent transition, its audit transaction and the processed event
    id are written in one unit of work.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        *,
        verifier: WebhookSignatureVerifier | None = None,
        signature_header: str = "x-webhook-signature",
    ) -> None:
        self.unit_of_work = unit_of_work
        self.verifier = verifier
        self.signature_header = signature_header.lower()

    def verify_signature(
        self, provider: str, headers: Mapping[str, str], raw_body: bytes
    ) -> None:
        if self.verifier is None:
            logger.warning(
                "No signature verifier configured; accepting %s webhook "
                "unverified",
                provider,
            )
            return
        lowered = {key.lower(): value for key, value in headers.items()}
        signature = lowered.get(self.signature_header, "")
        if not self.verifier.verify(raw_body, signature):
            logger.warning("Rejected %s webhook: bad signature", provider)
            raise InvalidCallbackError("Invalid webhook signature")

    async def process(
        self,
        provider: str,
        payload: PaymentWebhookPayload | dict[str, Any],
        headers: Mapping[str, str],
        raw_body: bytes,
    ) -> WebhookResponse:
        self.verify_signature(provider, headers, raw_body)
        if not isinstance(payload, PaymentWebhookPayload):
            payload = PaymentWebhookPayload.model_validate(payload)
        return await self.apply(provider, payload)

    async def apply(
        self, provider: str, payload: PaymentWebhookPayload
    ) -> WebhookResponse:
        """Apply an already verified event."""
        async with self.unit_of_work.begin() as tx:
            if payload.event_id and await tx.webhook_events.exists(
                provider, payload.event_id
            ):
                logger.warning(
                    "Duplicate %s webhook event %s ignored",
                    provider,
                    payload.event_id,
                )
                return WebhookResponse(provider=provider, status="duplicate")

            intent = await self._correlate(tx, payload)
            status = await self._dispatch(tx, provider, payload, intent)

            if payload.event_id:
                await tx.webhook_events.add(
                    provider=provider,
                    event_id=payload.event_id,
                    event_type=payload.event,
                    intent_id=intent.id,
                    payload=payload.model_dump(mode="json"),
                )

        return WebhookResponse(
            provider=provider,
            status=status,
            intent_id=intent.id,
            intent_status=str(intent.status),
        )

    async def _correlate(
        self, tx: Transaction, payload: PaymentWebhookPayload
    ) -> PaymentIntent:
        for reference in (payload.transaction_id, payload.invoice_id):
            if reference:
                intent = await tx.payment_intents.get_by_external_reference(
                    reference
                )
                if intent is not None:
                    return intent
        if payload.order_id:
            intent = await tx.payment_intents.get(payload.order_id)
            if intent is not None:
                return intent
        raise PaymentIntentNotFoundError(
            payload.transaction_id
            or payload.invoice_id
            or payload.order_id
            or "<unknown>"
        )

    async def _dispatch(
        self,
        tx: Transaction,
        provider: str,
        payload: PaymentWebhookPayload,
        intent: PaymentIntent,
    ) -> str:
        event = payload.event
        reference = payload.transaction_id

        if event in SUCCESS_EVENTS:
            if intent.status.is_terminal or intent.has_been_captured():
                logger.warning(
                    "Payment intent %s already %s; %s ignored",
                    intent.id,
                    intent.status,
                    event,
                )
                return "ignored"
            if intent.requires_action():
                intent.authorize()
                await tx.payment_transactions.add(
                    PaymentTransaction.record(
                        intent,
                        PaymentTransactionType.AUTH,
                        psp_reference=reference,
                    )
                )
            intent.capture()
            await tx.payment_intents.update(intent)
            await tx.payment_transactions.add(
                PaymentTransaction.record(
                    intent,
                    PaymentTransactionType.CAPTURE,
                    psp_reference=reference,
                )
            )
            logger.info(
                "Payment intent %s captured from %s webhook",
                intent.id,
                provider,
            )
            return "processed"

        if event == "payment.failed":
            if intent.status.is_terminal or intent.has_been_captured():
                logger.warning(
                    "Payment intent %s already %s; %s ignored",
                    intent.id,
                    intent.status,
                    event,
                )
                return "ignored"
            reason = payload.failure_reason or "Payment failed"
            intent.fail()
            await tx.payment_intents.update(intent)
            await tx.payment_transactions.add(
                PaymentTransaction.record(
                    intent,
                    PaymentTransactionType.CAPTURE,
                    status=TransactionStatus.FAILED,
                    psp_reference=reference,
                    failure_reason=reason,
                )
            )
            logger.info("Payment intent %s failed: %s", intent.id, reason)
            return "processed"

        if event == "payment.cancelled":
            if intent.status.is_terminal or intent.has_been_captured():
                logger.warning(
                    "Payment intent %s already %s; %s ignored",
                    intent.id,
                    intent.status,
                    event,
                )
                return "ignored"
            intent.cancel()
            await tx.payment_intents.update(intent)
            logger.info("Payment intent %s cancelled by provider", intent.id)
            return "processed"

        if event == "refund.completed":
            logger.info(
                "Provider %s reported refund completed for intent %s",
                provider,
                intent.id,
            )
            return "acknowledged"

        logger.warning("Unhandled %s webhook event %r", provider, event)
        return "ignored"
