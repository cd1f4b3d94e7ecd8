"""Payment intent application service."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from fastapi_orderflow.domain.payments import PaymentIntent, PaymentTransaction
from fastapi_orderflow.domain.states import PaymentIntentStatus
from fastapi_orderflow.domain.values import (
    Money,
    PaymentTransactionType,
    TransactionStatus,
)
from fastapi_orderflow.exceptions import (
    DomainValidationError,
    GatewayError,
    InvalidTransitionError,
    PaymentIntentNotFoundError,
)
from fastapi_orderflow.protocols import (
    GatewayPaymentRequest,
    PaymentGateway,
    Transaction,
    UnitOfWork,
)
from fastapi_orderflow.schemas import (
    CreatePaymentIntentRequest,
    GatewayCheckoutResponse,
    PaymentIntentDTO,
    PaymentTransactionDTO,
    WebhookEventDTO,
    WebhookEventListResponse,
)

logger = logging.getLogger(__name__)


async def _require_intent(tx: Transaction, intent_id: str) -> PaymentIntent:
    intent = await tx.payment_intents.get(intent_id)
    if intent is None:
        raise PaymentIntentNotFoundError(intent_id)
    return intent


class PaymentService:
    """Drives payment intents through their lifecycle.

    Every financial action updates the intent and appends its
    :class:`PaymentTransaction` inside the same unit of work.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        *,
        default_currency: str = "USD",
        gateway: PaymentGateway | None = None,
    ) -> None:
        self.unit_of_work = unit_of_work
        self.default_currency = default_currency
        self.gateway = gateway

    async def create_payment_intent(
        self, dto: CreatePaymentIntentRequest
    ) -> PaymentIntentDTO:
        async with self.unit_of_work.begin() as tx:
            existing = None
            if dto.checkout_id:
                existing = await tx.payment_intents.get_by_checkout(
                    dto.checkout_id
                )
            if existing is None and dto.idempotency_key:
                existing = await tx.payment_intents.get_by_idempotency_key(
                    dto.idempotency_key
                )
            if existing is not None:
                logger.info(
                    "Reusing payment intent %s for checkout=%s key=%s",
                    existing.id,
                    dto.checkout_id,
                    dto.idempotency_key,
                )
                return PaymentIntentDTO.from_intent(existing)

            currency = dto.currency or self.default_currency
            intent = PaymentIntent.create(
                provider=dto.provider,
                amount=Money.of(dto.amount, currency),
                order_id=dto.order_id,
                checkout_id=dto.checkout_id,
                idempotency_key=dto.idempotency_key,
                client_secret=dto.client_secret,
                metadata=dto.metadata,
            )
            await tx.payment_intents.add(intent)

        logger.info(
            "Payment intent %s created for %s via %s",
            intent.id,
            intent.amount,
            intent.provider,
        )
        return PaymentIntentDTO.from_intent(intent)

    async def authorize_payment(
        self, intent_id: str, psp_reference: str | None = None
    ) -> PaymentIntentDTO:
        async with self.unit_of_work.begin() as tx:
            intent = await _require_intent(tx, intent_id)
            intent.authorize()
            await tx.payment_intents.update(intent)
            await tx.payment_transactions.add(
                PaymentTransaction.record(
                    intent,
                    PaymentTransactionType.AUTH,
                    psp_reference=psp_reference,
                )
            )

        logger.info("Payment intent %s authorized", intent_id)
        return PaymentIntentDTO.from_intent(intent)

    async def capture_payment(
        self, intent_id: str, psp_reference: str | None = None
    ) -> PaymentIntentDTO:
        async with self.unit_of_work.begin() as tx:
            intent = await _require_intent(tx, intent_id)
            intent.capture()
            await tx.payment_intents.update(intent)
            await tx.payment_transactions.add(
                PaymentTransaction.record(
                    intent,
                    PaymentTransactionType.CAPTURE,
                    psp_reference=psp_reference,
                )
            )

        logger.info(
            "Payment intent %s captured (%s)", intent_id, intent.amount
        )
        return PaymentIntentDTO.from_intent(intent)

    async def refund_payment(
        self,
        intent_id: str,
        amount: Decimal | None = None,
        reason: str | None = None,
    ) -> PaymentIntentDTO:
        async with self.unit_of_work.begin() as tx:
            intent = await _require_intent(tx, intent_id)
            requested = (
                None
                if amount is None
                else Money.of(amount, intent.amount.currency)
            )
            refunded = intent.refund(requested)
            psp_reference = await self._refund_at_gateway(
                intent, refunded, reason
            )
            await tx.payment_intents.update(intent)
            await tx.payment_transactions.add(
                PaymentTransaction.record(
                    intent,
                    PaymentTransactionType.REFUND,
                    amount=refunded,
                    psp_reference=psp_reference,
                    note=reason,
                )
            )

        logger.info(
            "Refunded %s on payment intent %s (now %s)",
            refunded,
            intent_id,
            intent.status,
        )
        return PaymentIntentDTO.from_intent(intent)

    async def _refund_at_gateway(
        self, intent: PaymentIntent, amount: Money, reason: str | None
    ) -> str | None:
        # Intents never sent to the gateway are refunded locally only.
        if self.gateway is None or not intent.external_reference:
            return None
        response = await self.gateway.refund_payment(
            intent.external_reference, float(amount.amount), reason
        )
        if not response.success:
            logger.warning(
                "Gateway rejected refund for intent %s: %s",
                intent.id,
                response.error,
            )
            raise GatewayError(response.error or "Refund rejected by gateway")
        return response.refund_id

    async def cancel_payment(self, intent_id: str) -> PaymentIntentDTO:
        async with self.unit_of_work.begin() as tx:
            intent = await _require_intent(tx, intent_id)
            intent.cancel()
            await tx.payment_intents.update(intent)

        logger.info("Payment intent %s cancelled", intent_id)
        return PaymentIntentDTO.from_intent(intent)

    async def void_payment(
        self, intent_id: str, psp_reference: str | None = None
    ) -> PaymentIntentDTO:
        async with self.unit_of_work.begin() as tx:
            intent = await _require_intent(tx, intent_id)
            if intent.has_been_captured():
                raise InvalidTransitionError(
                    "Cannot void a captured payment; use refund instead",
                    current=str(intent.status),
                    target="cancelled",
                )
            intent.cancel()
            await tx.payment_intents.update(intent)
            await tx.payment_transactions.add(
                PaymentTransaction.record(
                    intent,
                    PaymentTransactionType.VOID,
                    psp_reference=psp_reference,
                )
            )

        logger.info("Payment intent %s voided", intent_id)
        return PaymentIntentDTO.from_intent(intent)

    async def fail_payment(
        self, intent_id: str, reason: str = "Payment failed"
    ) -> PaymentIntentDTO:
        async with self.unit_of_work.begin() as tx:
            intent = await _require_intent(tx, intent_id)
            intent.fail()
            await tx.payment_intents.update(intent)
            await tx.payment_transactions.add(
                PaymentTransaction.record(
                    intent,
                    PaymentTransactionType.CAPTURE,
                    status=TransactionStatus.FAILED,
                    failure_reason=reason,
                )
            )

        logger.info("Payment intent %s failed: %s", intent_id, reason)
        return PaymentIntentDTO.from_intent(intent)

    async def attach_external_reference(
        self,
        intent_id: str,
        reference: str,
        client_secret: str | None = None,
    ) -> PaymentIntentDTO:
        if not reference or not reference.strip():
            raise DomainValidationError("External reference is required")
        async with self.unit_of_work.begin() as tx:
            intent = await _require_intent(tx, intent_id)
            intent.attach_external_reference(reference, client_secret)
            await tx.payment_intents.update(intent)
        return PaymentIntentDTO.from_intent(intent)

    async def initiate_gateway_payment(
        self,
        dto: CreatePaymentIntentRequest,
        customer: dict[str, Any],
    ) -> GatewayCheckoutResponse:
        """Create (or reuse) an intent and start a hosted checkout for it."""
        if self.gateway is None:
            raise GatewayError("No payment gateway configured")

        intent = await self.create_payment_intent(dto)
        if intent.status != PaymentIntentStatus.REQUIRES_ACTION:
            raise InvalidTransitionError(
                f"Cannot start checkout for payment {intent.intent_id} "
                f"with status {intent.status}",
                current=intent.status,
                target=str(PaymentIntentStatus.REQUIRES_ACTION),
            )
        if intent.external_reference:
            return await self._resume_checkout(self.gateway, intent)

        request = GatewayPaymentRequest(
            intent_id=intent.intent_id,
            amount=intent.amount,
            currency=intent.currency,
            customer_email=customer.get("email", ""),
            customer_name=customer.get("name", ""),
            return_url=customer.get("return_url", ""),
            cancel_url=customer.get("cancel_url", ""),
            webhook_url=customer.get("webhook_url"),
            customer_phone=customer.get("phone"),
            description=customer.get("description"),
            billing_address=customer.get("billing_address"),
            shipping_address=customer.get("shipping_address"),
        )
        response = await self.gateway.create_payment(request)
        if not response.success:
            logger.warning(
                "Gateway rejected payment for intent %s: %s",
                intent.intent_id,
                response.error,
            )
            raise GatewayError(response.error or "Payment gateway error")

        reference = response.transaction_id or response.invoice_id
        if reference:
            intent = await self.attach_external_reference(
                intent.intent_id, reference
            )
        return GatewayCheckoutResponse(
            intent=intent,
            transaction_id=response.transaction_id,
            redirect_url=response.redirect_url,
            status=response.status,
        )

    async def _resume_checkout(
        self, gateway: PaymentGateway, intent: PaymentIntentDTO
    ) -> GatewayCheckoutResponse:
        """Report the charge already opened for ``intent``."""
        reference = intent.external_reference or ""
        response = await gateway.verify_payment(reference)
        if not response.success:
            logger.warning(
                "Could not verify gateway payment %s for intent %s: %s",
                reference,
                intent.intent_id,
                response.error,
            )
            raise GatewayError(response.error or "Payment gateway error")
        logger.info(
            "Resuming checkout %s for payment intent %s",
            reference,
            intent.intent_id,
        )
        return GatewayCheckoutResponse(
            intent=intent,
            transaction_id=reference,
            redirect_url=response.redirect_url,
            status=response.status,
        )

    async def get_payment_intent(
        self, intent_id: str
    ) -> PaymentIntentDTO | None:
        async with self.unit_of_work.begin() as tx:
            intent = await tx.payment_intents.get(intent_id)
        return PaymentIntentDTO.from_intent(intent) if intent else None

    async def get_payment_intent_by_order_id(
        self, order_id: str
    ) -> PaymentIntentDTO | None:
        """Most recent intent for the order, if any."""
        async with self.unit_of_work.begin() as tx:
            intents = await tx.payment_intents.list_by_order(order_id)
        if not intents:
            return None
        latest = max(intents, key=lambda intent: intent.created_at)
        return PaymentIntentDTO.from_intent(latest)

    async def get_payment_transactions(
        self, intent_id: str
    ) -> list[PaymentTransactionDTO]:
        async with self.unit_of_work.begin() as tx:
            await _require_intent(tx, intent_id)
            transactions = await tx.payment_transactions.list_by_intent(
                intent_id
            )
        return [
            PaymentTransactionDTO.from_transaction(t) for t in transactions
        ]

    async def find_intent_by_external_reference(
        self, reference: str
    ) -> PaymentIntentDTO | None:
        async with self.unit_of_work.begin() as tx:
            intent = await tx.payment_intents.get_by_external_reference(
                reference
            )
        return PaymentIntentDTO.from_intent(intent) if intent else None

    async def list_webhook_events(
        self,
        *,
        provider: str | None = None,
        event_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> WebhookEventListResponse:
        """Applied provider events, newest first."""
        async with self.unit_of_work.begin() as tx:
            events = await tx.webhook_events.list(
                provider=provider,
                event_type=event_type,
                limit=limit,
                offset=offset,
            )
            total = await tx.webhook_events.count(
                provider=provider, event_type=event_type
            )
        return WebhookEventListResponse(
            events=[WebhookEventDTO.from_event(e) for e in events],
            total=total,
            limit=limit,
            offset=offset,
        )
