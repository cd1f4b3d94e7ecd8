"""Persistence and payment-gateway contracts consumed by the services."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from fastapi_orderflow.domain.payments import (
    PaymentIntent,
    PaymentTransaction,
    PaymentWebhookEvent,
)
from fastapi_orderflow.domain.shipments import (
    Shipment,
    ShipmentFilters,
    ShipmentItem,
    ShipmentQueryOptions,
)


@runtime_checkable
class ShipmentRepository(Protocol):
    """Shipment headers. Items are stored by ShipmentItemRepository."""

    async def add(self, shipment: Shipment) -> None: ...

    async def get(self, shipment_id: str) -> Shipment | None: ...

    async def update(self, shipment: Shipment) -> None:
        """Persist the header if its version is unchanged, then bump it."""
        ...

    async def delete(self, shipment_id: str) -> None: ...

    async def exists(self, shipment_id: str) -> bool: ...

    async def list_by_order(self, order_id: str) -> list[Shipment]: ...

    async def find(
        self,
        filters: ShipmentFilters,
        options: ShipmentQueryOptions,
    ) -> list[Shipment]: ...

    async def count(self, filters: ShipmentFilters) -> int: ...


@runtime_checkable
class ShipmentItemRepository(Protocol):
    async def add(self, item: ShipmentItem) -> None: ...

    async def update(self, item: ShipmentItem) -> None: ...

    async def get(
        self, shipment_id: str, order_item_id: str
    ) -> ShipmentItem | None: ...

    async def exists(self, shipment_id: str, order_item_id: str) -> bool: ...

    async def delete(self, shipment_id: str, order_item_id: str) -> None: ...

    async def delete_by_shipment(self, shipment_id: str) -> None: ...

    async def list_by_shipment(
        self, shipment_id: str
    ) -> list[ShipmentItem]: ...

    async def list_by_order_item(
        self, order_item_id: str
    ) -> list[ShipmentItem]: ...

    async def list_gift_wrapped(
        self, shipment_id: str | None = None
    ) -> list[ShipmentItem]: ...

    async def total_quantity(self, shipment_id: str) -> int: ...


@runtime_checkable
class PaymentIntentRepository(Protocol):
    async def add(self, intent: PaymentIntent) -> None: ...

    async def get(self, intent_id: str) -> PaymentIntent | None: ...

    async def update(self, intent: PaymentIntent) -> None:
        """Persist the intent if its version is unchanged, then bump it."""
        ...

    async def list_by_order(self, order_id: str) -> list[PaymentIntent]: ...

    async def get_by_checkout(
        self, checkout_id: str
    ) -> PaymentIntent | None: ...

    async def get_by_idempotency_key(
        self, idempotency_key: str
    ) -> PaymentIntent | None: ...

    async def get_by_external_reference(
        self, reference: str
    ) -> PaymentIntent | None: ...


@runtime_checkable
class PaymentTransactionRepository(Protocol):
    async def add(self, transaction: PaymentTransaction) -> None: ...

    async def list_by_intent(
        self, intent_id: str
    ) -> list[PaymentTransaction]: ...


@runtime_checkable
class WebhookEventRepository(Protocol):
    """Provider event ids already processed, for webhook deduplication."""

    async def exists(self, provider: str, event_id: str) -> bool: ...

    async def add(
        self,
        *,
        provider: str,
        event_id: str,
        event_type: str,
        intent_id: str | None,
        payload: dict[str, Any],
    ) -> None: ...

    async def list(
        self,
        *,
        provider: str | None = None,
        event_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[PaymentWebhookEvent]: ...

    async def count(
        self,
        *,
        provider: str | None = None,
        event_type: str | None = None,
    ) -> int: ...


class Transaction(Protocol):
    """Repositories sharing one atomic database transaction."""

    shipments: ShipmentRepository
    shipment_items: ShipmentItemRepository
    payment_intents: PaymentIntentRepository
    payment_transactions: PaymentTransactionRepository
    webhook_events: WebhookEventRepository


@runtime_checkable
class UnitOfWork(Protocol):
    """Opens atomic transactions.

    ``begin()`` commits when the block exits cleanly and rolls back when
    it raises.
    """

    def begin(self) -> AbstractAsyncContextManager[Transaction]: ...


@dataclass
class GatewayPaymentRequest:
    intent_id: str
    amount: float
    currency: str
    customer_email: str
    customer_name: str
    return_url: str
    cancel_url: str
    webhook_url: str | None = None
    customer_phone: str | None = None
    description: str | None = None
    billing_address: dict[str, Any] | None = None
    shipping_address: dict[str, Any] | None = None


@dataclass
class GatewayPaymentResponse:
    success: bool
    transaction_id: str | None = None
    invoice_id: str | None = None
    redirect_url: str | None = None
    status: str | None = None
    error: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayRefundResponse:
    success: bool
    refund_id: str | None = None
    status: str | None = None
    error: str | None = None


@runtime_checkable
class PaymentGateway(Protocol):
    """Adapter around a payment provider's HTTP API.

    Retries, timeouts and request signing belong to the adapter.
    """

    async def create_payment(
        self, request: GatewayPaymentRequest
    ) -> GatewayPaymentResponse: ...

    async def verify_payment(
        self, transaction_id: str
    ) -> GatewayPaymentResponse: ...

    async def refund_payment(
        self,
        transaction_id: str,
        amount: float,
        reason: str | None = None,
    ) -> GatewayRefundResponse: ...

    def validate_webhook_signature(
        self, payload: bytes, signature: str
    ) -> bool: ...


@runtime_checkable
class WebhookSignatureVerifier(Protocol):
    def verify(self, payload: bytes, signature: str) -> bool: ...
