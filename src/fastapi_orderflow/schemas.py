"""Pydantic request/response models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fastapi_orderflow.domain.payments import (
    PaymentIntent,
    PaymentTransaction,
    PaymentWebhookEvent,
)
from fastapi_orderflow.domain.shipments import Shipment, ShipmentItem
from fastapi_orderflow.domain.states import ShipmentStatus

NonBlankStr = Annotated[str, Field(min_length=1, max_length=64)]


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


# ---------------------------------------------------------------------------
# Shipments
# ---------------------------------------------------------------------------


class ShipmentItemInput(_Request):
    order_item_id: NonBlankStr
    qty: int = Field(gt=0)
    gift_wrap: bool = False
    gift_message: str | None = None


class CreateShipmentRequest(_Request):
    order_id: NonBlankStr
    carrier: str | None = None
    service: str | None = None
    label_url: str | None = None
    is_gift: bool = False
    gift_message: str | None = None
    items: list[ShipmentItemInput] = Field(default_factory=list)


class UpdateShipmentStatusRequest(_Request):
    status: ShipmentStatus


class ListShipmentsRequest(_Request):
    order_id: str | None = None
    status: ShipmentStatus | None = None
    carrier: str | None = None
    service: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int | None = Field(default=None, gt=0)
    offset: int = Field(default=0, ge=0)
    sort_by: Literal[
        "created_at", "updated_at", "shipped_at", "delivered_at"
    ] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"


class UpdateCarrierRequest(_Request):
    carrier: NonBlankStr


class UpdateServiceRequest(_Request):
    service: NonBlankStr


class UpdateLabelRequest(_Request):
    label_url: str = Field(min_length=1, max_length=2048)


class UpdateGiftRequest(_Request):
    is_gift: bool
    gift_message: str | None = None


class UpdateItemQuantityRequest(_Request):
    qty: int = Field(gt=0)


class ShipmentItemResponse(BaseModel):
    order_item_id: str
    qty: int
    gift_wrap: bool
    gift_message: str | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_item(cls, item: ShipmentItem) -> ShipmentItemResponse:
        return cls(
            order_item_id=item.order_item_id,
            qty=item.qty,
            gift_wrap=item.gift_wrap,
            gift_message=item.gift_message,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


class ShipmentResponse(BaseModel):
    shipment_id: str
    order_id: str
    carrier: str | None
    service: str | None
    label_url: str | None
    status: str
    items: list[ShipmentItemResponse]
    total_items: int
    is_gift: bool
    gift_message: str | None
    shipped_at: datetime | None
    delivered_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_shipment(cls, shipment: Shipment) -> ShipmentResponse:
        return cls(
            shipment_id=shipment.id,
            order_id=shipment.order_id,
            carrier=shipment.carrier,
            service=shipment.service,
            label_url=shipment.label_url,
            status=str(shipment.status),
            items=[ShipmentItemResponse.from_item(i) for i in shipment.items],
            total_items=shipment.total_items(),
            is_gift=shipment.is_gift,
            gift_message=shipment.gift_message,
            shipped_at=shipment.shipped_at,
            delivered_at=shipment.delivered_at,
            created_at=shipment.created_at,
            updated_at=shipment.updated_at,
        )


class ShipmentListResponse(BaseModel):
    shipments: list[ShipmentResponse]
    total: int
    limit: int
    offset: int


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


class CreatePaymentIntentRequest(_Request):
    order_id: str | None = None
    checkout_id: str | None = None
    provider: NonBlankStr
    amount: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    currency: str | None = Field(default=None, pattern=r"^[A-Za-z]{3}$")
    idempotency_key: str | None = None
    client_secret: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _order_or_checkout(self) -> CreatePaymentIntentRequest:
        if not self.order_id and not self.checkout_id:
            raise ValueError("either order_id or checkout_id is required")
        return self


class CustomerDetails(_Request):
    email: str = Field(min_length=3)
    name: str = Field(min_length=1)
    return_url: str = Field(min_length=1)
    cancel_url: str = Field(min_length=1)
    phone: str | None = None
    webhook_url: str | None = None
    description: str | None = None
    billing_address: dict[str, Any] | None = None
    shipping_address: dict[str, Any] | None = None


class GatewayCheckoutRequest(CreatePaymentIntentRequest):
    """Payment intent fields plus the customer handed to the gateway."""

    customer: CustomerDetails


class ProcessPaymentRequest(_Request):
    psp_reference: str | None = None


class RefundPaymentRequest(_Request):
    amount: Decimal | None = Field(
        default=None, gt=0, max_digits=12, decimal_places=2
    )
    reason: str | None = None


class FailPaymentRequest(_Request):
    reason: str = Field(default="Payment failed", min_length=1)


class PaymentIntentDTO(BaseModel):
    """Flattened payment intent, free of internal value objects."""

    intent_id: str
    order_id: str | None
    checkout_id: str | None
    provider: str
    amount: float
    currency: str
    status: str
    refunded_amount: float
    idempotency_key: str | None
    client_secret: str | None
    external_reference: str | None
    metadata: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_intent(cls, intent: PaymentIntent) -> PaymentIntentDTO:
        return cls(
            intent_id=intent.id,
            order_id=intent.order_id,
            checkout_id=intent.checkout_id,
            provider=intent.provider,
            amount=float(intent.amount.amount),
            currency=intent.amount.currency,
            status=str(intent.status),
            refunded_amount=float(intent.refunded_amount.amount),
            idempotency_key=intent.idempotency_key,
            client_secret=intent.client_secret,
            external_reference=intent.external_reference,
            metadata=dict(intent.metadata),
            created_at=intent.created_at,
            updated_at=intent.updated_at,
        )


class PaymentTransactionDTO(BaseModel):
    txn_id: str
    intent_id: str
    type: str
    amount: float
    currency: str
    status: str
    psp_reference: str | None
    failure_reason: str | None
    note: str | None = None
    created_at: datetime

    @classmethod
    def from_transaction(
        cls, transaction: PaymentTransaction
    ) -> PaymentTransactionDTO:
        return cls(
            txn_id=transaction.id,
            intent_id=transaction.intent_id,
            type=str(transaction.type),
            amount=float(transaction.amount.amount),
            currency=transaction.amount.currency,
            status=str(transaction.status),
            psp_reference=transaction.psp_reference,
            failure_reason=transaction.failure_reason,
            note=transaction.note,
            created_at=transaction.created_at,
        )


class GatewayCheckoutResponse(BaseModel):
    intent: PaymentIntentDTO
    transaction_id: str | None
    redirect_url: str | None
    status: str | None


# ---------------------------------------------------------------------------
# Webhooks
# ---------------------------------------------------------------------------


class PaymentWebhookPayload(BaseModel):
    """Provider callback body; unknown keys are kept for the audit log."""

    model_config = ConfigDict(extra="allow")

    event: str
    event_id: str | None = None
    transaction_id: str | None = None
    invoice_id: str | None = None
    order_id: str | None = None
    status: str | None = None
    amount: Decimal | None = None
    failure_reason: str | None = None


class WebhookResponse(BaseModel):
    provider: str
    status: str
    intent_id: str | None = None
    intent_status: str | None = None


class ListWebhookEventsRequest(_Request):
    provider: str | None = None
    event_type: str | None = None
    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


class WebhookEventDTO(BaseModel):
    event_id: str
    provider: str
    event_type: str
    intent_id: str | None
    payload: dict[str, Any]
    created_at: datetime

    @classmethod
    def from_event(cls, event: PaymentWebhookEvent) -> WebhookEventDTO:
        return cls(
            event_id=event.event_id,
            provider=event.provider,
            event_type=event.event_type,
            intent_id=event.intent_id,
            payload=dict(event.payload),
            created_at=event.created_at,
        )


class WebhookEventListResponse(BaseModel):
    events: list[WebhookEventDTO]
    total: int
    limit: int
    offset: int
