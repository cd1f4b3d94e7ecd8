"""Shipment and payment aggregates, value objects and state machines."""

from fastapi_orderflow.domain.payments import (
    PaymentIntent,
    PaymentTransaction,
    PaymentWebhookEvent,
)
from fastapi_orderflow.domain.shipments import (
    CreateShipmentData,
    ListShipmentsResult,
    Shipment,
    ShipmentFilters,
    ShipmentItem,
    ShipmentItemData,
    ShipmentQueryOptions,
)
from fastapi_orderflow.domain.states import PaymentIntentStatus, ShipmentStatus
from fastapi_orderflow.domain.values import (
    Money,
    PaymentTransactionType,
    TransactionStatus,
)

__all__ = [
    "CreateShipmentData",
    "ListShipmentsResult",
    "Money",
    "PaymentIntent",
    "PaymentIntentStatus",
    "PaymentTransaction",
    "PaymentTransactionType",
    "PaymentWebhookEvent",
    "Shipment",
    "ShipmentFilters",
    "ShipmentItem",
    "ShipmentItemData",
    "ShipmentQueryOptions",
    "ShipmentStatus",
    "TransactionStatus",
]
