"""Shipment and payment intent state machines.

Both machines are deny-by-default: a move is legal only when the target
appears in the adjacency table of the current state. States with an empty
target set are terminal.
"""

from __future__ import annotations

from enum import StrEnum

from fastapi_orderflow.exceptions import InvalidTransitionError


class ShipmentStatus(StrEnum):
    CREATED = "created"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: ShipmentStatus) -> bool:
        return target in SHIPMENT_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not SHIPMENT_TRANSITIONS[self]


class PaymentIntentStatus(StrEnum):
    REQUIRES_ACTION = "requires_action"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    PARTIALLY_REFUNDED = "partially_refunded"
    REFUNDED = "refunded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: PaymentIntentStatus) -> bool:
        return target in PAYMENT_TRANSITIONS[self]

    @property
    def is_terminal(self) -> bool:
        return not PAYMENT_TRANSITIONS[self]


SHIPMENT_TRANSITIONS: dict[ShipmentStatus, frozenset[ShipmentStatus]] = {
    ShipmentStatus.CREATED: frozenset(
        {ShipmentStatus.IN_TRANSIT, ShipmentStatus.CANCELLED}
    ),
    ShipmentStatus.IN_TRANSIT: frozenset(
        {ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED}
    ),
    ShipmentStatus.DELIVERED: frozenset(),
    ShipmentStatus.CANCELLED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[
    PaymentIntentStatus, frozenset[PaymentIntentStatus]
] = {
    PaymentIntentStatus.REQUIRES_ACTION: frozenset(
        {
            PaymentIntentStatus.AUTHORIZED,
            PaymentIntentStatus.FAILED,
            PaymentIntentStatus.CANCELLED,
        }
    ),
    PaymentIntentStatus.AUTHORIZED: frozenset(
        {
            PaymentIntentStatus.CAPTURED,
            PaymentIntentStatus.FAILED,
            PaymentIntentStatus.CANCELLED,
        }
    ),
    PaymentIntentStatus.CAPTURED: frozenset(
        {
            PaymentIntentStatus.PARTIALLY_REFUNDED,
            PaymentIntentStatus.REFUNDED,
        }
    ),
    PaymentIntentStatus.PARTIALLY_REFUNDED: frozenset(
        {
            PaymentIntentStatus.PARTIALLY_REFUNDED,
            PaymentIntentStatus.REFUNDED,
        }
    ),
    PaymentIntentStatus.REFUNDED: frozenset(),
    PaymentIntentStatus.FAILED: frozenset(),
    PaymentIntentStatus.CANCELLED: frozenset(),
}


def ensure_transition(
    current: ShipmentStatus | PaymentIntentStatus,
    target: ShipmentStatus | PaymentIntentStatus,
    *,
    subject: str,
) -> None:
    """Raise InvalidTransitionError unless ``current`` may reach ``target``.
    """
    if not current.can_transition_to(target):
        raise InvalidTransitionError(
            f"Cannot transition {subject} from {current} to {target}",
            current=str(current),
            target=str(target),
        )
