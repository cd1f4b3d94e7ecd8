"""PaymentIntent aggregate and its transaction audit records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fastapi_orderflow.domain.states import (
    PaymentIntentStatus,
    ensure_transition,
)
from fastapi_orderflow.domain.values import (
    Money,
    PaymentTransactionType,
    TransactionStatus,
    new_id,
    utcnow,
)
from fastapi_orderflow.exceptions import (
    DomainValidationError,
    InvalidTransitionError,
    RefundExceededError,
)

_CAPTURED_STATES = frozenset(
    {
        PaymentIntentStatus.CAPTURED,
        PaymentIntentStatus.PARTIALLY_REFUNDED,
        PaymentIntentStatus.REFUNDED,
    }
)


@dataclass
class PaymentIntent:
    id: str
    provider: str
    amount: Money
    order_id: str | None = None
    checkout_id: str | None = None
    status: PaymentIntentStatus = PaymentIntentStatus.REQUIRES_ACTION
    idempotency_key: str | None = None
    client_secret: str | None = None
    external_reference: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    refunded_amount: Money | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 1

    def __post_init__(self) -> None:
        if self.refunded_amount is None:
            self.refunded_amount = Money.zero(self.amount.currency)

    @classmethod
    def create(
        cls,
        *,
        provider: str,
        amount: Money,
        order_id: str | None = None,
        checkout_id: str | None = None,
        idempotency_key: str | None = None,
        client_secret: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> PaymentIntent:
        if not provider or not provider.strip():
            raise DomainValidationError("Payment provider is required")
        if not order_id and not checkout_id:
            raise DomainValidationError(
                "Either order ID or checkout ID is required"
            )
        if amount.is_zero():
            raise DomainValidationError("Payment amount must be positive")
        now = utcnow()
        return cls(
            id=new_id(),
            provider=provider,
            amount=amount,
            order_id=order_id,
            checkout_id=checkout_id,
            idempotency_key=idempotency_key,
            client_secret=client_secret,
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )

    def _move_to(self, target: PaymentIntentStatus) -> None:
        ensure_transition(self.status, target, subject=f"payment {self.id}")
        self.status = target
        self.updated_at = utcnow()

    def requires_action(self) -> bool:
        return self.status is PaymentIntentStatus.REQUIRES_ACTION

    def is_authorized(self) -> bool:
        return self.status is PaymentIntentStatus.AUTHORIZED

    def is_captured(self) -> bool:
        return self.status is PaymentIntentStatus.CAPTURED

    def has_been_captured(self) -> bool:
        """True once funds were captured, including after refunds."""
        return self.status in _CAPTURED_STATES

    def is_refundable(self) -> bool:
        return self.status in (
            PaymentIntentStatus.CAPTURED,
            PaymentIntentStatus.PARTIALLY_REFUNDED,
        )

    def is_failed(self) -> bool:
        return self.status is PaymentIntentStatus.FAILED

    def is_cancelled(self) -> bool:
        return self.status is PaymentIntentStatus.CANCELLED

    def authorize(self) -> None:
        self._move_to(PaymentIntentStatus.AUTHORIZED)

    def capture(self) -> None:
        self._move_to(PaymentIntentStatus.CAPTURED)

    def cancel(self) -> None:
        self._move_to(PaymentIntentStatus.CANCELLED)

    def fail(self) -> None:
        self._move_to(PaymentIntentStatus.FAILED)

    def remaining_refundable(self) -> Money:
        return self.amount - self.refunded_amount

    def refund(self, amount: Money | None = None) -> Money:
        """Refund ``amount`` (or the whole remaining balance).

        Returns the refunded amount. The intent ends up ``refunded`` once
        the ledger covers the full captured amount, ``partially_refunded``
        otherwise.
        """
        if not self.is_refundable():
            raise InvalidTransitionError(
                f"Cannot refund payment with status {self.status}",
                current=str(self.status),
                target=str(PaymentIntentStatus.REFUNDED),
            )
        remaining = self.remaining_refundable()
        refund_amount = remaining if amount is None else amount
        if refund_amount.currency != self.amount.currency:
            raise DomainValidationError(
                f"Refund currency {refund_amount.currency} does not match "
                f"payment currency {self.amount.currency}"
            )
        if refund_amount.is_zero():
            raise DomainValidationError("Refund amount must be positive")
        if refund_amount > remaining:
            raise RefundExceededError(
                f"Refund of {refund_amount} exceeds remaining refundable "
                f"balance {remaining}",
                current=str(self.status),
                target=str(PaymentIntentStatus.REFUNDED),
            )
        self.refunded_amount = self.refunded_amount + refund_amount
        if self.refunded_amount >= self.amount:
            self._move_to(PaymentIntentStatus.REFUNDED)
        else:
            self._move_to(PaymentIntentStatus.PARTIALLY_REFUNDED)
        return refund_amount

    def attach_external_reference(
        self, reference: str, client_secret: str | None = None
    ) -> None:
        self.external_reference = reference
        if client_secret is not None:
            self.client_secret = client_secret
        self.updated_at = utcnow()


@dataclass(frozen=True)
class PaymentTransaction:
    """Append-only audit record of one action taken against an intent."""

    id: str
    intent_id: str
    type: PaymentTransactionType
    amount: Money
    status: TransactionStatus
    psp_reference: str | None = None
    failure_reason: str | None = None
    note: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def record(
        cls,
        intent: PaymentIntent,
        type: PaymentTransactionType,
        *,
        amount: Money | None = None,
        status: TransactionStatus = TransactionStatus.SUCCESS,
        psp_reference: str | None = None,
        failure_reason: str | None = None,
        note: str | None = None,
    ) -> PaymentTransaction:
        return cls(
            id=new_id(),
            intent_id=intent.id,
            type=type,
            amount=amount if amount is not None else intent.amount,
            status=status,
            psp_reference=psp_reference,
            failure_reason=failure_reason,
            note=note,
        )


@dataclass(frozen=True)
class PaymentWebhookEvent:
    """Provider event that has already been applied."""

    id: str
    provider: str
    event_id: str
    event_type: str
    intent_id: str | None
    payload: dict[str, Any]
    created_at: datetime
