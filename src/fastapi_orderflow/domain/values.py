"""Value objects shared by shipment and payment aggregates."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import StrEnum

from fastapi_orderflow.exceptions import (
    CurrencyMismatchError,
    DomainValidationError,
)

_CENTS = Decimal("0.01")


def new_id() -> str:
    """Return a fresh UUIDv4 identifier string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


class PaymentTransactionType(StrEnum):
    AUTH = "auth"
    CAPTURE = "capture"
    REFUND = "refund"
    VOID = "void"


class TransactionStatus(StrEnum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class Money:
    """Non-negative amount in a single currency, kept at two decimals."""

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise DomainValidationError("Money amount must be a Decimal")
        if self.amount < 0:
            raise DomainValidationError("Money amount cannot be negative")
        currency = self.currency.upper() if self.currency else ""
        if len(currency) != 3 or not currency.isalpha():
            raise DomainValidationError(
                f"Invalid currency code: {self.currency!r}"
            )
        object.__setattr__(
            self, "amount", self.amount.quantize(_CENTS, ROUND_HALF_UP)
        )
        object.__setattr__(self, "currency", currency)

    @classmethod
    def of(cls, amount: int | float | str | Decimal, currency: str) -> Money:
        try:
            value = Decimal(str(amount))
        except InvalidOperation as exc:
            raise DomainValidationError(
                f"Invalid money amount: {amount!r}"
            ) from exc
        if not value.is_finite():
            raise DomainValidationError(f"Invalid money amount: {amount!r}")
        return cls(value, currency)

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(Decimal("0"), currency)

    def _check_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                f"Currency mismatch: {self.currency} vs {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)

    def __lt__(self, other: Money) -> bool:
        self._check_currency(other)
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        self._check_currency(other)
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        self._check_currency(other)
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        self._check_currency(other)
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        return self.amount == 0

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"
