"""Shipment aggregate: a shipment and the items it carries."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from fastapi_orderflow.domain.states import ShipmentStatus, ensure_transition
from fastapi_orderflow.domain.values import new_id, utcnow
from fastapi_orderflow.exceptions import (
    DomainValidationError,
    ShipmentItemNotFoundError,
)

ShipmentSortField = Literal[
    "created_at", "updated_at", "shipped_at", "delivered_at"
]
SortOrder = Literal["asc", "desc"]


def _require_qty(qty: int) -> int:
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise DomainValidationError("Quantity must be a positive integer")
    return qty


@dataclass
class ShipmentItem:
    shipment_id: str
    order_item_id: str
    qty: int
    gift_wrap: bool = False
    gift_message: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        *,
        shipment_id: str,
        order_item_id: str,
        qty: int,
        gift_wrap: bool = False,
        gift_message: str | None = None,
    ) -> ShipmentItem:
        if not order_item_id or not order_item_id.strip():
            raise DomainValidationError("Order item ID is required")
        now = utcnow()
        return cls(
            shipment_id=shipment_id,
            order_item_id=order_item_id,
            qty=_require_qty(qty),
            gift_wrap=gift_wrap,
            gift_message=gift_message,
            created_at=now,
            updated_at=now,
        )

    def update_qty(self, qty: int) -> None:
        self.qty = _require_qty(qty)
        self.updated_at = utcnow()

    def set_gift_wrap(self, gift_wrap: bool) -> None:
        self.gift_wrap = bool(gift_wrap)
        self.updated_at = utcnow()

    def set_gift_message(self, gift_message: str | None) -> None:
        self.gift_message = gift_message
        self.updated_at = utcnow()


@dataclass
class ShipmentItemData:
    """Input for a new shipment item."""

    order_item_id: str
    qty: int
    gift_wrap: bool = False
    gift_message: str | None = None


@dataclass
class CreateShipmentData:
    order_id: str
    carrier: str | None = None
    service: str | None = None
    label_url: str | None = None
    is_gift: bool = False
    gift_message: str | None = None
    items: list[ShipmentItemData] = field(default_factory=list)


@dataclass
class Shipment:
    id: str
    order_id: str
    status: ShipmentStatus = ShipmentStatus.CREATED
    carrier: str | None = None
    service: str | None = None
    label_url: str | None = None
    items: list[ShipmentItem] = field(default_factory=list)
    is_gift: bool = False
    gift_message: str | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 1

    @classmethod
    def create(cls, data: CreateShipmentData) -> Shipment:
        shipment_id = new_id()
        now = utcnow()
        shipment = cls(
            id=shipment_id,
            order_id=data.order_id,
            carrier=data.carrier,
            service=data.service,
            label_url=data.label_url,
            is_gift=bool(data.is_gift),
            gift_message=data.gift_message,
            created_at=now,
            updated_at=now,
        )
        for item_data in data.items:
            shipment._append_item(item_data)
        return shipment

    def _touch(self) -> None:
        self.updated_at = utcnow()

    def _append_item(self, data: ShipmentItemData) -> ShipmentItem:
        if self.find_item(data.order_item_id) is not None:
            raise DomainValidationError(
                f"Order item {data.order_item_id} is already in shipment"
            )
        item = ShipmentItem.create(
            shipment_id=self.id,
            order_item_id=data.order_item_id,
            qty=data.qty,
            gift_wrap=data.gift_wrap,
            gift_message=data.gift_message,
        )
        self.items.append(item)
        return item

    def update_status(self, new_status: ShipmentStatus) -> None:
        new_status = ShipmentStatus(new_status)
        ensure_transition(
            self.status, new_status, subject=f"shipment {self.id}"
        )
        now = utcnow()
        self.status = new_status
        self.updated_at = now
        if new_status is ShipmentStatus.IN_TRANSIT and self.shipped_at is None:
            self.shipped_at = now
        if (
            new_status is ShipmentStatus.DELIVERED
            and self.delivered_at is None
        ):
            self.delivered_at = now

    def update_carrier(self, carrier: str) -> None:
        self.carrier = carrier
        self._touch()

    def update_service(self, service: str) -> None:
        self.service = service
        self._touch()

    def update_label_url(self, label_url: str) -> None:
        self.label_url = label_url
        self._touch()

    def update_gift(self, is_gift: bool, gift_message: str | None) -> None:
        self.is_gift = bool(is_gift)
        self.gift_message = gift_message
        self._touch()

    def add_item(self, data: ShipmentItemData) -> ShipmentItem:
        item = self._append_item(data)
        self._touch()
        return item

    def remove_item(self, order_item_id: str) -> ShipmentItem:
        item = self.find_item(order_item_id)
        if item is None:
            raise ShipmentItemNotFoundError(self.id, order_item_id)
        self.items.remove(item)
        self._touch()
        return item

    def find_item(self, order_item_id: str) -> ShipmentItem | None:
        for item in self.items:
            if item.order_item_id == order_item_id:
                return item
        return None

    def total_items(self) -> int:
        return sum(item.qty for item in self.items)

    def has_items(self) -> bool:
        return bool(self.items)


@dataclass
class ShipmentFilters:
    order_id: str | None = None
    status: ShipmentStatus | None = None
    carrier: str | None = None
    service: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None


@dataclass
class ShipmentQueryOptions:
    limit: int = 50
    offset: int = 0
    sort_by: ShipmentSortField = "created_at"
    sort_order: SortOrder = "desc"


@dataclass
class ListShipmentsResult:
    shipments: list[Shipment]
    total: int
