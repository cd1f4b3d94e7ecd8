"""Shipment application services."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace

from fastapi_orderflow.domain.shipments import (
    CreateShipmentData,
    ListShipmentsResult,
    Shipment,
    ShipmentFilters,
    ShipmentItem,
    ShipmentItemData,
    ShipmentQueryOptions,
)
from fastapi_orderflow.domain.states import ShipmentStatus
from fastapi_orderflow.exceptions import (
    DomainValidationError,
    ShipmentItemNotFoundError,
    ShipmentNotFoundError,
)
from fastapi_orderflow.protocols import Transaction, UnitOfWork

logger = logging.getLogger(__name__)


def _require(value: str | None, label: str) -> str:
    if not value or not value.strip():
        raise DomainValidationError(f"{label} is required")
    return value


async def _load_shipment(
    tx: Transaction, shipment_id: str
) -> Shipment | None:
    shipment = await tx.shipments.get(shipment_id)
    if shipment is None:
        return None
    shipment.items = await tx.shipment_items.list_by_shipment(shipment_id)
    return shipment


async def _require_shipment(tx: Transaction, shipment_id: str) -> Shipment:
    shipment = await _load_shipment(tx, shipment_id)
    if shipment is None:
        raise ShipmentNotFoundError(shipment_id)
    return shipment


class ShipmentService:
    """Load, mutate and persist shipment aggregates atomically."""

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        *,
        default_page_size: int = 50,
        max_page_size: int = 200,
    ) -> None:
        self.unit_of_work = unit_of_work
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    async def create_shipment(self, data: CreateShipmentData) -> Shipment:
        _require(data.order_id, "Order ID")
        shipment = Shipment.create(data)

        async with self.unit_of_work.begin() as tx:
            await tx.shipments.add(shipment)
            for item in shipment.items:
                await tx.shipment_items.add(item)

        logger.info(
            "Shipment %s created for order %s with %d item(s)",
            shipment.id,
            shipment.order_id,
            len(shipment.items),
        )
        return shipment

    async def get_shipment(self, shipment_id: str) -> Shipment | None:
        async with self.unit_of_work.begin() as tx:
            return await _load_shipment(tx, shipment_id)

    async def get_shipments_by_order_id(self, order_id: str) -> list[Shipment]:
        async with self.unit_of_work.begin() as tx:
            shipments = await tx.shipments.list_by_order(order_id)
            for shipment in shipments:
                shipment.items = await tx.shipment_items.list_by_shipment(
                    shipment.id
                )
        return shipments

    async def update_shipment_status(
        self, shipment_id: str, new_status: ShipmentStatus | str
    ) -> Shipment:
        async with self.unit_of_work.begin() as tx:
            shipment = await _require_shipment(tx, shipment_id)
            previous = shipment.status
            shipment.update_status(ShipmentStatus(new_status))
            await tx.shipments.update(shipment)

        logger.info(
            "Shipment %s moved from %s to %s",
            shipment_id,
            previous,
            shipment.status,
        )
        return shipment

    async def update_shipment_carrier(
        self, shipment_id: str, carrier: str
    ) -> Shipment:
        async with self.unit_of_work.begin() as tx:
            shipment = await _require_shipment(tx, shipment_id)
            shipment.update_carrier(carrier)
            await tx.shipments.update(shipment)
        return shipment

    async def update_shipment_service(
        self, shipment_id: str, service: str
    ) -> Shipment:
        async with self.unit_of_work.begin() as tx:
            shipment = await _require_shipment(tx, shipment_id)
            shipment.update_service(service)
            await tx.shipments.update(shipment)
        return shipment

    async def update_shipment_label_url(
        self, shipment_id: str, label_url: str
    ) -> Shipment:
        async with self.unit_of_work.begin() as tx:
            shipment = await _require_shipment(tx, shipment_id)
            shipment.update_label_url(label_url)
            await tx.shipments.update(shipment)
        return shipment

    async def update_shipment_gift(
        self,
        shipment_id: str,
        is_gift: bool,
        gift_message: str | None = None,
    ) -> Shipment:
        async with self.unit_of_work.begin() as tx:
            shipment = await _require_shipment(tx, shipment_id)
            shipment.update_gift(is_gift, gift_message)
            await tx.shipments.update(shipment)
        return shipment

    async def add_shipment_item(
        self, shipment_id: str, data: ShipmentItemData
    ) -> Shipment:
        async with self.unit_of_work.begin() as tx:
            shipment = await _require_shipment(tx, shipment_id)
            item = shipment.add_item(data)
            await tx.shipments.update(shipment)
            await tx.shipment_items.add(item)
        return shipment

    async def remove_shipment_item(
        self, shipment_id: str, order_item_id: str
    ) -> Shipment:
        async with self.unit_of_work.begin() as tx:
            shipment = await _require_shipment(tx, shipment_id)
            shipment.remove_item(order_item_id)
            await tx.shipments.update(shipment)
            await tx.shipment_items.delete(shipment_id, order_item_id)
        return shipment

    async def list_shipments(
        self,
        filters: ShipmentFilters | None = None,
        options: ShipmentQueryOptions | None = None,
    ) -> ListShipmentsResult:
        filters = filters or ShipmentFilters()
        if options is None:
            options = ShipmentQueryOptions(limit=self.default_page_size)
        if options.limit is not None and options.limit < 1:
            raise DomainValidationError("Limit must be a positive integer")
        limit = options.limit or self.default_page_size
        options = replace(
            options,
            limit=min(limit, self.max_page_size),
            offset=max(options.offset, 0),
        )

        async with self.unit_of_work.begin() as tx:
            shipments = await tx.shipments.find(filters, options)
            total = await tx.shipments.count(filters)
            for shipment in shipments:
                shipment.items = await tx.shipment_items.list_by_shipment(
                    shipment.id
                )
        return ListShipmentsResult(shipments=shipments, total=total)

    async def delete_shipment(self, shipment_id: str) -> None:
        async with self.unit_of_work.begin() as tx:
            if not await tx.shipments.exists(shipment_id):
                raise ShipmentNotFoundError(shipment_id)
            await tx.shipment_items.delete_by_shipment(shipment_id)
            await tx.shipments.delete(shipment_id)

        logger.info("Shipment %s deleted", shipment_id)


class ShipmentItemService:
    """Item-level reads and edits that do not touch the shipment header."""

    def __init__(self, unit_of_work: UnitOfWork) -> None:
        self.unit_of_work = unit_of_work

    async def get_shipment_items(self, shipment_id: str) -> list[ShipmentItem]:
        _require(shipment_id, "Shipment ID")
        async with self.unit_of_work.begin() as tx:
            return await tx.shipment_items.list_by_shipment(shipment_id)

    async def get_shipment_item(
        self, shipment_id: str, order_item_id: str
    ) -> ShipmentItem | None:
        _require(shipment_id, "Shipment ID")
        _require(order_item_id, "Order item ID")
        async with self.unit_of_work.begin() as tx:
            return await tx.shipment_items.get(shipment_id, order_item_id)

    async def _edit(
        self,
        shipment_id: str,
        order_item_id: str,
        mutate: Callable[[ShipmentItem], None],
    ) -> ShipmentItem:
        _require(shipment_id, "Shipment ID")
        _require(order_item_id, "Order item ID")
        async with self.unit_of_work.begin() as tx:
            item = await tx.shipment_items.get(shipment_id, order_item_id)
            if item is None:
                raise ShipmentItemNotFoundError(shipment_id, order_item_id)
            mutate(item)
            await tx.shipment_items.update(item)
        return item

    async def update_shipment_item_quantity(
        self, shipment_id: str, order_item_id: str, qty: int
    ) -> ShipmentItem:
        return await self._edit(
            shipment_id, order_item_id, lambda item: item.update_qty(qty)
        )

    async def update_shipment_item_gift_wrap(
        self, shipment_id: str, order_item_id: str, gift_wrap: bool
    ) -> ShipmentItem:
        return await self._edit(
            shipment_id,
            order_item_id,
            lambda item: item.set_gift_wrap(gift_wrap),
        )

    async def update_shipment_item_gift_message(
        self,
        shipment_id: str,
        order_item_id: str,
        gift_message: str | None,
    ) -> ShipmentItem:
        return await self._edit(
            shipment_id,
            order_item_id,
            lambda item: item.set_gift_message(gift_message),
        )

    async def delete_shipment_item(
        self, shipment_id: str, order_item_id: str
    ) -> None:
        async with self.unit_of_work.begin() as tx:
            if not await tx.shipment_items.exists(shipment_id, order_item_id):
                raise ShipmentItemNotFoundError(shipment_id, order_item_id)
            await tx.shipment_items.delete(shipment_id, order_item_id)

    async def get_gift_wrapped_items(
        self, shipment_id: str | None = None
    ) -> list[ShipmentItem]:
        async with self.unit_of_work.begin() as tx:
            return await tx.shipment_items.list_gift_wrapped(shipment_id)

    async def get_total_quantity_by_shipment(self, shipment_id: str) -> int:
        _require(shipment_id, "Shipment ID")
        async with self.unit_of_work.begin() as tx:
            return await tx.shipment_items.total_quantity(shipment_id)

    async def get_items_by_order_item_id(
        self, order_item_id: str
    ) -> list[ShipmentItem]:
        _require(order_item_id, "Order item ID")
        async with self.unit_of_work.begin() as tx:
            return await tx.shipment_items.list_by_order_item(order_item_id)
