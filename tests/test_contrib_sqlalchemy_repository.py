"""SQLAlchemy repository and unit of work tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from conftest import count_rows, shipment_data

from fastapi_orderflow.contrib.sqlalchemy.models import (
    ShipmentItemModel,
    ShipmentModel,
)
from fastapi_orderflow.domain.payments import PaymentIntent
from fastapi_orderflow.domain.shipments import (
    Shipment,
    ShipmentFilters,
    ShipmentQueryOptions,
)
from fastapi_orderflow.domain.states import (
    PaymentIntentStatus,
    ShipmentStatus,
)
from fastapi_orderflow.domain.values import Money
from fastapi_orderflow.exceptions import ConcurrencyError


async def _store_shipment(unit_of_work, **fields) -> Shipment:
    shipment = Shipment.create(shipment_data(**fields))
    async with unit_of_work.begin() as tx:
        await tx.shipments.add(shipment)
        for item in shipment.items:
            await tx.shipment_items.add(item)
    return shipment


async def test_shipment_roundtrip(unit_of_work) -> None:
    shipment = await _store_shipment(unit_of_work, carrier="ups")

    async with unit_of_work.begin() as tx:
        loaded = await tx.shipments.get(shipment.id)
        items = await tx.shipment_items.list_by_shipment(shipment.id)

    assert loaded is not None
    assert loaded.carrier == "ups"
    assert loaded.status is ShipmentStatus.CREATED
    assert loaded.created_at.tzinfo is not None
    assert [item.order_item_id for item in items] == ["item-1"]


async def test_stale_shipment_update_raises(unit_of_work) -> None:
    shipment = await _store_shipment(unit_of_work)

    async with unit_of_work.begin() as tx:
        first = await tx.shipments.get(shipment.id)
    async with unit_of_work.begin() as tx:
        second = await tx.shipments.get(shipment.id)

    first.update_status(ShipmentStatus.IN_TRANSIT)
    async with unit_of_work.begin() as tx:
        await tx.shipments.update(first)
    assert first.version == 2

    second.update_status(ShipmentStatus.CANCELLED)
    with pytest.raises(ConcurrencyError):
        async with unit_of_work.begin() as tx:
            await tx.shipments.update(second)

    async with unit_of_work.begin() as tx:
        current = await tx.shipments.get(shipment.id)
    assert current.status is ShipmentStatus.IN_TRANSIT
    assert current.version == 2


async def test_failed_unit_of_work_rolls_back(
    unit_of_work, async_session_factory
) -> None:
    shipment = Shipment.create(shipment_data())

    with pytest.raises(RuntimeError):
        async with unit_of_work.begin() as tx:
            await tx.shipments.add(shipment)
            for item in shipment.items:
                await tx.shipment_items.add(item)
            raise RuntimeError("boom")

    assert await count_rows(async_session_factory, ShipmentModel) == 0
    assert await count_rows(async_session_factory, ShipmentItemModel) == 0


async def test_find_and_count(unit_of_work) -> None:
    await _store_shipment(unit_of_work, order_id="o-1", carrier="dhl")
    await _store_shipment(unit_of_work, order_id="o-2", carrier="dhl")
    await _store_shipment(unit_of_work, order_id="o-3", carrier="ups")

    filters = ShipmentFilters(carrier="dhl")
    async with unit_of_work.begin() as tx:
        page = await tx.shipments.find(
            filters, ShipmentQueryOptions(limit=1, sort_order="asc")
        )
        total = await tx.shipments.count(filters)
        future = await tx.shipments.count(
            ShipmentFilters(
                start_date=datetime.now(tz=UTC) + timedelta(days=1)
            )
        )

    assert total == 2
    assert [s.order_id for s in page] == ["o-1"]
    assert future == 0


async def test_item_queries(unit_of_work) -> None:
    shipment = await _store_shipment(
        unit_of_work, items=[("a", 2), ("b", 3)]
    )

    async with unit_of_work.begin() as tx:
        item = await tx.shipment_items.get(shipment.id, "a")
        item.set_gift_wrap(True)
        await tx.shipment_items.update(item)

    async with unit_of_work.begin() as tx:
        total = await tx.shipment_items.total_quantity(shipment.id)
        wrapped = await tx.shipment_items.list_gift_wrapped(shipment.id)
        by_order_item = await tx.shipment_items.list_by_order_item("b")
        await tx.shipment_items.delete(shipment.id, "b")
        assert not await tx.shipment_items.exists(shipment.id, "b")

    assert total == 5
    assert [i.order_item_id for i in wrapped] == ["a"]
    assert by_order_item[0].qty == 3


async def test_payment_intent_lookups_and_cas(unit_of_work) -> None:
    intent = PaymentIntent.create(
        provider="stripe",
        amount=Money.of("12.50", "EUR"),
        order_id="o-1",
        checkout_id="chk-1",
        idempotency_key="key-1",
    )
    async with unit_of_work.begin() as tx:
        await tx.payment_intents.add(intent)

    async with unit_of_work.begin() as tx:
        by_checkout = await tx.payment_intents.get_by_checkout("chk-1")
        by_key = await tx.payment_intents.get_by_idempotency_key("key-1")
        by_order = await tx.payment_intents.list_by_order("o-1")

    assert by_checkout.id == by_key.id == intent.id
    assert by_checkout.amount == Money.of("12.50", "EUR")
    assert [i.id for i in by_order] == [intent.id]

    by_checkout.attach_external_reference("txn-9")
    by_checkout.authorize()
    async with unit_of_work.begin() as tx:
        await tx.payment_intents.update(by_checkout)

    by_key.cancel()
    with pytest.raises(ConcurrencyError):
        async with unit_of_work.begin() as tx:
            await tx.payment_intents.update(by_key)

    async with unit_of_work.begin() as tx:
        found = await tx.payment_intents.get_by_external_reference("txn-9")
    assert found.status is PaymentIntentStatus.AUTHORIZED


async def test_webhook_events(unit_of_work) -> None:
    async with unit_of_work.begin() as tx:
        assert not await tx.webhook_events.exists("sandbox", "evt-1")
        await tx.webhook_events.add(
            provider="sandbox",
            event_id="evt-1",
            event_type="payment.success",
            intent_id=None,
            payload={"event": "payment.success"},
        )

    async with unit_of_work.begin() as tx:
        assert await tx.webhook_events.exists("sandbox", "evt-1")
        assert not await tx.webhook_events.exists("other", "evt-1")


async def test_webhook_event_listing(unit_of_work) -> None:
    async with unit_of_work.begin() as tx:
        for provider, event_id, event_type in [
            ("sandbox", "evt-1", "payment.success"),
            ("sandbox", "evt-2", "payment.failed"),
            ("other", "evt-3", "payment.success"),
        ]:
            await tx.webhook_events.add(
                provider=provider,
                event_id=event_id,
                event_type=event_type,
                intent_id="intent-1",
                payload={"event": event_type, "event_id": event_id},
            )

    async with unit_of_work.begin() as tx:
        everything = await tx.webhook_events.list()
        sandbox = await tx.webhook_events.list(provider="sandbox")
        failed = await tx.webhook_events.list(
            provider="sandbox", event_type="payment.failed"
        )
        page = await tx.webhook_events.list(limit=2, offset=2)
        total = await tx.webhook_events.count()
        sandbox_total = await tx.webhook_events.count(provider="sandbox")

    assert len(everything) == 3
    assert {e.event_id for e in sandbox} == {"evt-1", "evt-2"}
    assert [e.event_id for e in failed] == ["evt-2"]
    assert failed[0].payload == {
        "event": "payment.failed",
        "event_id": "evt-2",
    }
    assert failed[0].created_at.tzinfo is not None
    assert len(page) == 1
    assert total == 3
    assert sandbox_total == 2
