"""SQLAlchemy repository and unit-of-work implementations."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fastapi_orderflow.contrib.sqlalchemy.models import (
    PaymentIntentModel,
    PaymentTransactionModel,
    PaymentWebhookEventModel,
    ShipmentItemModel,
    ShipmentModel,
)
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
from fastapi_orderflow.domain.states import PaymentIntentStatus, ShipmentStatus
from fastapi_orderflow.domain.values import (
    Money,
    PaymentTransactionType,
    TransactionStatus,
)
from fastapi_orderflow.exceptions import ConcurrencyError

_SHIPMENT_SORT_COLUMNS = {
    "created_at": ShipmentModel.created_at,
    "updated_at": ShipmentModel.updated_at,
    "shipped_at": ShipmentModel.shipped_at,
    "delivered_at": ShipmentModel.delivered_at,
}


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC)


def _shipment_from_row(row: ShipmentModel) -> Shipment:
    return Shipment(
        id=row.id,
        order_id=row.order_id,
        status=ShipmentStatus(row.status),
        carrier=row.carrier,
        service=row.service,
        label_url=row.label_url,
        items=[],
        is_gift=row.is_gift,
        gift_message=row.gift_message,
        shipped_at=_aware(row.shipped_at),
        delivered_at=_aware(row.delivered_at),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        version=row.version,
    )


def _item_from_row(row: ShipmentItemModel) -> ShipmentItem:
    return ShipmentItem(
        shipment_id=row.shipment_id,
        order_item_id=row.order_item_id,
        qty=row.qty,
        gift_wrap=row.gift_wrap,
        gift_message=row.gift_message,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _intent_from_row(row: PaymentIntentModel) -> PaymentIntent:
    return PaymentIntent(
        id=row.id,
        provider=row.provider,
        amount=Money(row.amount, row.currency),
        order_id=row.order_id,
        checkout_id=row.checkout_id,
        status=PaymentIntentStatus(row.status),
        idempotency_key=row.idempotency_key,
        client_secret=row.client_secret,
        external_reference=row.external_reference,
        metadata=dict(row.metadata_ or {}),
        refunded_amount=Money(row.refunded_amount, row.currency),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        version=row.version,
    )


def _transaction_from_row(
    row: PaymentTransactionModel,
) -> PaymentTransaction:
    return PaymentTransaction(
        id=row.id,
        intent_id=row.intent_id,
        type=PaymentTransactionType(row.type),
        amount=Money(row.amount, row.currency),
        status=TransactionStatus(row.status),
        psp_reference=row.psp_reference,
        failure_reason=row.failure_reason,
        note=row.note,
        created_at=_aware(row.created_at),
    )


def _event_from_row(row: PaymentWebhookEventModel) -> PaymentWebhookEvent:
    return PaymentWebhookEvent(
        id=row.id,
        provider=row.provider,
        event_id=row.event_id,
        event_type=row.event_type,
        intent_id=row.intent_id,
        payload=dict(row.payload or {}),
        created_at=_aware(row.created_at),
    )


class SQLAlchemyShipmentRepository:
    """Shipment headers backed by an SQLAlchemy async session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, shipment: Shipment) -> None:
        self.session.add(
            ShipmentModel(
                id=shipment.id,
                order_id=shipment.order_id,
                carrier=shipment.carrier,
                service=shipment.service,
                label_url=shipment.label_url,
                status=str(shipment.status),
                is_gift=shipment.is_gift,
                gift_message=shipment.gift_message,
                shipped_at=shipment.shipped_at,
                delivered_at=shipment.delivered_at,
                created_at=shipment.created_at,
                updated_at=shipment.updated_at,
                version=shipment.version,
            )
        )
        await self.session.flush()

    async def get(self, shipment_id: str) -> Shipment | None:
        result = await self.session.execute(
            select(ShipmentModel)
            .where(ShipmentModel.id == shipment_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _shipment_from_row(row) if row is not None else None

    async def update(self, shipment: Shipment) -> None:
        result = await self.session.execute(
            update(ShipmentModel)
            .where(
                ShipmentModel.id == shipment.id,
                ShipmentModel.version == shipment.version,
            )
            .values(
                carrier=shipment.carrier,
                service=shipment.service,
                label_url=shipment.label_url,
                status=str(shipment.status),
                is_gift=shipment.is_gift,
                gift_message=shipment.gift_message,
                shipped_at=shipment.shipped_at,
                delivered_at=shipment.delivered_at,
                updated_at=shipment.updated_at,
                version=shipment.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyError(
                f"Shipment {shipment.id} was modified concurrently"
            )
        shipment.version += 1

    async def delete(self, shipment_id: str) -> None:
        await self.session.execute(
            delete(ShipmentModel)
            .where(ShipmentModel.id == shipment_id)
            .execution_options(synchronize_session=False)
        )

    async def exists(self, shipment_id: str) -> bool:
        result = await self.session.execute(
            select(ShipmentModel.id).where(ShipmentModel.id == shipment_id)
        )
        return result.scalar_one_or_none() is not None

    async def list_by_order(self, order_id: str) -> list[Shipment]:
        result = await self.session.execute(
            select(ShipmentModel)
            .where(ShipmentModel.order_id == order_id)
            .order_by(ShipmentModel.created_at.asc())
            .execution_options(populate_existing=True)
        )
        return [_shipment_from_row(row) for row in result.scalars().all()]

    @staticmethod
    def _conditions(filters: ShipmentFilters) -> list[Any]:
        conditions: list[Any] = []
        if filters.order_id:
            conditions.append(ShipmentModel.order_id == filters.order_id)
        if filters.status:
            conditions.append(ShipmentModel.status == str(filters.status))
        if filters.carrier:
            conditions.append(ShipmentModel.carrier == filters.carrier)
        if filters.service:
            conditions.append(ShipmentModel.service == filters.service)
        if filters.start_date:
            conditions.append(
                ShipmentModel.created_at >= _utc(filters.start_date)
            )
        if filters.end_date:
            conditions.append(
                ShipmentModel.created_at <= _utc(filters.end_date)
            )
        return conditions

    async def find(
        self,
        filters: ShipmentFilters,
        options: ShipmentQueryOptions,
    ) -> list[Shipment]:
        column = _SHIPMENT_SORT_COLUMNS[options.sort_by]
        ordering = (
            column.asc() if options.sort_order == "asc" else column.desc()
        )
        stmt = (
            select(ShipmentModel)
            .where(*self._conditions(filters))
            .order_by(ordering, ShipmentModel.id)
            .limit(options.limit)
            .offset(options.offset)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return [_shipment_from_row(row) for row in result.scalars().all()]

    async def count(self, filters: ShipmentFilters) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(ShipmentModel)
            .where(*self._conditions(filters))
        )
        return int(result.scalar_one())


class SQLAlchemyShipmentItemRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, item: ShipmentItem) -> None:
        self.session.add(
            ShipmentItemModel(
                shipment_id=item.shipment_id,
                order_item_id=item.order_item_id,
                qty=item.qty,
                gift_wrap=item.gift_wrap,
                gift_message=item.gift_message,
                created_at=item.created_at,
                updated_at=item.updated_at,
            )
        )
        await self.session.flush()

    async def update(self, item: ShipmentItem) -> None:
        await self.session.execute(
            update(ShipmentItemModel)
            .where(
                ShipmentItemModel.shipment_id == item.shipment_id,
                ShipmentItemModel.order_item_id == item.order_item_id,
            )
            .values(
                qty=item.qty,
                gift_wrap=item.gift_wrap,
                gift_message=item.gift_message,
                updated_at=item.updated_at,
            )
            .execution_options(synchronize_session=False)
        )

    async def get(
        self, shipment_id: str, order_item_id: str
    ) -> ShipmentItem | None:
        result = await self.session.execute(
            select(ShipmentItemModel)
            .where(
                ShipmentItemModel.shipment_id == shipment_id,
                ShipmentItemModel.order_item_id == order_item_id,
            )
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _item_from_row(row) if row is not None else None

    async def exists(self, shipment_id: str, order_item_id: str) -> bool:
        return await self.get(shipment_id, order_item_id) is not None

    async def delete(self, shipment_id: str, order_item_id: str) -> None:
        await self.session.execute(
            delete(ShipmentItemModel)
            .where(
                ShipmentItemModel.shipment_id == shipment_id,
                ShipmentItemModel.order_item_id == order_item_id,
            )
            .execution_options(synchronize_session=False)
        )

    async def delete_by_shipment(self, shipment_id: str) -> None:
        await self.session.execute(
            delete(ShipmentItemModel)
            .where(ShipmentItemModel.shipment_id == shipment_id)
            .execution_options(synchronize_session=False)
        )

    async def _list(self, *conditions: Any) -> list[ShipmentItem]:
        result = await self.session.execute(
            select(ShipmentItemModel)
            .where(*conditions)
            .order_by(ShipmentItemModel.created_at, ShipmentItemModel.id)
            .execution_options(populate_existing=True)
        )
        return [_item_from_row(row) for row in result.scalars().all()]

    async def list_by_shipment(self, shipment_id: str) -> list[ShipmentItem]:
        return await self._list(ShipmentItemModel.shipment_id == shipment_id)

    async def list_by_order_item(
        self, order_item_id: str
    ) -> list[ShipmentItem]:
        return await self._list(
            ShipmentItemModel.order_item_id == order_item_id
        )

    async def list_gift_wrapped(
        self, shipment_id: str | None = None
    ) -> list[ShipmentItem]:
        conditions: list[Any] = [ShipmentItemModel.gift_wrap.is_(True)]
        if shipment_id:
            conditions.append(ShipmentItemModel.shipment_id == shipment_id)
        return await self._list(*conditions)

    async def total_quantity(self, shipment_id: str) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(ShipmentItemModel.qty), 0)).where(
                ShipmentItemModel.shipment_id == shipment_id
            )
        )
        return int(result.scalar_one())


class SQLAlchemyPaymentIntentRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, intent: PaymentIntent) -> None:
        self.session.add(
            PaymentIntentModel(
                id=intent.id,
                order_id=intent.order_id,
                checkout_id=intent.checkout_id,
                provider=intent.provider,
                amount=intent.amount.amount,
                currency=intent.amount.currency,
                refunded_amount=intent.refunded_amount.amount,
                status=str(intent.status),
                idempotency_key=intent.idempotency_key,
                client_secret=intent.client_secret,
                external_reference=intent.external_reference,
                metadata_=intent.metadata,
                created_at=intent.created_at,
                updated_at=intent.updated_at,
                version=intent.version,
            )
        )
        await self.session.flush()

    async def _one(self, *conditions: Any) -> PaymentIntent | None:
        result = await self.session.execute(
            select(PaymentIntentModel)
            .where(*conditions)
            .order_by(PaymentIntentModel.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _intent_from_row(row) if row is not None else None

    async def get(self, intent_id: str) -> PaymentIntent | None:
        return await self._one(PaymentIntentModel.id == intent_id)

    async def update(self, intent: PaymentIntent) -> None:
        result = await self.session.execute(
            update(PaymentIntentModel)
            .where(
                PaymentIntentModel.id == intent.id,
                PaymentIntentModel.version == intent.version,
            )
            .values(
                status=str(intent.status),
                refunded_amount=intent.refunded_amount.amount,
                client_secret=intent.client_secret,
                external_reference=intent.external_reference,
                metadata_=intent.metadata,
                updated_at=intent.updated_at,
                version=intent.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConcurrencyError(
                f"Payment intent {intent.id} was modified concurrently"
            )
        intent.version += 1

    async def list_by_order(self, order_id: str) -> list[PaymentIntent]:
        result = await self.session.execute(
            select(PaymentIntentModel)
            .where(PaymentIntentModel.order_id == order_id)
            .order_by(PaymentIntentModel.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return [_intent_from_row(row) for row in result.scalars().all()]

    async def get_by_checkout(self, checkout_id: str) -> PaymentIntent | None:
        return await self._one(PaymentIntentModel.checkout_id == checkout_id)

    async def get_by_idempotency_key(
        self, idempotency_key: str
    ) -> PaymentIntent | None:
        return await self._one(
            PaymentIntentModel.idempotency_key == idempotency_key
        )

    async def get_by_external_reference(
        self, reference: str
    ) -> PaymentIntent | None:
        return await self._one(
            PaymentIntentModel.external_reference == reference
        )


class SQLAlchemyPaymentTransactionRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def add(self, transaction: PaymentTransaction) -> None:
        self.session.add(
            PaymentTransactionModel(
                id=transaction.id,
                intent_id=transaction.intent_id,
                type=str(transaction.type),
                amount=transaction.amount.amount,
                currency=transaction.amount.currency,
                status=str(transaction.status),
                psp_reference=transaction.psp_reference,
                failure_reason=transaction.failure_reason,
                note=transaction.note,
                created_at=transaction.created_at,
            )
        )
        await self.session.flush()

    async def list_by_intent(self, intent_id: str) -> list[PaymentTransaction]:
        result = await self.session.execute(
            select(PaymentTransactionModel)
            .where(PaymentTransactionModel.intent_id == intent_id)
            .order_by(
                PaymentTransactionModel.created_at.asc(),
                PaymentTransactionModel.id,
            )
        )
        return [_transaction_from_row(row) for row in result.scalars().all()]


class SQLAlchemyWebhookEventRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def exists(self, provider: str, event_id: str) -> bool:
        result = await self.session.execute(
            select(PaymentWebhookEventModel.id).where(
                PaymentWebhookEventModel.provider == provider,
                PaymentWebhookEventModel.event_id == event_id,
            )
        )
        return result.scalar_one_or_none() is not None

    async def add(
        self,
        *,
        provider: str,
        event_id: str,
        event_type: str,
        intent_id: str | None,
        payload: dict[str, Any],
    ) -> None:
        self.session.add(
            PaymentWebhookEventModel(
                provider=provider,
                event_id=event_id,
                event_type=event_type,
                intent_id=intent_id,
                payload=payload,
            )
        )
        await self.session.flush()

    @staticmethod
    def _conditions(
        provider: str | None, event_type: str | None
    ) -> list[Any]:
        conditions: list[Any] = []
        if provider:
            conditions.append(PaymentWebhookEventModel.provider == provider)
        if event_type:
            conditions.append(
                PaymentWebhookEventModel.event_type == event_type
            )
        return conditions

    async def list(
        self,
        *,
        provider: str | None = None,
        event_type: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[PaymentWebhookEvent]:
        result = await self.session.execute(
            select(PaymentWebhookEventModel)
            .where(*self._conditions(provider, event_type))
            .order_by(
                PaymentWebhookEventModel.created_at.desc(),
                PaymentWebhookEventModel.id,
            )
            .limit(limit)
            .offset(offset)
        )
        return [_event_from_row(row) for row in result.scalars().all()]

    async def count(
        self,
        *,
        provider: str | None = None,
        event_type: str | None = None,
    ) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(PaymentWebhookEventModel)
            .where(*self._conditions(provider, event_type))
        )
        return int(result.scalar_one())


class SQLAlchemyTransaction:
    """Every repository bound to one session and database transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.shipments = SQLAlchemyShipmentRepository(session)
        self.shipment_items = SQLAlchemyShipmentItemRepository(session)
        self.payment_intents = SQLAlchemyPaymentIntentRepository(session)
        self.payment_transactions = SQLAlchemyPaymentTransactionRepository(
            session
        )
        self.webhook_events = SQLAlchemyWebhookEventRepository(session)


class SQLAlchemyUnitOfWork:
    """Unit of work backed by SQLAlchemy async sessions."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    @asynccontextmanager
    async def begin(self) -> AsyncIterator[SQLAlchemyTransaction]:
        async with self.session_factory() as session:
            async with session.begin():
                yield SQLAlchemyTransaction(session)
