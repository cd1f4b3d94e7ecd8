"""Shared fixtures for fastapi-orderflow tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from decimal import Decimal

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from fastapi_orderflow.config import OrderflowConfig
from fastapi_orderflow.contrib.sqlalchemy.models import Base
from fastapi_orderflow.contrib.sqlalchemy.repository import (
    SQLAlchemyUnitOfWork,
)
from fastapi_orderflow.domain.shipments import (
    CreateShipmentData,
    ShipmentItemData,
)
from fastapi_orderflow.exceptions import register_exception_handlers
from fastapi_orderflow.protocols import (
    GatewayPaymentRequest,
    GatewayPaymentResponse,
    GatewayRefundResponse,
)
from fastapi_orderflow.router import create_orderflow_router
from fastapi_orderflow.schemas import CreatePaymentIntentRequest
from fastapi_orderflow.services.payments import PaymentService
from fastapi_orderflow.services.shipments import (
    ShipmentItemService,
    ShipmentService,
)
from fastapi_orderflow.webhooks import PaymentWebhookProcessor


class FakeGateway:
    """In-memory PaymentGateway recording every call."""

    def __init__(
        self,
        *,
        success: bool = True,
        transaction_id: str | None = "txn-123",
        invoice_id: str | None = None,
        refund_success: bool = True,
    ) -> None:
        self.success = success
        self.transaction_id = transaction_id
        self.invoice_id = invoice_id
        self.refund_success = refund_success
        self.requests: list[GatewayPaymentRequest] = []
        self.verified: list[str] = []
        self.refunds: list[tuple[str, float, str | None]] = []

    async def create_payment(
        self, request: GatewayPaymentRequest
    ) -> GatewayPaymentResponse:
        self.requests.append(request)
        if not self.success:
            return GatewayPaymentResponse(success=False, error="declined")
        return GatewayPaymentResponse(
            success=True,
            transaction_id=self.transaction_id,
            invoice_id=self.invoice_id,
            redirect_url="https://pay.example/checkout",
            status="pending",
        )

    async def verify_payment(
        self, transaction_id: str
    ) -> GatewayPaymentResponse:
        self.verified.append(transaction_id)
        return GatewayPaymentResponse(
            success=True,
            transaction_id=transaction_id,
            redirect_url="https://pay.example/checkout",
            status="pending",
        )

    async def refund_payment(
        self,
        transaction_id: str,
        amount: float,
        reason: str | None = None,
    ) -> GatewayRefundResponse:
        self.refunds.append((transaction_id, amount, reason))
        if not self.refund_success:
            return GatewayRefundResponse(success=False, error="too late")
        return GatewayRefundResponse(success=True, refund_id="rf-1")

    def validate_webhook_signature(
        self, payload: bytes, signature: str
    ) -> bool:
        return signature == "ok"


def make_engine():
    return create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


def shipment_data(
    order_id: str = "order-1",
    items: list[tuple[str, int]] | None = None,
    **fields,
) -> CreateShipmentData:
    return CreateShipmentData(
        order_id=order_id,
        items=[
            ShipmentItemData(order_item_id=oi, qty=qty)
            for oi, qty in (items if items is not None else [("item-1", 2)])
        ],
        **fields,
    )


def intent_request(**fields) -> CreatePaymentIntentRequest:
    values = {
        "order_id": "order-1",
        "provider": "stripe",
        "amount": Decimal("100.00"),
        "currency": "USD",
    }
    values.update(fields)
    return CreatePaymentIntentRequest(**values)


async def count_rows(session_factory, model) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(model)
        )
        return result.scalar_one()


@pytest.fixture()
async def async_engine():
    """Create an in-memory aiosqlite async engine."""
    engine = make_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def async_session_factory(async_engine):
    """Create an async session factory bound to the in-memory engine."""
    yield async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest.fixture()
def unit_of_work(async_session_factory) -> SQLAlchemyUnitOfWork:
    return SQLAlchemyUnitOfWork(async_session_factory)


@pytest.fixture()
def shipment_service(unit_of_work) -> ShipmentService:
    return ShipmentService(unit_of_work)


@pytest.fixture()
def item_service(unit_of_work) -> ShipmentItemService:
    return ShipmentItemService(unit_of_work)


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def payment_service(unit_of_work, gateway) -> PaymentService:
    return PaymentService(unit_of_work, gateway=gateway)


@pytest.fixture()
def webhook_processor(unit_of_work) -> PaymentWebhookProcessor:
    return PaymentWebhookProcessor(unit_of_work)


def create_test_client(config: OrderflowConfig | None = None, **kwargs):
    """TestClient for an app whose lifespan creates a fresh database."""
    engine = make_engine()
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield
        await engine.dispose()

    app = FastAPI(lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(
        create_orderflow_router(
            config=config or OrderflowConfig(),
            unit_of_work=SQLAlchemyUnitOfWork(session_factory),
            **kwargs,
        )
    )
    return TestClient(app)
