"""Router tests."""

from conftest import FakeGateway
from fastapi import APIRouter, FastAPI

from fastapi_orderflow.config import OrderflowConfig
from fastapi_orderflow.exceptions import GatewayError, NotFoundError
from fastapi_orderflow.router import create_orderflow_router
from fastapi_orderflow.webhooks import (
    GatewaySignatureVerifier,
    HmacSignatureVerifier,
)


class _UnitOfWork:
    def begin(self):
        raise NotImplementedError


def test_create_orderflow_router_returns_apirouter() -> None:
    router = create_orderflow_router(
        config=OrderflowConfig(), unit_of_work=_UnitOfWork()
    )

    assert isinstance(router, APIRouter)
    app = FastAPI()
    app.include_router(router)
    paths = set(app.openapi()["paths"])
    assert {
        "/shipments",
        "/shipments/{shipment_id}/carrier",
        "/shipments/{shipment_id}/items/{order_item_id}/qty",
        "/payment-intents",
        "/webhooks/payments/{provider}",
        "/webhooks/events",
    } <= paths


async def test_exception_handlers_registered_after_lifespan() -> None:
    app = FastAPI()
    app.include_router(
        create_orderflow_router(
            config=OrderflowConfig(), unit_of_work=_UnitOfWork()
        )
    )

    assert NotFoundError not in app.exception_handlers
    async with app.router.lifespan_context(app) as _:
        assert NotFoundError in app.exception_handlers
        assert GatewayError in app.exception_handlers


async def test_lifespan_stores_state() -> None:
    config = OrderflowConfig(webhook_secret="s3cret")
    unit_of_work = _UnitOfWork()
    app = FastAPI()
    app.include_router(
        create_orderflow_router(config=config, unit_of_work=unit_of_work)
    )

    async with app.router.lifespan_context(app) as _:
        assert app.state.orderflow_config is config
        assert app.state.orderflow_unit_of_work is unit_of_work
        assert app.state.orderflow_gateway is None
        verifier = app.state.orderflow_signature_verifier
        assert isinstance(verifier, HmacSignatureVerifier)


async def test_no_verifier_without_secret() -> None:
    app = FastAPI()
    app.include_router(
        create_orderflow_router(
            config=OrderflowConfig(), unit_of_work=_UnitOfWork()
        )
    )

    async with app.router.lifespan_context(app) as _:
        assert app.state.orderflow_signature_verifier is None


async def test_explicit_verifier_wins() -> None:
    verifier = HmacSignatureVerifier("custom")
    app = FastAPI()
    app.include_router(
        create_orderflow_router(
            config=OrderflowConfig(webhook_secret="ignored"),
            unit_of_work=_UnitOfWork(),
            signature_verifier=verifier,
        )
    )

    async with app.router.lifespan_context(app) as _:
        assert app.state.orderflow_signature_verifier is verifier


async def test_gateway_verifies_when_no_secret() -> None:
    gateway = FakeGateway()
    app = FastAPI()
    app.include_router(
        create_orderflow_router(
            config=OrderflowConfig(),
            unit_of_work=_UnitOfWork(),
            gateway=gateway,
        )
    )

    async with app.router.lifespan_context(app) as _:
        verifier = app.state.orderflow_signature_verifier
        assert isinstance(verifier, GatewaySignatureVerifier)
        assert verifier.gateway is gateway


async def test_secret_wins_over_gateway() -> None:
    app = FastAPI()
    app.include_router(
        create_orderflow_router(
            config=OrderflowConfig(webhook_secret="s3cret"),
            unit_of_work=_UnitOfWork(),
            gateway=FakeGateway(),
        )
    )

    async with app.router.lifespan_context(app) as _:
        verifier = app.state.orderflow_signature_verifier
        assert isinstance(verifier, HmacSignatureVerifier)
