"""Router factory for fastapi-orderflow."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from fastapi_orderflow.config import OrderflowConfig
from fastapi_orderflow.exceptions import register_exception_handlers
from fastapi_orderflow.protocols import (
    PaymentGateway,
    UnitOfWork,
    WebhookSignatureVerifier,
)
from fastapi_orderflow.routes.payments import router as payments_router
from fastapi_orderflow.routes.shipments import router as shipments_router
from fastapi_orderflow.routes.webhooks import router as webhooks_router
from fastapi_orderflow.webhooks import (
    GatewaySignatureVerifier,
    HmacSignatureVerifier,
)


def create_orderflow_router(
    *,
    config: OrderflowConfig,
    unit_of_work: UnitOfWork,
    gateway: PaymentGateway | None = None,
    signature_verifier: WebhookSignatureVerifier | None = None,
) -> APIRouter:
    """Create a configured API router.

    Webhooks are verified with ``signature_verifier`` when given, else
    with :class:`HmacSignatureVerifier` when ``config.webhook_secret`` is
    set, else by the ``gateway`` adapter.
    """
    verifier = signature_verifier
    if verifier is None and config.webhook_secret:
        verifier = HmacSignatureVerifier(config.webhook_secret)
    if verifier is None and gateway is not None:
        verifier = GatewaySignatureVerifier(gateway)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        app.state.orderflow_config = config
        app.state.orderflow_unit_of_work = unit_of_work
        app.state.orderflow_gateway = gateway
        app.state.orderflow_signature_verifier = verifier
        register_exception_handlers(app)
        yield

    router = APIRouter(lifespan=lifespan)
    router.include_router(shipments_router)
    router.include_router(payments_router)
    router.include_router(webhooks_router)
    return router
