"""Dependency providers for request handlers."""

from __future__ import annotations

from fastapi import Request

from fastapi_orderflow.config import OrderflowConfig
from fastapi_orderflow.handlers import (
    PaymentHandlers,
    ShipmentHandlers,
    ShipmentItemHandlers,
)
from fastapi_orderflow.protocols import (
    PaymentGateway,
    UnitOfWork,
    WebhookSignatureVerifier,
)
from fastapi_orderflow.services.payments import PaymentService
from fastapi_orderflow.services.shipments import (
    ShipmentItemService,
    ShipmentService,
)
from fastapi_orderflow.webhooks import PaymentWebhookProcessor


def get_config(request: Request) -> OrderflowConfig:
    """Read config from FastAPI app state."""
    return request.app.state.orderflow_config


def get_unit_of_work(request: Request) -> UnitOfWork:
    """Read unit of work from FastAPI app state."""
    return request.app.state.orderflow_unit_of_work


def get_gateway(request: Request) -> PaymentGateway | None:
    return getattr(request.app.state, "orderflow_gateway", None)


def get_signature_verifier(
    request: Request,
) -> WebhookSignatureVerifier | None:
    return getattr(request.app.state, "orderflow_signature_verifier", None)


def get_shipment_service(request: Request) -> ShipmentService:
    config = get_config(request)
    return ShipmentService(
        get_unit_of_work(request),
        default_page_size=config.default_page_size,
        max_page_size=config.max_page_size,
    )


def get_shipment_item_service(request: Request) -> ShipmentItemService:
    return ShipmentItemService(get_unit_of_work(request))


def get_payment_service(request: Request) -> PaymentService:
    config = get_config(request)
    return PaymentService(
        get_unit_of_work(request),
        default_currency=config.default_currency,
        gateway=get_gateway(request),
    )


def get_shipment_handlers(request: Request) -> ShipmentHandlers:
    """Create shipment handlers for the current request."""
    return ShipmentHandlers(get_shipment_service(request))


def get_shipment_item_handlers(request: Request) -> ShipmentItemHandlers:
    return ShipmentItemHandlers(get_shipment_item_service(request))


def get_payment_handlers(request: Request) -> PaymentHandlers:
    """Create payment handlers for the current request."""
    return PaymentHandlers(get_payment_service(request))


def get_webhook_processor(request: Request) -> PaymentWebhookProcessor:
    config = get_config(request)
    return PaymentWebhookProcessor(
        get_unit_of_work(request),
        verifier=get_signature_verifier(request),
        signature_header=config.webhook_signature_header,
    )
