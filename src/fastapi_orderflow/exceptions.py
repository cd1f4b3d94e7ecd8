"""Domain exceptions and handlers mapping them to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class OrderflowError(Exception):
    """Base class for every error raised by fastapi-orderflow."""

    code = "orderflow_error"


class DomainValidationError(OrderflowError):
    """Input or entity state failed a business validation rule."""

    code = "validation_error"


class NotFoundError(OrderflowError):
    """Requested aggregate or child entity does not exist."""

    code = "not_found"


class ShipmentNotFoundError(NotFoundError):
    def __init__(self, shipment_id: str) -> None:
        self.shipment_id = shipment_id
        super().__init__(f"Shipment {shipment_id} not found")


class ShipmentItemNotFoundError(NotFoundError):
    def __init__(self, shipment_id: str, order_item_id: str) -> None:
        self.shipment_id = shipment_id
        self.order_item_id = order_item_id
        super().__init__(
            f"Item {order_item_id} not found in shipment {shipment_id}"
        )


class PaymentIntentNotFoundError(NotFoundError):
    def __init__(self, intent_id: str) -> None:
        self.intent_id = intent_id
        super().__init__(f"Payment intent {intent_id} not found")


class InvalidTransitionError(OrderflowError):
    """State machine rejected the requested move."""

    code = "invalid_transition"

    def __init__(
        self,
        message: str,
        *,
        current: str | None = None,
        target: str | None = None,
    ) -> None:
        self.current = current
        self.target = target
        super().__init__(message)


class RefundExceededError(InvalidTransitionError):
    """Refund amount is larger than the remaining refundable balance."""


class ConcurrencyError(OrderflowError):
    """Aggregate was modified by someone else since it was loaded."""

    code = "conflict"


class CurrencyMismatchError(DomainValidationError):
    """Money operation mixed two currencies."""


class InvalidCallbackError(OrderflowError):
    """Webhook payload or signature could not be trusted."""

    code = "invalid_callback"


class GatewayError(OrderflowError):
    """Payment gateway call failed."""

    code = "gateway_error"


def _error_response(status_code: int, exc: OrderflowError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register orderflow exception handlers on a FastAPI app.

    More specific handlers must be registered first so FastAPI
    matches them before the generic OrderflowError handler.

    Handler order (most specific first):
    1. NotFoundError → 404
    2. GatewayError → 502
    3. InvalidCallbackError → 400
    4. ConcurrencyError → 409
    5. InvalidTransitionError → 409
    6. OrderflowError → 400 (catch-all)
    """

    @app.exception_handler(NotFoundError)
    async def _not_found(
        request: Request,
        exc: NotFoundError,
    ) -> JSONResponse:
        return _error_response(404, exc)

    @app.exception_handler(GatewayError)
    async def _gateway_error(
        request: Request,
        exc: GatewayError,
    ) -> JSONResponse:
        return _error_response(502, exc)

    @app.exception_handler(InvalidCallbackError)
    async def _invalid_callback(
        request: Request,
        exc: InvalidCallbackError,
    ) -> JSONResponse:
        return _error_response(400, exc)

    @app.exception_handler(ConcurrencyError)
    async def _conflict(
        request: Request,
        exc: ConcurrencyError,
    ) -> JSONResponse:
        return _error_response(409, exc)

    @app.exception_handler(InvalidTransitionError)
    async def _invalid_transition(
        request: Request,
        exc: InvalidTransitionError,
    ) -> JSONResponse:
        return _error_response(409, exc)

    @app.exception_handler(OrderflowError)
    async def _orderflow_error(
        request: Request,
        exc: OrderflowError,
    ) -> JSONResponse:
        return _error_response(400, exc)
