"""Command/query handlers returning a uniform :class:`CommandResult`.

Handlers validate inbound payloads with the pydantic schemas, call the
application services, and translate every failure into a result code
instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from fastapi_orderflow.domain.shipments import (
    CreateShipmentData,
    ShipmentFilters,
    ShipmentItemData,
    ShipmentQueryOptions,
)
from fastapi_orderflow.exceptions import (
    ConcurrencyError,
    GatewayError,
    InvalidTransitionError,
    NotFoundError,
    OrderflowError,
    PaymentIntentNotFoundError,
    ShipmentNotFoundError,
)
from fastapi_orderflow.schemas import (
    CreatePaymentIntentRequest,
    CreateShipmentRequest,
    FailPaymentRequest,
    GatewayCheckoutRequest,
    GatewayCheckoutResponse,
    ListShipmentsRequest,
    ListWebhookEventsRequest,
    PaymentIntentDTO,
    PaymentTransactionDTO,
    ProcessPaymentRequest,
    RefundPaymentRequest,
    ShipmentItemInput,
    ShipmentItemResponse,
    ShipmentListResponse,
    ShipmentResponse,
    UpdateCarrierRequest,
    UpdateGiftRequest,
    UpdateItemQuantityRequest,
    UpdateLabelRequest,
    UpdateServiceRequest,
    UpdateShipmentStatusRequest,
    WebhookEventListResponse,
)
from fastapi_orderflow.services.payments import PaymentService
from fastapi_orderflow.services.shipments import (
    ShipmentItemService,
    ShipmentService,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)

Payload = Mapping[str, Any] | BaseModel | None

HTTP_STATUS_BY_CODE = {
    "validation_error": 400,
    "invalid_transition": 400,
    "not_found": 404,
    "conflict": 409,
    "gateway_error": 502,
    "internal_error": 500,
}


@dataclass
class CommandResult(Generic[T]):
    success: bool
    data: T | None = None
    error: str | None = None
    errors: list[str] = field(default_factory=list)
    code: str | None = None

    @classmethod
    def ok(cls, data: T | None = None) -> CommandResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls,
        error: str,
        errors: list[str] | None = None,
        code: str = "validation_error",
    ) -> CommandResult[T]:
        return cls(
            success=False,
            error=error,
            errors=list(errors or [error]),
            code=code,
        )

    def status_code(self, success_status: int = 200) -> int:
        if self.success:
            return success_status
        return HTTP_STATUS_BY_CODE.get(self.code or "", 400)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "errors": self.errors,
            "code": self.code,
        }


def to_response(
    result: CommandResult[Any], success_status: int = 200
) -> JSONResponse:
    """Render a CommandResult as a JSON response with its HTTP status."""
    return JSONResponse(
        status_code=result.status_code(success_status),
        content=jsonable_encoder(result.to_dict()),
    )


def _code_for(exc: OrderflowError) -> str:
    if isinstance(exc, NotFoundError):
        return "not_found"
    if isinstance(exc, InvalidTransitionError):
        return "invalid_transition"
    if isinstance(exc, ConcurrencyError):
        return "conflict"
    if isinstance(exc, GatewayError):
        return "gateway_error"
    return "validation_error"


def _format_errors(exc: ValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        if location:
            messages.append(f"{location}: {error['msg']}")
        else:
            messages.append(error["msg"])
    return messages


def parse(model: type[M], payload: Payload) -> M:
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    return model.model_validate(payload or {})


async def execute(action: Callable[[], Awaitable[T]]) -> CommandResult[T]:
    """Run ``action`` and wrap its outcome in a CommandResult."""
    try:
        return CommandResult.ok(await action())
    except ValidationError as exc:
        return CommandResult.fail(
            "Validation failed",
            errors=_format_errors(exc),
            code="validation_error",
        )
    except OrderflowError as exc:
        logger.info("Command rejected (%s): %s", _code_for(exc), exc)
        return CommandResult.fail(str(exc), code=_code_for(exc))
    except Exception:
        logger.exception("Unexpected error while handling command")
        return CommandResult.fail(
            "Internal server error", code="internal_error"
        )


def _item_data(item: ShipmentItemInput) -> ShipmentItemData:
    return ShipmentItemData(
        order_item_id=item.order_item_id,
        qty=item.qty,
        gift_wrap=item.gift_wrap,
        gift_message=item.gift_message,
    )


class ShipmentHandlers:
    def __init__(self, service: ShipmentService) -> None:
        self.service = service

    async def create_shipment(
        self, payload: Payload
    ) -> CommandResult[ShipmentResponse]:
        async def action() -> ShipmentResponse:
            request = parse(CreateShipmentRequest, payload)
            shipment = await self.service.create_shipment(
                CreateShipmentData(
                    order_id=request.order_id,
                    carrier=request.carrier,
                    service=request.service,
                    label_url=request.label_url,
                    is_gift=request.is_gift,
                    gift_message=request.gift_message,
                    items=[_item_data(item) for item in request.items],
                )
            )
            return ShipmentResponse.from_shipment(shipment)

        return await execute(action)

    async def get_shipment(
        self, shipment_id: str
    ) -> CommandResult[ShipmentResponse]:
        async def action() -> ShipmentResponse:
            shipment = await self.service.get_shipment(shipment_id)
            if shipment is None:
                raise ShipmentNotFoundError(shipment_id)
            return ShipmentResponse.from_shipment(shipment)

        return await execute(action)

    async def get_shipments_by_order_id(
        self, order_id: str
    ) -> CommandResult[list[ShipmentResponse]]:
        async def action() -> list[ShipmentResponse]:
            shipments = await self.service.get_shipments_by_order_id(order_id)
            return [ShipmentResponse.from_shipment(s) for s in shipments]

        return await execute(action)

    async def list_shipments(
        self, payload: Payload = None
    ) -> CommandResult[ShipmentListResponse]:
        async def action() -> ShipmentListResponse:
            request = parse(ListShipmentsRequest, payload)
            options = ShipmentQueryOptions(
                limit=request.limit or self.service.default_page_size,
                offset=request.offset,
                sort_by=request.sort_by,
                sort_order=request.sort_order,
            )
            result = await self.service.list_shipments(
                ShipmentFilters(
                    order_id=request.order_id,
                    status=request.status,
                    carrier=request.carrier,
                    service=request.service,
                    start_date=request.start_date,
                    end_date=request.end_date,
                ),
                options,
            )
            return ShipmentListResponse(
                shipments=[
                    ShipmentResponse.from_shipment(s) for s in result.shipments
                ],
                total=result.total,
                limit=min(options.limit, self.service.max_page_size),
                offset=options.offset,
            )

        return await execute(action)

    async def update_shipment_status(
        self, shipment_id: str, payload: Payload
    ) -> CommandResult[ShipmentResponse]:
        async def action() -> ShipmentResponse:
            request = parse(UpdateShipmentStatusRequest, payload)
            shipment = await self.service.update_shipment_status(
                shipment_id, request.status
            )
            return ShipmentResponse.from_shipment(shipment)

        return await execute(action)

    async def add_shipment_item(
        self, shipment_id: str, payload: Payload
    ) -> CommandResult[ShipmentResponse]:
        async def action() -> ShipmentResponse:
            item = parse(ShipmentItemInput, payload)
            shipment = await self.service.add_shipment_item(
                shipment_id, _item_data(item)
            )
            return ShipmentResponse.from_shipment(shipment)

        return await execute(action)

    async def remove_shipment_item(
        self, shipment_id: str, order_item_id: str
    ) -> CommandResult[ShipmentResponse]:
        async def action() -> ShipmentResponse:
            shipment = await self.service.remove_shipment_item(
                shipment_id, order_item_id
            )
            return ShipmentResponse.from_shipment(shipment)

        return await execute(action)

    async def update_shipment_carrier(
        self, shipment_id: str, payload: Payload
    ) -> CommandResult[ShipmentResponse]:
        async def action() -> ShipmentResponse:
            request = parse(UpdateCarrierRequest, payload)
            shipment = await self.service.update_shipment_carrier(
                shipment_id, request.carrier
            )
            return ShipmentResponse.from_shipment(shipment)

        return await execute(action)

    async def update_shipment_service(
        self, shipment_id: str, payload: Payload
    ) -> CommandResult[ShipmentResponse]:
        async def action() -> ShipmentResponse:
            request = parse(UpdateServiceRequest, payload)
            shipment = await self.service.update_shipment_service(
                shipment_id, request.service
            )
            return ShipmentResponse.from_shipment(shipment)

        return await execute(action)

    async def update_shipment_label_url(
        self, shipment_id: str, payload: Payload
    ) -> CommandResult[ShipmentResponse]:
        async def action() -> ShipmentResponse:
            request = parse(UpdateLabelRequest, payload)
            shipment = await self.service.update_shipment_label_url(
                shipment_id, request.label_url
            )
            return ShipmentResponse.from_shipment(shipment)

        return await execute(action)

    async def update_shipment_gift(
        self, shipment_id: str, payload: Payload
    ) -> CommandResult[ShipmentResponse]:
        async def action() -> ShipmentResponse:
            request = parse(UpdateGiftRequest, payload)
            shipment = await self.service.update_shipment_gift(
                shipment_id, request.is_gift, request.gift_message
            )
            return ShipmentResponse.from_shipment(shipment)

        return await execute(action)

    async def delete_shipment(self, shipment_id: str) -> CommandResult[None]:
        return await execute(lambda: self.service.delete_shipment(shipment_id))


class ShipmentItemHandlers:
    """Item edits that leave the shipment header alone."""

    def __init__(self, service: ShipmentItemService) -> None:
        self.service = service

    async def get_shipment_items(
        self, shipment_id: str
    ) -> CommandResult[list[ShipmentItemResponse]]:
        async def action() -> list[ShipmentItemResponse]:
            items = await self.service.get_shipment_items(shipment_id)
            return [ShipmentItemResponse.from_item(i) for i in items]

        return await execute(action)

    async def update_shipment_item_quantity(
        self, shipment_id: str, order_item_id: str, payload: Payload
    ) -> CommandResult[ShipmentItemResponse]:
        async def action() -> ShipmentItemResponse:
            request = parse(UpdateItemQuantityRequest, payload)
            item = await self.service.update_shipment_item_quantity(
                shipment_id, order_item_id, request.qty
            )
            return ShipmentItemResponse.from_item(item)

        return await execute(action)


class PaymentHandlers:
    def __init__(self, service: PaymentService) -> None:
        self.service = service

    async def create_payment_intent(
        self, payload: Payload
    ) -> CommandResult[PaymentIntentDTO]:
        async def action() -> PaymentIntentDTO:
            request = parse(CreatePaymentIntentRequest, payload)
            return await self.service.create_payment_intent(request)

        return await execute(action)

    async def get_payment_intent(
        self, intent_id: str
    ) -> CommandResult[PaymentIntentDTO]:
        async def action() -> PaymentIntentDTO:
            intent = await self.service.get_payment_intent(intent_id)
            if intent is None:
                raise PaymentIntentNotFoundError(intent_id)
            return intent

        return await execute(action)

    async def get_payment_intent_by_order_id(
        self, order_id: str
    ) -> CommandResult[PaymentIntentDTO]:
        async def action() -> PaymentIntentDTO:
            intent = await self.service.get_payment_intent_by_order_id(
                order_id
            )
            if intent is None:
                raise NotFoundError(
                    f"No payment intent found for order {order_id}"
                )
            return intent

        return await execute(action)

    async def get_payment_transactions(
        self, intent_id: str
    ) -> CommandResult[list[PaymentTransactionDTO]]:
        return await execute(
            lambda: self.service.get_payment_transactions(intent_id)
        )

    async def authorize_payment(
        self, intent_id: str, payload: Payload = None
    ) -> CommandResult[PaymentIntentDTO]:
        async def action() -> PaymentIntentDTO:
            request = parse(ProcessPaymentRequest, payload)
            return await self.service.authorize_payment(
                intent_id, request.psp_reference
            )

        return await execute(action)

    async def capture_payment(
        self, intent_id: str, payload: Payload = None
    ) -> CommandResult[PaymentIntentDTO]:
        async def action() -> PaymentIntentDTO:
            request = parse(ProcessPaymentRequest, payload)
            return await self.service.capture_payment(
                intent_id, request.psp_reference
            )

        return await execute(action)

    async def refund_payment(
        self, intent_id: str, payload: Payload = None
    ) -> CommandResult[PaymentIntentDTO]:
        async def action() -> PaymentIntentDTO:
            request = parse(RefundPaymentRequest, payload)
            return await self.service.refund_payment(
                intent_id, request.amount, request.reason
            )

        return await execute(action)

    async def cancel_payment(
        self, intent_id: str
    ) -> CommandResult[PaymentIntentDTO]:
        return await execute(lambda: self.service.cancel_payment(intent_id))

    async def void_payment(
        self, intent_id: str, payload: Payload = None
    ) -> CommandResult[PaymentIntentDTO]:
        async def action() -> PaymentIntentDTO:
            request = parse(ProcessPaymentRequest, payload)
            return await self.service.void_payment(
                intent_id, request.psp_reference
            )

        return await execute(action)

    async def fail_payment(
        self, intent_id: str, payload: Payload = None
    ) -> CommandResult[PaymentIntentDTO]:
        async def action() -> PaymentIntentDTO:
            request = parse(FailPaymentRequest, payload)
            return await self.service.fail_payment(intent_id, request.reason)

        return await execute(action)

    async def initiate_gateway_payment(
        self, payload: Payload
    ) -> CommandResult[GatewayCheckoutResponse]:
        async def action() -> GatewayCheckoutResponse:
            request = parse(GatewayCheckoutRequest, payload)
            return await self.service.initiate_gateway_payment(
                request, request.customer.model_dump()
            )

        return await execute(action)

    async def list_webhook_events(
        self, payload: Payload = None
    ) -> CommandResult[WebhookEventListResponse]:
        async def action() -> WebhookEventListResponse:
            request = parse(ListWebhookEventsRequest, payload)
            return await self.service.list_webhook_events(
                provider=request.provider,
                event_type=request.event_type,
                limit=request.limit,
                offset=request.offset,
            )

        return await execute(action)
