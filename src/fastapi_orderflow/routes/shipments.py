"""Shipment endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from fastapi_orderflow.dependencies import (
    get_shipment_handlers,
    get_shipment_item_handlers,
)
from fastapi_orderflow.handlers import (
    ShipmentHandlers,
    ShipmentItemHandlers,
    to_response,
)

router = APIRouter()


@router.post("/shipments")
async def create_shipment(
    payload: dict[str, Any] = Body(...),
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    """Create a shipment together with its items."""
    result = await handlers.create_shipment(payload)
    return to_response(result, success_status=201)


@router.get("/shipments")
async def list_shipments(
    request: Request,
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    """List shipments matching the query-string filters."""
    result = await handlers.list_shipments(dict(request.query_params))
    return to_response(result)


@router.get("/shipments/{shipment_id}")
async def get_shipment(
    shipment_id: str,
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    return to_response(await handlers.get_shipment(shipment_id))


@router.get("/orders/{order_id}/shipments")
async def get_order_shipments(
    order_id: str,
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    return to_response(await handlers.get_shipments_by_order_id(order_id))


@router.patch("/shipments/{shipment_id}/status")
async def update_shipment_status(
    shipment_id: str,
    payload: dict[str, Any] = Body(...),
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    result = await handlers.update_shipment_status(shipment_id, payload)
    return to_response(result)


@router.patch("/shipments/{shipment_id}/carrier")
async def update_shipment_carrier(
    shipment_id: str,
    payload: dict[str, Any] = Body(...),
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    result = await handlers.update_shipment_carrier(shipment_id, payload)
    return to_response(result)


@router.patch("/shipments/{shipment_id}/service")
async def update_shipment_service(
    shipment_id: str,
    payload: dict[str, Any] = Body(...),
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    result = await handlers.update_shipment_service(shipment_id, payload)
    return to_response(result)


@router.patch("/shipments/{shipment_id}/label")
async def update_shipment_label(
    shipment_id: str,
    payload: dict[str, Any] = Body(...),
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    result = await handlers.update_shipment_label_url(shipment_id, payload)
    return to_response(result)


@router.patch("/shipments/{shipment_id}/gift")
async def update_shipment_gift(
    shipment_id: str,
    payload: dict[str, Any] = Body(...),
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    result = await handlers.update_shipment_gift(shipment_id, payload)
    return to_response(result)


@router.get("/shipments/{shipment_id}/items")
async def get_shipment_items(
    shipment_id: str,
    handlers: ShipmentItemHandlers = Depends(get_shipment_item_handlers),
) -> JSONResponse:
    return to_response(await handlers.get_shipment_items(shipment_id))


@router.post("/shipments/{shipment_id}/items")
async def add_shipment_item(
    shipment_id: str,
    payload: dict[str, Any] = Body(...),
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    result = await handlers.add_shipment_item(shipment_id, payload)
    return to_response(result, success_status=201)


@router.delete("/shipments/{shipment_id}/items/{order_item_id}")
async def remove_shipment_item(
    shipment_id: str,
    order_item_id: str,
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    result = await handlers.remove_shipment_item(shipment_id, order_item_id)
    return to_response(result)


@router.patch("/shipments/{shipment_id}/items/{order_item_id}/qty")
async def update_shipment_item_quantity(
    shipment_id: str,
    order_item_id: str,
    payload: dict[str, Any] = Body(...),
    handlers: ShipmentItemHandlers = Depends(get_shipment_item_handlers),
) -> JSONResponse:
    """Change one item's quantity without touching the shipment header."""
    result = await handlers.update_shipment_item_quantity(
        shipment_id, order_item_id, payload
    )
    return to_response(result)


@router.delete("/shipments/{shipment_id}")
async def delete_shipment(
    shipment_id: str,
    handlers: ShipmentHandlers = Depends(get_shipment_handlers),
) -> JSONResponse:
    return to_response(await handlers.delete_shipment(shipment_id))
