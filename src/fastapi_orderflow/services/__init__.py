"""Application services orchestrating aggregates and persistence."""

from fastapi_orderflow.services.payments import PaymentService
from fastapi_orderflow.services.shipments import (
    ShipmentItemService,
    ShipmentService,
)

__all__ = ["PaymentService", "ShipmentItemService", "ShipmentService"]
