"""Shipment and payment lifecycle services for FastAPI."""

from typing import TYPE_CHECKING

__version__ = "0.1.0"

__all__ = [
    "CommandResult",
    "OrderflowConfig",
    "PaymentService",
    "ShipmentItemService",
    "ShipmentService",
    "UnitOfWork",
    "__version__",
    "create_orderflow_router",
    "register_exception_handlers",
]

if TYPE_CHECKING:
    from fastapi_orderflow.config import OrderflowConfig
    from fastapi_orderflow.exceptions import register_exception_handlers
    from fastapi_orderflow.handlers import CommandResult
    from fastapi_orderflow.protocols import UnitOfWork
    from fastapi_orderflow.router import create_orderflow_router
    from fastapi_orderflow.services import (
        PaymentService,
        ShipmentItemService,
        ShipmentService,
    )


def __getattr__(name: str):
    # Lazy imports to avoid loading all submodules on package import.
    if name == "OrderflowConfig":
        from fastapi_orderflow.config import OrderflowConfig

        return OrderflowConfig
    if name == "create_orderflow_router":
        from fastapi_orderflow.router import create_orderflow_router

        return create_orderflow_router
    if name == "CommandResult":
        from fastapi_orderflow.handlers import CommandResult

        return CommandResult
    if name in ("PaymentService", "ShipmentItemService", "ShipmentService"):
        from fastapi_orderflow import services

        return getattr(services, name)
    if name == "register_exception_handlers":
        from fastapi_orderflow import exceptions

        return exceptions.register_exception_handlers
    if name == "UnitOfWork":
        from fastapi_orderflow import protocols

        return protocols.UnitOfWork
    raise AttributeError(
        f"module 'fastapi_orderflow' has no attribute {name!r}"
    )
