"""FastAPI example app demonstrating fastapi-orderflow."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from payment_sim import SandboxGateway, build_sim_router
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fastapi_orderflow import (
    OrderflowConfig,
    create_orderflow_router,
    register_exception_handlers,
)
from fastapi_orderflow.contrib.sqlalchemy.models import Base
from fastapi_orderflow.contrib.sqlalchemy.repository import (
    SQLAlchemyUnitOfWork,
)

logging.basicConfig(level=logging.INFO)

# --- Database setup ---

DATABASE_URL = "sqlite+aiosqlite:///./example.db"
engine = create_async_engine(DATABASE_URL, echo=False)
async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# --- Library integration ---

config = OrderflowConfig(webhook_secret="sandbox-secret")
gateway = SandboxGateway(secret=config.webhook_secret)

unit_of_work = SQLAlchemyUnitOfWork(async_session)

orderflow_router = create_orderflow_router(
    config=config,
    unit_of_work=unit_of_work,
    gateway=gateway,
)

# --- FastAPI app ---


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title="fastapi-orderflow demo",
    lifespan=lifespan,
)
register_exception_handlers(app)
app.include_router(orderflow_router, prefix="/api")
app.include_router(build_sim_router(gateway))
