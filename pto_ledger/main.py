from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from pto_ledger.api.health import router as health_router
from pto_ledger.api.router import api_router
from pto_ledger.config import get_settings
from pto_ledger.db import dispose_engine
from pto_ledger.exceptions import setup_exception_handlers
from pto_ledger.middleware import setup_middleware

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)

OPENAPI_TAGS = [
    {"name": "employees", "description": "Roster: register, activate, deactivate and purge employees."},
    {"name": "balances", "description": "Per-employee balances, usage, adjustments and reconciliation."},
    {"name": "accruals", "description": "Monthly accrual and year-end rollover batch triggers."},
    {"name": "adjustments", "description": "Mass adjustments across many employees in one transaction."},
    {"name": "audit", "description": "Append-only history of every balance change."},
    {"name": "health", "description": "Liveness and last batch periods."},
]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Log startup and release database connections on shutdown."""
    settings = get_settings()
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)
    yield
    logger.info("Shutting down %s", settings.app_name)
    await dispose_engine()


def create_app() -> FastAPI:
    """Build the ledger API: middleware, error mapping, then routers."""
    settings = get_settings()

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        openapi_tags=OPENAPI_TAGS,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    setup_middleware(application, settings)
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()
