from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from app.api.credentials import router as credentials_router
from app.api.health import router as health_router
from app.api.metrics_endpoint import router as metrics_router
from app.api.verify import router as verify_router
from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.engine import lifespan_db
from app.db.redis import lifespan_redis
from app.middleware.metrics import MetricsMiddleware
from app.middleware.request_context import RequestContextMiddleware

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)

STORE_RETRY_AFTER_SECONDS = 5


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Nested so teardown runs in reverse order.
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="credential-service",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)


@app.exception_handler(OperationalError)
@app.exception_handler(InterfaceError)
async def store_unavailable(_request: Request, exc: Exception) -> JSONResponse:
    """The credential store is down.  Nothing was half-written; retry later."""
    logger.error("Credential store unavailable: %s", type(exc).__name__)
    return JSONResponse(
        status_code=503,
        content={"detail": "service unavailable"},
        headers={"Retry-After": str(STORE_RETRY_AFTER_SECONDS)},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.credentials.verify_base_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext → Metrics → CORS → route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(credentials_router)
app.include_router(verify_router)

logger.info(
    "credential-service started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
