"""
NexusMart Backend
FastAPI application entry point

- Stock alert cleanup scheduler with heartbeat metrics
- Rate limiting with SlowAPI
- Error sanitization middleware and a single JSON error envelope
- Health endpoint with DB ping
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import products, stock_alerts
from app.core.config import settings
from app.core.database import AsyncSessionLocal, init_models
from app.core.error_handler import (
    ErrorSanitizationMiddleware,
    domain_error_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.core.exceptions import NexusMartError
from app.core.rate_limit import limiter, rate_limit_exceeded_handler
from app.jobs.alert_cleanup import alert_cleanup_scheduler, cleanup_heartbeat

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

_alert_cleanup_task: Optional[asyncio.Task] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start the alert cleanup scheduler."""
    global _alert_cleanup_task

    await init_models()

    if settings.ALERT_CLEANUP_ENABLED:
        _alert_cleanup_task = asyncio.create_task(alert_cleanup_scheduler())
        logger.info("Stock alert cleanup scheduler ENABLED")
    else:
        logger.info("Stock alert cleanup scheduler DISABLED via config")

    yield

    if _alert_cleanup_task and not _alert_cleanup_task.done():
        _alert_cleanup_task.cancel()
        try:
            await _alert_cleanup_task
        except asyncio.CancelledError:
            logger.info("Stock alert cleanup scheduler cancelled")


app = FastAPI(
    lifespan=lifespan,
    title="NexusMart API",
    description="""
## NexusMart Storefront API

Product catalog and back-in-stock alerts.

### Stock alerts
- Subscribe with or without an account; repeat subscriptions are idempotent
- Signed-in shoppers can list, check and remove their alerts
- Restocking a product notifies every pending alert exactly once

### Authentication
Protected endpoints take a bearer access token.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check and monitoring endpoints"},
        {"name": "Products", "description": "Product catalog and inventory management"},
        {"name": "Stock Alerts", "description": "Back-in-stock subscriptions"},
    ],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Error envelope for domain and HTTP errors
app.add_exception_handler(NexusMartError, domain_error_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

# Catches unhandled exceptions
app.add_middleware(ErrorSanitizationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(stock_alerts.router, prefix="/api/stock-alerts", tags=["Stock Alerts"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "NexusMart API",
        "version": "1.0.0",
        "status": "operational"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check with an actual DB ping and the cleanup heartbeat.
    Returns 503 if the database is unreachable.
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "alert_cleanup": cleanup_heartbeat,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["database"] = f"error: {type(e).__name__}: {str(e)[:100]}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
