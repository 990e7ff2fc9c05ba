"""
PayDesk Exchange — FastAPI application entry point.

Configures logging, error rendering, middleware, and registers all API routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.api import (
    admin,
    channels,
    orders,
    quote,
    rates,
    realtime,
    trusted,
    users,
    verifications,
    webhooks,
)
from app.core.errors import ExchangeError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    from app.database import engine
    from app.redis_client import redis

    yield

    await engine.dispose()
    await redis.aclose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Peer-to-peer exchange desk: PayPal balances to USDT and local fiat.",
    version="0.1.0",
    lifespan=lifespan,
)

# --- Error rendering: every failure is {"error": message} ---


@app.exception_handler(ExchangeError)
async def exchange_error_handler(request: Request, exc: ExchangeError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    body = {"error": exc.message}
    missing = getattr(exc, "missing", None)
    if missing:
        body["missing"] = missing
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    fields = [".".join(str(p) for p in e.get("loc", ())[1:]) for e in errors]
    message = f"Invalid {', '.join(f for f in fields if f)}" if any(fields) else "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": message})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"error": "Conflict"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Server error"},
    )


# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routers ---
app.include_router(quote.router, prefix="/api/v1/quote", tags=["Quote"])
app.include_router(channels.router, prefix="/api/v1/payment-channels", tags=["Payment Channels"])
app.include_router(rates.router, prefix="/api/v1/rates", tags=["Rates"])
app.include_router(rates.config_router, prefix="/api/v1/config", tags=["Rates"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(verifications.router, prefix="/api/v1/verifications", tags=["Verification"])
app.include_router(trusted.router, prefix="/api/v1", tags=["Trusted Program"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(webhooks.router, prefix="/api/v1/webhooks", tags=["Webhooks"])
app.include_router(realtime.router, prefix="/api/v1/realtime", tags=["Realtime"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])


@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers and monitoring."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": "0.1.0",
    }
