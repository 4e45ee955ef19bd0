"""Main application entry point."""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import redis
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor

from config import (
    API_VERSION,
    RATE_LIMIT_ENABLED,
    RATE_LIMIT_PER_MINUTE_IP,
    RATE_LIMIT_PER_MINUTE_USER,
    REDIS_URL,
    SEED_DEMO_DATA,
    STORE_BACKEND,
    TELEMETRY_ENABLED,
)
from database import init_db, engine, seed_demo_data
from errors import MarketplaceError
from monitoring import init_profiling
from logging_config import setup_logging
from routers import orders, payments, products, sellers
from redis_rate_limiter import RedisRateLimiter
from services.memory import InMemoryStore, InMemoryUnitOfWork

# Setup structured logging
setup_logging()
logger = logging.getLogger(__name__)


# Sync client: the rate limiter middleware calls it inline
redis_client = redis.from_url(REDIS_URL, decode_responses=True) if RATE_LIMIT_ENABLED else None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info("Starting application...", extra={"store_backend": STORE_BACKEND})

    if STORE_BACKEND == "memory":
        store = InMemoryStore()
        if SEED_DEMO_DATA:
            seed_demo_data(InMemoryUnitOfWork(store))
        app.state.memory_store = store
    else:
        init_db(seed=SEED_DEMO_DATA)

    if redis_client is not None:
        if TELEMETRY_ENABLED:
            RedisInstrumentor().instrument(redis_client=redis_client)
        app.state.redis_client = redis_client
        logger.info("Redis client initialized for rate limiting")

    init_profiling()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    if redis_client is not None:
        redis_client.close()
    logger.info("Application shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="Marketplace Order Service",
    version=API_VERSION,
    lifespan=lifespan
)

if redis_client is not None:
    app.add_middleware(
        RedisRateLimiter,
        redis_client=redis_client,
        requests_per_minute_ip=RATE_LIMIT_PER_MINUTE_IP,
        requests_per_minute_user=RATE_LIMIT_PER_MINUTE_USER
    )

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Instrument FastAPI and SQLAlchemy
if TELEMETRY_ENABLED:
    FastAPIInstrumentor.instrument_app(app)
    SQLAlchemyInstrumentor().instrument(engine=engine)


def _failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return _failure(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"]
        }
        for error in exc.errors()
    ]
    logger.info("Request validation failed", extra={"path": request.url.path, "errors": errors})
    return _failure(400, "Validation failed", errors=errors)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error", extra={"path": request.url.path, "method": request.method})
    return _failure(500, "Server error")


# Health check endpoint
@app.get("/api/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}


# Include routers
app.include_router(orders.router)
app.include_router(products.router)
app.include_router(sellers.router)
app.include_router(payments.router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
