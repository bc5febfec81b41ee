"""
FastAPI application entry point.
Configures routes, middleware, and lifecycle events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from omnigo.config import settings
from omnigo.database import init_db, close_db
from omnigo.errors import AuthorizationError, BusinessRuleError, NotFoundError, PiNetworkError
from omnigo.logging_config import configure_logging
from omnigo.redis import RedisClient

from omnigo.api.webhooks.pi import router as pi_webhook_router
from omnigo.api.payments import router as payments_router
from omnigo.api.orders import router as orders_router
from omnigo.api.stores import router as stores_router
from omnigo.api.chat import router as chat_router
from omnigo.api.notifications import router as notifications_router
from omnigo.api.discounts import router as discounts_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle manager."""
    # Startup
    configure_logging()
    logger.info("Starting up OmniGo payments...")

    if not settings.pi_api_key:
        logger.warning("PI_API_KEY not set - Pi payments run in mock mode")
    if not settings.pi_webhook_secret:
        logger.warning("PI_WEBHOOK_SECRET not set - webhook signatures are not verified")

    await init_db()

    # Initialize Redis
    try:
        RedisClient.get_client()
    except Exception as e:
        logger.warning(f"Failed to initialize Redis: {e}")

    yield

    # Shutdown
    await RedisClient.close()
    await close_db()
    logger.info("Shutting down...")


app = FastAPI(
    title="OmniGo",
    description="Marketplace payments and payouts on Pi Network",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)


# Domain errors -> HTTP
@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    logger.info(f"Forbidden {request.url.path}: {exc}")
    return JSONResponse(status_code=403, content={"status": "error", "message": str(exc)})


@app.exception_handler(BusinessRuleError)
async def business_rule_error_handler(request: Request, exc: BusinessRuleError):
    logger.info(f"Rejected {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"status": "error", "message": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"status": "error", "message": str(exc)})


@app.exception_handler(PiNetworkError)
async def pi_network_error_handler(request: Request, exc: PiNetworkError):
    logger.error(f"Pi Network error on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"status": "error", "message": str(exc)})


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal Server Error"},
    )


# CORS middleware
origins = []
if settings.is_development:
    origins.append("*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "env": settings.app_env,
        "pi_sandbox": settings.pi_sandbox,
    }


# Pi Network calls the webhook at /pi/payments
app.include_router(
    pi_webhook_router,
    tags=["webhooks"],
)

app.include_router(
    payments_router,
    prefix="/payments",
    tags=["payments"],
)
app.include_router(
    orders_router,
    prefix="/orders",
    tags=["orders"],
)
app.include_router(
    stores_router,
    tags=["stores"],
)
app.include_router(
    chat_router,
    tags=["chat"],
)
app.include_router(
    notifications_router,
    prefix="/notifications",
    tags=["notifications"],
)
app.include_router(
    discounts_router,
    prefix="/discounts",
    tags=["discounts"],
)
