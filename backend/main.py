"""
FastAPI application entry point for the invoicing backend.

This module creates the FastAPI app instance, owns the database engine
lifecycle and registers all routers.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backend.config import settings
from backend.db.models import Base
from backend.db.session import create_db_engine, create_session_factory
from backend.routes.categories import router as categories_router
from backend.routes.customers import router as customers_router
from backend.routes.health import router as health_router
from backend.routes.invoices import router as invoices_router
from backend.routes.payments import router as payments_router
from backend.routes.settings import router as settings_router
from backend.routes.transactions import router as transactions_router
from backend.routes.users import router as users_router
from backend.utils.errors import ServiceError
from backend.utils.logging import configure_logging

configure_logging()

logger = logging.getLogger(__name__)


def _get_cors_origins() -> list[str]:
    """
    Get allowed CORS origins based on environment.

    - ENVIRONMENT=production: CORS_ALLOWED_ORIGINS (none when unset)
    - anything else: all origins, for local development

    Returns:
        List of allowed origin URLs, or ["*"] outside production.
    """
    if settings.is_production():
        if settings.CORS_ORIGINS:
            logger.info(f"CORS configured for production with {len(settings.CORS_ORIGINS)} allowed origins")
            return settings.CORS_ORIGINS
        logger.warning(
            "CORS_ALLOWED_ORIGINS not set in production. "
            "No web origins allowed. Set CORS_ALLOWED_ORIGINS for web clients."
        )
        return []

    logger.info(f"CORS configured for {settings.ENVIRONMENT}: allowing all origins")
    return ["*"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create the engine and session factory on startup, dispose on shutdown.

    A session factory already installed on app.state (tests) is kept.
    """
    engine = None
    if getattr(app.state, "session_factory", None) is None:
        engine = create_db_engine()
        Base.metadata.create_all(engine)
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)

    yield

    if engine is not None:
        engine.dispose()
        app.state.session_factory = None
        logger.info("Database engine disposed")


# Create FastAPI app
app = FastAPI(
    title="Invoicing API",
    description="Invoices, payments and the income/expense ledger",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Malformed input is a 400 invalid_request, shaped like every other error.

    The request body is not logged; it can carry passwords.
    """
    errors = exc.errors()
    logger.error(f"Validation error on {request.method} {request.url.path}: {errors}")

    message = "Invalid request"
    if errors:
        field = ".".join(str(part) for part in errors[0].get("loc", ())[1:])
        message = f"Invalid {field}: {errors[0].get('msg')}" if field else errors[0].get("msg", message)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": {
                "error": "invalid_request",
                "details": message,
                "errors": jsonable_encoder(errors),
            }
        }
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """ServiceErrors that escape a route keep their status and error code."""
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Anything unanticipated is a generic 500; the traceback is only logged."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": {
                "error": "internal_error",
                "details": "An unexpected error occurred"
            }
        }
    )


# Configure CORS with environment-based origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router)
app.include_router(invoices_router)
app.include_router(payments_router)
app.include_router(transactions_router)
app.include_router(categories_router)
app.include_router(customers_router)
app.include_router(settings_router)
app.include_router(users_router)

logger.info("FastAPI app initialized successfully")
