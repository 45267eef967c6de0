"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.v1.booking import router as booking_router
from src.api_client.client import close_api_client, get_api_client
from src.booking.errors import (
    BookingError,
    DraftLockedError,
    StepOrderError,
    SubmissionInProgressError,
)
from src.booking.session import SessionManager, SessionRegistry
from src.config import settings
from src.redis_client import close_redis_client, get_redis_client
from src.wizard.engine import WizardEngine

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.dev.ConsoleRenderer() if settings.environment == "development"
        else structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        getattr(logging, settings.log_level.upper(), logging.INFO)
    ),
)

logger = structlog.get_logger()

CONFLICT_ERRORS = (DraftLockedError, SubmissionInProgressError, StepOrderError)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info(
        "app_starting",
        environment=settings.environment,
        api_base_url=settings.api_base_url,
    )
    registry = SessionRegistry(SessionManager(get_redis_client()), get_api_client())
    app.state.engine = WizardEngine(registry)
    yield
    logger.info("app_shutting_down")
    await close_api_client()
    await close_redis_client()


app = FastAPI(
    title="Recovery Office Booking API",
    description="Booking wizard backend for Recovery Office consultations",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(booking_router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    status_code = 409 if isinstance(exc, CONFLICT_ERRORS) else 502
    logger.warning(
        "request_rejected",
        path=request.url.path,
        error=type(exc).__name__,
        status=status_code,
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Recovery Office Booking API",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health():
    """Own liveness plus the upstream booking API's health."""
    upstream = await get_api_client().health_check()
    return {"status": "ok", "api": upstream}
