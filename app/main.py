"""Learnpath billing - FastAPI main application."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.asyncio import Redis

from app.api.v1.router import router as v1_router
from app.config import get_settings
from app.core.errors import PaymentFlowError, ValidationError
from app.core.notifications import NotificationBus, log_listener
from app.database import Base, engine
from app.routers import payment_webhook
from app.services.backend_client import BackendApiClient

settings = get_settings()

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and open shared clients on startup."""
    logger.info("Starting %s", settings.APP_NAME)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    app.state.backend = BackendApiClient(settings.BACKEND_API_URL, timeout=settings.BACKEND_API_TIMEOUT_SECONDS)
    app.state.redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    app.state.notifications = NotificationBus()
    app.state.notifications.subscribe(log_listener)
    yield
    await app.state.backend.aclose()
    await app.state.redis.aclose()
    await engine.dispose()
    logger.info("%s shutdown complete", settings.APP_NAME)


app = FastAPI(
    title=settings.APP_NAME,
    description="Subscription access control and payment orchestration API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions and return stable 500 response."""
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again."},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(_: Request, exc: HTTPException):
    """Preserve explicit HTTP exceptions with their original status/detail."""
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(PaymentFlowError)
async def payment_flow_exception_handler(_: Request, exc: PaymentFlowError):
    """Map domain errors to their status; field errors name the field."""
    content = {"detail": exc.message}
    if isinstance(exc, ValidationError):
        content["field"] = exc.field
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_: Request, exc: RequestValidationError):
    """Return consistent 422 payload."""
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    loc = first_error.get("loc", [])
    loc_path = ".".join(str(p) for p in loc if p not in {"body", "query", "path"})
    msg = first_error.get("msg", "Validation failed")
    detail = f"{loc_path}: {msg}" if loc_path else msg
    return JSONResponse(
        status_code=422,
        content={
            "detail": detail,
            "errors": errors,
        },
    )


app.include_router(payment_webhook.router, prefix="/api")
app.include_router(v1_router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"message": f"{settings.APP_NAME} API", "status": "ok"}
