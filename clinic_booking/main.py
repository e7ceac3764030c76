import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clinic_booking.api.routes import appointments, availability, holds
from clinic_booking.core.config import _ENV_FILE, settings
from clinic_booking.core.db import async_session_maker
from clinic_booking.core.errors import InvalidTransition, NotFound, SchedulingError, ValidationError
from clinic_booking.services.hold_service import purge_expired_holds
from clinic_booking.services.notification_service import LoggingNotificationGateway, NotificationGateway

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


async def _run_hold_cleanup() -> None:
    """Delete holds that expired while the process was down."""
    try:
        async with async_session_maker() as session:
            try:
                n = await purge_expired_holds(session)
                await session.commit()
                if n:
                    logger.info("Hold cleanup: deleted %d expired hold(s)", n)
            except Exception:
                await session.rollback()
                raise
    except Exception as e:
        logger.exception("Hold cleanup failed: %s", e)


def create_app(gateway: NotificationGateway | None = None, purge_on_startup: bool = True) -> FastAPI:
    """Composition root: the notification gateway is built here and shared through app.state."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
        logger.info(
            "Slot rules: duration %d-%d min, buffer %d-%d min, window %d days, hold TTL %d min",
            settings.min_slot_duration_minutes,
            settings.max_slot_duration_minutes,
            settings.min_buffer_minutes,
            settings.max_buffer_minutes,
            settings.max_advance_days,
            settings.hold_ttl_minutes,
        )
        if purge_on_startup:
            await _run_hold_cleanup()
        yield

    app = FastAPI(
        title="Clinic Booking API",
        description="Clinic availability, reservation holds and appointment negotiation",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.notification_gateway = gateway or LoggingNotificationGateway(settings.site_name)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    app.include_router(availability.router, prefix="/api/v1")
    app.include_router(holds.router, prefix="/api/v1")
    app.include_router(appointments.router, prefix="/api/v1")

    app.add_exception_handler(SchedulingError, scheduling_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    return app


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


def _status_for(exc: SchedulingError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, InvalidTransition):
        return 409
    return 500


async def scheduling_exception_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    status_code = _status_for(exc)
    if status_code == 409:
        logger.warning("Rejected transition on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"code": exc.code, "detail": str(exc)},
        headers=_cors_headers(request.headers.get("origin")),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return actual error in JSON; include CORS so 500 responses are not blocked by browser."""
    origin = request.headers.get("origin")
    headers = _cors_headers(origin)
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    detail = f"{type(exc).__name__}: {str(exc)}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
        headers=headers,
    )


app = create_app()
