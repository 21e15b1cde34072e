"""
FastAPI application factory.

* Registers routes for sessions, clients, orders, vouchers, reservations,
  drivers, reports and admin.
* Starts / stops the background notification worker via lifespan events.
* Maps domain errors to ``{"detail", "code"}`` JSON responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from taxidispatch.api.middleware import limiter
from taxidispatch.api.routes import (
    admin,
    clients,
    drivers,
    orders,
    reports,
    reservations,
    sessions,
    vouchers,
)
from taxidispatch.domain.exceptions import (
    DispatchError,
    InvalidStateTransition,
    NotFound,
    RegistrationInProgress,
    SessionInvalid,
    UnitInactive,
    ValidationFailed,
)
from taxidispatch.infrastructure.locks import LockNotAcquired
from taxidispatch.workers import notifier as _notifier

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

STATUS_BY_ERROR = (
    (ValidationFailed, 422),
    (NotFound, 404),
    (UnitInactive, 409),
    (InvalidStateTransition, 409),
    (RegistrationInProgress, 409),
    (SessionInvalid, 401),
)


def error_body(detail: str, code: str) -> dict:
    return {"detail": detail, "code": code}


async def dispatch_error_handler(request: Request, exc: DispatchError):
    status_code = next(
        (status for cls, status in STATUS_BY_ERROR if isinstance(exc, cls)), 400
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.message, exc.code),
        headers=headers,
    )


async def lock_busy_handler(request: Request, exc: LockNotAcquired):
    logger.info("Request to %s hit a held lock: %s", request.url.path, exc)
    return JSONResponse(
        status_code=409,
        content=error_body(
            "Another operator is working on this record, try again", "busy"
        ),
    )


async def backend_error_handler(request: Request, exc: Exception):
    logger.exception("Backend failure while serving %s", request.url.path)
    return JSONResponse(
        status_code=503,
        content=error_body(
            "Storage is temporarily unavailable, please retry", "backend_unavailable"
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the notification worker on startup; stop on shutdown."""
    await _notifier.start_notification_loop()
    yield
    await _notifier.stop_notification_loop()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Taxi Dispatch Console API",
        description=(
            "Back office for a radio-taxi dispatch desk: resolves callers by "
            "phone, registers ride orders, assigns units, closes trips with "
            "corporate vouchers and archives every order by day."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Error mapping
    app.add_exception_handler(DispatchError, dispatch_error_handler)
    app.add_exception_handler(LockNotAcquired, lock_busy_handler)
    app.add_exception_handler(SQLAlchemyError, backend_error_handler)
    app.add_exception_handler(RedisError, backend_error_handler)

    # Routers
    for module in (
        sessions,
        clients,
        orders,
        vouchers,
        reservations,
        drivers,
        reports,
        admin,
    ):
        app.include_router(module.router, prefix="/api/v1")

    return app
