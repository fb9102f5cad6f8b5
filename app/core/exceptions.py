"""
Domain errors and global exception handlers — prevents stack-trace leakage to clients.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


# ── Domain errors ───────────────────────────────────────────────────
class AppError(Exception):
    """Base class for errors that map to a specific HTTP response."""

    status_code = 500
    detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class JourneyAlreadyClosed(AppError):
    """All four punches of the day are already recorded."""

    status_code = 409
    detail = "Workday already closed"


class RecordNotFound(AppError):
    status_code = 404
    detail = "Record not found"


class PersistenceFailure(AppError):
    status_code = 500
    detail = "Internal database error"


class InvalidDateRange(AppError):
    status_code = 422
    detail = "end_date must not be before start_date"


class SweepNotDue(AppError):
    status_code = 409
    detail = "Auto-close cutoff not reached yet"


class EmailDeliveryError(AppError):
    status_code = 502
    detail = "Could not deliver email"


# ── Handlers ────────────────────────────────────────────────────────
async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc.detail, exc_info=exc.__cause__)
        # Persistence details stay in the log
        detail = type(exc).detail if isinstance(exc, PersistenceFailure) else exc.detail
    else:
        logger.info("%s: %s", type(exc).__name__, exc.detail)
        detail = exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": detail, "success": False},
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
