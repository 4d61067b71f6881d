"""API error types and the mapping from engine errors to HTTP statuses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from voucherswap.core.exceptions import (
    ConcurrentUpdateError,
    ExchangeError,
    InvalidTransitionError,
    NotAuthorizedError,
    ReportNotFoundError,
    StoreUnavailableError,
    UserNotFoundError,
    VoucherNotFoundError,
)

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int = 400, detail: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail or message


class AuthenticationError(APIError):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed", detail: str | None = None):
        super().__init__(message, status_code=401, detail=detail)


_STATUS_BY_ERROR: tuple[tuple[type[ExchangeError], int], ...] = (
    (NotAuthorizedError, 403),
    (UserNotFoundError, 404),
    (VoucherNotFoundError, 404),
    (ReportNotFoundError, 404),
    (InvalidTransitionError, 409),
    (ConcurrentUpdateError, 409),
    (StoreUnavailableError, 503),
)


def status_for(exc: ExchangeError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail or exc.message, "error": exc.message},
    )


async def exchange_error_handler(request: Request, exc: ExchangeError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s -> %d: %s", request.method, request.url.path, status_code, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc), "error": "ValueError"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ExchangeError, exchange_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValueError, value_error_handler)  # type: ignore[arg-type]
