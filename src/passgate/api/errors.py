"""Exception handlers mapping service errors to HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from passgate.api.middleware import get_request_id
from passgate.schemas import ErrorResponse
from passgate.services.errors import AccountError, ValidationFailure

logger = logging.getLogger(__name__)


def _error_response(
    status_code: int,
    detail: str,
    code: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=detail, code=code).model_dump(),
        headers=headers,
    )


async def account_error_handler(_request: Request, exc: AccountError) -> JSONResponse:
    """Render an AccountError with its status, code and public message."""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _error_response(exc.status_code, exc.message, exc.code, headers)


async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as 400 with a readable summary."""
    messages = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())[1:])
        messages.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    detail = "; ".join(messages) or ValidationFailure.default_message
    return _error_response(ValidationFailure.status_code, detail, ValidationFailure.code)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors and return a generic 500."""
    logger.error(
        f"[{get_request_id() or '-'}] Unhandled error on {request.method} {request.url.path}: {exc!r}",
        exc_info=exc,
    )
    return _error_response(500, "Internal server error", "internal_error")


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on ``app``."""
    app.add_exception_handler(AccountError, account_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
