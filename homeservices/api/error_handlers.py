# This file defines the marketplace error taxonomy and the handlers that render it.
# Services raise the typed errors below; each maps to one HTTP status and a default error code,
# and every failure body carries the request id so a client can quote it back.

from __future__ import annotations

import logging
from typing import Any, ClassVar

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from homeservices.api.response_envelope import request_id_of, utc_now

LOGGER = logging.getLogger("api")

_JSON_SCALARS = (str, int, float, bool, type(None), dict, list)


class APIError(Exception):
    """Error with an HTTP status, a stable machine-readable code, and optional details."""

    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        details: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details


class _KindedError(APIError):
    http_status: ClassVar[int] = 500
    default_code: ClassVar[str] = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, *, error_code: str | None = None, details: Any | None = None) -> None:
        super().__init__(
            status_code=self.http_status,
            error_code=error_code or self.default_code,
            message=message,
            details=details,
        )


class ValidationFailedError(_KindedError):
    """Malformed or missing input, or a bad enum value."""

    http_status = 400
    default_code = "VALIDATION_FAILED"


class NotFoundError(_KindedError):
    """Referenced entity is absent or not visible to the caller."""

    http_status = 404
    default_code = "NOT_FOUND"


class ConflictError(_KindedError):
    http_status = 409
    default_code = "CONFLICT"


class InsufficientFundsError(_KindedError):
    http_status = 400
    default_code = "INSUFFICIENT_FUNDS"


class InvalidTransitionError(_KindedError):
    """Status or payment status precondition not met."""

    http_status = 400
    default_code = "INVALID_TRANSITION"


class ForbiddenError(_KindedError):
    http_status = 403
    default_code = "FORBIDDEN"


class UnauthenticatedError(_KindedError):
    http_status = 401
    default_code = "UNAUTHENTICATED"


def error_response(
    request: Request, status_code: int, error_code: str, message: str, details: Any | None = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": request_id_of(request),
            "timestamp": utc_now().isoformat(),
        },
    )


def validation_details(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Pydantic error entries minus `ctx`, with non-JSON inputs stringified."""

    details = []
    for error in exc.errors():
        entry = {key: value for key, value in error.items() if key != "ctx"}
        if not isinstance(entry.get("input"), _JSON_SCALARS):
            entry["input"] = str(entry["input"])
        details.append(entry)
    return details


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(APIError)
    async def on_api_error(request: Request, exc: APIError) -> JSONResponse:
        return error_response(request, exc.status_code, exc.error_code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def on_invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            request, 422, "VALIDATION_ERROR", "Invalid request parameters.", validation_details(exc)
        )

    @app.exception_handler(StarletteHTTPException)
    async def on_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = "ROUTE_NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        return error_response(request, exc.status_code, code, str(exc.detail))

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception(
            "Unhandled error request_id=%s path=%s", request_id_of(request), request.url.path, exc_info=exc
        )
        return error_response(request, 500, "INTERNAL_SERVER_ERROR", "The server encountered an unexpected error.")
