from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Error rendered as ``{"error": ..., "message": ..., **extra}``."""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str | None = None,
        *,
        extra: dict[str, Any] | None = None,
    ):
        super().__init__(message or error)
        self.status_code = status_code
        self.error = error
        self.message = message or error
        self.extra = dict(extra or {})

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error, "message": self.message}
        payload.update(self.extra)
        return payload


def bad_request(message: str, *, error: str = "Invalid input", **extra: Any) -> ApiError:
    return ApiError(status.HTTP_400_BAD_REQUEST, error, message, extra=extra)


def not_found(message: str) -> ApiError:
    return ApiError(status.HTTP_404_NOT_FOUND, "Not found", message)


def conflict(message: str) -> ApiError:
    return ApiError(status.HTTP_409_CONFLICT, "Conflict", message)


def internal_error(message: str, *, error: str = "Internal error") -> ApiError:
    return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, error, message)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        details.append({"field": location, "message": item.get("msg", "invalid value")})
    first = details[0]["message"] if details else "Request body is invalid."
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid input", "message": first, "details": details},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error route=%s method=%s", request.url.path, request.method)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal error", "message": "Something went wrong. Please try again."},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
