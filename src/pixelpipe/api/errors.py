"""Error envelope for every non-2xx API response.

Bodies are `{"detail": ..., "error_code": ...}`; some errors add fields next
to those two (e.g. `supported_content_types`, `batchItemFailures`).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import StrEnum
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIErrorCode(StrEnum):
    APP_NOT_INITIALIZED = "APP_NOT_INITIALIZED"
    API_KEY_NOT_CONFIGURED = "API_KEY_NOT_CONFIGURED"
    UNAUTHORIZED = "UNAUTHORIZED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    UNSUPPORTED_CONTENT_TYPE = "UNSUPPORTED_CONTENT_TYPE"
    EVENT_PAYLOAD_INVALID = "EVENT_PAYLOAD_INVALID"
    PROCESSING_FAILED = "PROCESSING_FAILED"
    CREDENTIAL_REJECTED = "CREDENTIAL_REJECTED"
    OBJECT_TOO_LARGE = "OBJECT_TOO_LARGE"
    OBJECT_NOT_FOUND = "OBJECT_NOT_FOUND"
    OBJECT_WRITE_FAILED = "OBJECT_WRITE_FAILED"
    REQUEST_VALIDATION_FAILED = "REQUEST_VALIDATION_FAILED"
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    HTTP_ERROR = "HTTP_ERROR"


# Framework-raised HTTP errors (unknown route, wrong method) carry no code.
_FRAMEWORK_CODES: dict[int, APIErrorCode] = {
    status.HTTP_400_BAD_REQUEST: APIErrorCode.BAD_REQUEST,
    status.HTTP_401_UNAUTHORIZED: APIErrorCode.UNAUTHORIZED,
    status.HTTP_404_NOT_FOUND: APIErrorCode.NOT_FOUND,
    status.HTTP_405_METHOD_NOT_ALLOWED: APIErrorCode.METHOD_NOT_ALLOWED,
    status.HTTP_503_SERVICE_UNAVAILABLE: APIErrorCode.SERVICE_UNAVAILABLE,
}


class ErrorEnvelope(BaseModel):
    detail: str
    error_code: str


class APIError(RuntimeError):
    """Raised by routes and dependencies; rendered as an ErrorEnvelope."""

    def __init__(
        self,
        detail: str,
        *,
        status_code: int,
        error_code: str,
        extra: Mapping[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.error_code = str(error_code)
        self.extra = dict(extra or {})
        self.headers = headers


def error_response(
    status_code: int,
    detail: str,
    error_code: str,
    *,
    extra: Mapping[str, Any] | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    body = ErrorEnvelope(detail=detail, error_code=str(error_code)).model_dump()
    body.update(extra or {})
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def jsonable_errors(errors: Iterable[Any]) -> list[dict[str, Any]]:
    """Keep `type`/`loc`/`msg` of pydantic errors; `ctx` and `input` may not serialize."""
    return [
        {
            "type": err.get("type"),
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": err.get("msg"),
        }
        for err in errors
    ]


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error raised while serving a request as an ErrorEnvelope."""

    @app.exception_handler(APIError)
    async def _on_api_error(_: Request, exc: APIError) -> JSONResponse:
        return error_response(
            exc.status_code,
            str(exc),
            exc.error_code,
            extra=exc.extra,
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def _on_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Request validation failed",
            APIErrorCode.REQUEST_VALIDATION_FAILED,
            extra={"validation_errors": jsonable_errors(exc.errors())},
        )

    # FastAPI's HTTPException subclasses Starlette's, so this covers both.
    @app.exception_handler(StarletteHTTPException)
    async def _on_http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _FRAMEWORK_CODES.get(exc.status_code, APIErrorCode.HTTP_ERROR)
        return error_response(exc.status_code, str(exc.detail), code, headers=exc.headers)

    @app.exception_handler(Exception)
    async def _on_unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled error serving %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=exc,
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            APIErrorCode.INTERNAL_SERVER_ERROR,
        )
