from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tasklist.api.schemas import Envelope, ErrorBody
from tasklist.logging import get_logger
from tasklist.service.errors import ServiceError
from tasklist.storage.errors import NotFoundError, StoreError, UnauthorizedError

logger = get_logger(__name__)

# Stable error codes mapped from HTTP status codes
_STATUS_TO_CODE = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "validation_error",
    422: "validation_error",
    500: "server_error",
}


def _error_code_for_status(status_code: int) -> str:
    return _STATUS_TO_CODE.get(status_code, "server_error")


def _error_response(
    status_code: int,
    message: str,
    details: dict | list | None = None,
    code: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build an error envelope response."""
    error_code = code or _error_code_for_status(status_code)
    error_body = ErrorBody(code=error_code, message=message, details=details)
    envelope = Envelope(status="error", error=error_body)
    return JSONResponse(
        status_code=status_code, content=envelope.model_dump(), headers=headers
    )


def _status_for_store_error(exc: StoreError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, UnauthorizedError):
        return 403
    return 500


def register_exception_handlers(app: FastAPI) -> None:
    """Install envelope-producing handlers for store, service and framework errors."""

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError):
        status_code = _status_for_store_error(exc)
        if status_code >= 500:
            logger.error(
                "store_error",
                path=request.url.path,
                method=request.method,
                error_type=type(exc).__name__,
                message=exc.message,
                detail=exc.detail,
            )
            # Storage internals (paths, OS errors) stay in the log
            return _error_response(500, "internal server error", code="server_error")
        logger.info(
            "store_access_error",
            path=request.url.path,
            method=request.method,
            status_code=status_code,
            message=exc.message,
        )
        return _error_response(status_code, exc.message, exc.detail)

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "service_error",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            detail=exc.detail,
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _error_response(
            exc.status_code,
            exc.message,
            exc.detail or None,
            code=exc.error_code,
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        logger.warning(
            "request_validation_error",
            path=request.url.path,
            method=request.method,
            error_count=len(exc.errors()),
        )
        return _error_response(
            422,
            "request validation failed",
            jsonable_encoder(exc.errors()),
            code="validation_error",
        )

    # Starlette raises its own class for unmatched paths and methods; FastAPI's subclasses it
    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "http error"
        details = exc.detail if isinstance(exc.detail, dict) else None
        if exc.status_code >= 500:
            logger.error(
                "http_error",
                path=request.url.path,
                method=request.method,
                status_code=exc.status_code,
                message=message,
            )
        return _error_response(
            exc.status_code, message, details, headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return _error_response(500, "internal server error", code="server_error")
