"""Exception handlers rendering every failure as {"error": {message, statusCode, code}}."""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from app.core.errors import AppError

logger = logging.getLogger(__name__)

_STATUS_TO_CODE = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    422: "validation_error",
    500: "server_error",
}

# Frames shown in non-production error bodies
MAX_STACK_FRAMES = 3


def _stack_excerpt(exc: BaseException) -> list[str]:
    frames = [
        f"{frame.filename}:{frame.lineno} in {frame.name}"
        for frame in traceback.extract_tb(exc.__traceback__)
        if "/app/" in frame.filename.replace("\\", "/")
    ]
    return frames[-MAX_STACK_FRAMES:]


def _error_response(
    status_code: int,
    message: str,
    code: str | None = None,
    exc: BaseException | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body: dict = {
        "message": message,
        "statusCode": status_code,
        "code": code or _STATUS_TO_CODE.get(status_code, "server_error"),
    }
    if exc is not None and not get_settings().is_production:
        body["stack"] = _stack_excerpt(exc)
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "cookie", "header")]
        prefix = f"{'.'.join(loc)}: " if loc else ""
        msg = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
        parts.append(f"{prefix}{msg}")
    return ", ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for application, validation, HTTP and unexpected errors."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "[%s] %s %s - %s",
            exc.status_code,
            request.method,
            request.url.path,
            exc.message,
            extra={"error_type": type(exc).__name__, "error_code": exc.code},
        )
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return _error_response(exc.status_code, exc.message, exc.code, exc, headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = f"Validation error: {_format_validation_errors(exc)}"
        logger.warning("[400] %s %s - %s", request.method, request.url.path, message)
        return _error_response(400, message, "validation_error")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        if exc.status_code == 404 and message == "Not Found":
            message = f"{request.method} {request.url.path} not found"
        return _error_response(exc.status_code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "[500] %s %s - unhandled %s",
            request.method,
            request.url.path,
            type(exc).__name__,
        )
        return _error_response(500, "Internal server error", "server_error", exc)
