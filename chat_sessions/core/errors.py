from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .logging import get_logger


class AppError(Exception):
    def __init__(self, code: str, message: str, status_code: int = 400, *, extra: Optional[Dict[str, Any]] = None) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)


class InvalidInputError(AppError):
    def __init__(self, message: str = "Message text cannot be empty.") -> None:
        super().__init__(code="INVALID_INPUT", message=message, status_code=422)


class SessionNotFoundError(AppError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            code="SESSION_NOT_FOUND",
            message="Session not found.",
            status_code=404,
            extra={"session_id": session_id},
        )


class SessionClosedError(AppError):
    def __init__(self, session_id: str) -> None:
        super().__init__(
            code="SESSION_CLOSED",
            message="Session has ended.",
            status_code=409,
            extra={"session_id": session_id},
        )


class ConcurrentTriggerViolationError(AppError):
    def __init__(self, pending_message_id: int, message_id: Optional[int] = None) -> None:
        super().__init__(
            code="CONCURRENT_TRIGGER",
            message="A response is already pending for this session.",
            status_code=409,
            extra={"pending_message_id": pending_message_id, "message_id": message_id},
        )


class ResponderError(AppError):
    def __init__(self, message: str = "Responder request failed.") -> None:
        super().__init__(code="RESPONDER_ERROR", message=message, status_code=502)


class ResponderTimeoutError(ResponderError):
    def __init__(self, message: str = "Responder did not answer in time.") -> None:
        super().__init__(message)
        self.code = "RESPONDER_TIMEOUT"
        self.status_code = 504


def _app_error_response(exc: AppError) -> JSONResponse:
    body: Dict[str, Any] = {"error": {"code": exc.code, "message": exc.message}}
    if exc.extra:
        body["error"]["details"] = exc.extra
    return JSONResponse(status_code=exc.status_code, content=body)


def setup_exception_handlers(app: FastAPI) -> None:
    logger = get_logger("exception-handler")

    @app.exception_handler(AppError)
    async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
        logger.warning("AppError", code=exc.code, message=exc.message, extra=exc.extra)
        return _app_error_response(exc)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
        body: Dict[str, Any] = {
            "error": {
                "code": "HTTP_ERROR",
                "message": exc.detail,
            }
        }
        logger.warning("HTTPException", status_code=exc.status_code, detail=exc.detail)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(ValidationError)
    async def pydantic_validation_handler(_: Request, exc: ValidationError) -> JSONResponse:
        logger.warning("ValidationError", errors=exc.errors())
        body: Dict[str, Any] = {
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed.",
                "details": exc.errors(),
            }
        }
        return JSONResponse(status_code=422, content=body)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled exception", exc_info=exc)
        body: Dict[str, Any] = {
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "Unexpected error occurred.",
            }
        }
        return JSONResponse(status_code=500, content=body)
