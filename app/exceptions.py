# app/exceptions.py
"""
Error taxonomy for the visitor system and the FastAPI handlers that map it to
HTTP responses. Client errors carry a message the caller can act on; server
errors return a generic message and keep the detail in the logs.
"""

from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.utils.logger import get_logger

logger = get_logger(__name__)


class VisitorSystemError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(VisitorSystemError):
    """Missing or malformed input — the caller's fault."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, fields: Optional[dict] = None):
        super().__init__(message)
        self.fields = fields or {}


class InvalidTransitionError(ValidationError):
    """The record is not in a state that allows the requested transition."""
    status_code = status.HTTP_409_CONFLICT


class NotFoundError(VisitorSystemError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, visitor_id: int):
        super().__init__(f"Visitor {visitor_id} not found")
        self.visitor_id = visitor_id


class StorageError(VisitorSystemError):
    """Store unavailable or constraint violated. Never retried."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class NotificationError(VisitorSystemError):
    """Email delivery failed. Advisory only, never surfaced to Register."""


class BadgeGenerationError(VisitorSystemError):
    """QR badge rendering failed. Advisory only, never surfaced to Register."""


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ValidationError)
    async def _validation_error_handler(_: Request, exc: ValidationError):
        content = {"detail": exc.message}
        if exc.fields:
            content["fields"] = exc.fields
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(NotFoundError)
    async def _not_found_handler(_: Request, exc: NotFoundError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(StorageError)
    async def _storage_error_handler(request: Request, exc: StorageError):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"detail": "Storage failure"})

    @app.exception_handler(RequestValidationError)
    async def _request_validation_handler(_: Request, exc: RequestValidationError):
        fields = {}
        for err in exc.errors():
            loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
            fields[".".join(loc) or "request"] = err.get("msg", "Invalid value")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid request", "fields": fields},
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )
