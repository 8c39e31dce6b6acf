from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class RepairTrackerError(Exception):
    """Base error for every repair tracker failure."""


class ValidationError(RepairTrackerError):
    """Rejected input. Nothing was persisted or broadcast."""

    def __init__(self, message: str = "Invalid JSON data") -> None:
        super().__init__(message)
        self.message = message


class InvalidDocumentName(ValidationError):
    """Document name is not a plain ``*.json`` file name."""

    def __init__(self, name: str) -> None:
        super().__init__("Invalid document name")
        self.name = name


class StorageError(RepairTrackerError):
    """Underlying storage I/O failed. Never retried internally."""


class NotFoundError(RepairTrackerError):
    """Reserved for lookups that have no empty default.

    Documents never raise this: a missing document reads as ``[]``.
    """


class TransportError(RepairTrackerError):
    """A live channel could not accept or deliver a message."""


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"error": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def validation_error_handler(request: Request, exc: ValidationError):
    return ErrorEnvelope(status_code=status.HTTP_400_BAD_REQUEST, message=exc.message)


async def storage_error_handler(request: Request, exc: StorageError):
    logger.error(
        "storage.failed",
        extra={"extra_data": {"path": request.url.path, "error": str(exc)}},
    )
    return ErrorEnvelope(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, message="Server error")


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


__all__ = [
    "ErrorEnvelope",
    "InvalidDocumentName",
    "NotFoundError",
    "RepairTrackerError",
    "StorageError",
    "TransportError",
    "ValidationError",
    "http_exception_handler",
    "storage_error_handler",
    "validation_error_handler",
]
