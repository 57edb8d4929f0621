from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import (
    AlreadyReverted,
    InsufficientStock,
    LedgerError,
    MovementValidationError,
    NotFound,
    PersistenceFailure,
    Unauthorized,
)

LEDGER_STATUS_CODES: dict[type[LedgerError], int] = {
    MovementValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    InsufficientStock: status.HTTP_409_CONFLICT,
    AlreadyReverted: status.HTTP_409_CONFLICT,
    PersistenceFailure: status.HTTP_503_SERVICE_UNAVAILABLE,
}

PERSISTENCE_RETRY_AFTER = "1"


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


def _status_for(exc: LedgerError) -> int:
    for exc_type in type(exc).__mro__:
        code = LEDGER_STATUS_CODES.get(exc_type)  # type: ignore[arg-type]
        if code is not None:
            return code
    return status.HTTP_400_BAD_REQUEST


async def ledger_exception_handler(request: Request, exc: LedgerError):
    headers = {"Retry-After": PERSISTENCE_RETRY_AFTER} if exc.retryable else None
    message = exc.message
    if isinstance(exc, Unauthorized):
        # Never leak which role would have been needed.
        message = "Permission denied"
    elif isinstance(exc, PersistenceFailure):
        message = "The operation could not be completed, please retry"
    return ErrorEnvelope(
        status_code=_status_for(exc),
        code=exc.code,
        message=message,
        details=exc.details(),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.exceptions import RequestValidationError

    if isinstance(exc, RequestValidationError):
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": jsonable_encoder(exc.errors())},
        )
    raise exc
