"""Typed errors raised by the ledger services and rendered by the API.

Services raise these instead of ``HTTPException`` so they stay usable from
scripts and tests; ``install_error_handlers`` maps them onto HTTP responses
with the ``{success, message, error}`` envelope used by every route.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger


class LedgerError(Exception):
    """Base class for all errors surfaced by the production ledger."""

    status_code: int = 500
    code: str = "LEDGER_ERROR"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def headers(self) -> dict[str, str] | None:
        return None


class ValidationError(LedgerError):
    """Bad input or a business-rule violation detected before any write."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(LedgerError):
    """A scoped lookup (employee, group, schedule, ...) found nothing."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, message: str | None = None, **details: Any) -> None:
        super().__init__(message or f"{entity.capitalize()} not found.", entity=entity, **details)
        self.entity = entity


class ConflictError(LedgerError):
    """A concurrent writer won the race, or a lock could not be taken."""

    status_code = 409
    code = "CONFLICT"


class InternalError(LedgerError):
    status_code = 500
    code = "INTERNAL_ERROR"


class LedgerInvariantError(InternalError):
    """Stored ledger values break ``manufactured + balance == group_Qty``."""

    code = "LEDGER_INVARIANT_VIOLATED"


class TransactionTimeoutError(InternalError):
    status_code = 503
    code = "TRANSACTION_TIMEOUT"

    def __init__(self, message: str, retry_after: int = 1, **details: Any) -> None:
        super().__init__(message, **details)
        self.retry_after = retry_after

    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(self.retry_after)}


class ImmutableHistoryError(InternalError):
    """Raised when code tries to update or delete an append-only history row."""

    code = "IMMUTABLE_HISTORY"


def error_body(exc: LedgerError) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "message": exc.message, "error": exc.code}
    if "reason" in exc.details:
        body["reason"] = exc.details["reason"]
    return body


def install_error_handlers(app: FastAPI) -> None:
    """Attach JSON renderers for ``LedgerError`` and unexpected exceptions."""

    async def ledger_error_handler(request: Request, exc: LedgerError):
        log = logger.bind(
            path=str(request.url.path),
            status=exc.status_code,
            error=exc.code,
            **{k: str(v) for k, v in exc.details.items()},
        )
        if exc.status_code >= 500:
            log.error(exc.message)
        else:
            log.info(exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc),
            headers=exc.headers(),
        )

    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.bind(path=str(request.url.path)).opt(exception=exc).error("unhandled_exception")
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal Server Error", "error": InternalError.code},
        )

    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
