"""Shared helpers for database error handling."""

from __future__ import annotations

from typing import Awaitable, Callable, NoReturn, TypeVar

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from prodledger.core.db_retry import _extract_error_code, with_db_retry
from prodledger.core.errors import ConflictError, TransactionTimeoutError

T = TypeVar("T")

LOCK_NOWAIT_ERROR_CODES = {3572}
LOCK_TIMEOUT_ERROR_CODES = {1205, 1213, 3024}


def raise_on_lock_conflict(exc: DBAPIError) -> NoReturn:
    """Translate lock failures into ledger errors; re-raise anything else.

    NOWAIT conflicts become 409 so the client can retry right away. Lock wait
    timeouts, deadlocks and statement timeouts that survived the retry loop
    become 503 with ``Retry-After``.
    """

    code, _ = _extract_error_code(exc)
    message = str(getattr(exc, "orig", exc)).lower()
    if code in LOCK_NOWAIT_ERROR_CODES or "could not obtain lock" in message or "could not acquire" in message:
        raise ConflictError(
            "Resource is locked by another request. Please retry shortly."
        ) from exc
    if (
        code in LOCK_TIMEOUT_ERROR_CODES
        or "lock wait timeout" in message
        or "deadlock" in message
        or "maximum statement execution time" in message
    ):
        raise TransactionTimeoutError(
            "The database is busy. Please retry shortly.", retry_after=1
        ) from exc
    raise exc


async def run_write(session: AsyncSession, operation: Callable[[], Awaitable[T]]) -> T:
    """Run a transactional write with deadlock/stale-version retries.

    ``operation`` opens its own transaction so every attempt starts from a
    fresh read. Exhausted retries and lock failures come back as ledger errors.
    """

    try:
        return await with_db_retry(session, operation, retry_on=(StaleDataError,))
    except StaleDataError as exc:
        raise ConflictError(
            "Record has been updated by someone else. Please reload and try again.",
            reason="stale_version",
        ) from exc
    except IntegrityError as exc:
        raise ConflictError("The change conflicts with an existing record.") from exc
    except DBAPIError as exc:
        raise_on_lock_conflict(exc)
