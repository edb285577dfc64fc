"""Helpers for optimistic concurrency control."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from prodledger.core.errors import ConflictError


def ensure_expected_timestamp(
    current: Optional[datetime], expected: Optional[datetime]
) -> None:
    """Raise ``ConflictError`` if the persisted timestamp does not match the expected value.

    A missing ``expected`` value skips the check; clients opt in by echoing the
    ``updated_at`` they loaded.
    """

    if expected is None:
        return
    if current is not None and current.replace(tzinfo=None) == expected.replace(tzinfo=None):
        return
    raise ConflictError(
        "Record has been updated by someone else. Please reload and try again."
    )
