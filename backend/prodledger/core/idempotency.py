"""Helpers for client-supplied idempotency keys on ledger mutations.

Keys are stored on the ``group_history`` row written by the mutation (unique
per company), so a replay is detected by looking the key up again inside the
same transaction that holds the group row lock.
"""

from __future__ import annotations

from fastapi import Request

from prodledger.core.config import settings
from prodledger.core.errors import ValidationError

IDEMPOTENCY_HEADER = "Idempotency-Key"
REPLAY_HEADER = "Idempotent-Replay"


def optional_idempotency_key(request: Request) -> str | None:
    """Extract and validate the Idempotency-Key header when the client sent one."""

    raw = request.headers.get(IDEMPOTENCY_HEADER)
    if raw is None:
        return None
    key = raw.strip()
    if not key:
        raise ValidationError("Idempotency-Key header must not be blank.")
    if len(key) > settings.IDEMPOTENCY_KEY_MAX_LENGTH:
        raise ValidationError(
            f"Idempotency-Key must be {settings.IDEMPOTENCY_KEY_MAX_LENGTH} characters or fewer."
        )
    return key
