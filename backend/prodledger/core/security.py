"""JWT helper used by tooling and tests to mint tokens the API accepts.

Production tokens are issued by the upstream auth service with the same
secret and claims (``id``, ``company_id``).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import jwt

from prodledger.core.config import settings


def create_access_token(data: Dict[str, Any], expires: timedelta = timedelta(minutes=60)) -> str:
    now = datetime.now(timezone.utc)
    to_encode = data.copy()
    to_encode.update({"exp": now + expires, "iat": now, "nbf": now})
    if settings.JWT_ISSUER:
        to_encode["iss"] = settings.JWT_ISSUER
    if settings.JWT_AUDIENCE:
        to_encode["aud"] = settings.JWT_AUDIENCE
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
