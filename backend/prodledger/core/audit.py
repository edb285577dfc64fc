"""Audit logging utilities."""

from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import Request
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from prodledger.models.audit_log import AuditLog


def remote_addr(request: Request | None) -> Optional[str]:
    return request.client.host if request is not None and request.client else None


async def log_audit(
    session: AsyncSession,
    user_id: int,
    company_id: int,
    entity: str,
    entity_id: Optional[Any],
    action: str,
    details: Optional[dict[str, Any]] = None,
    remote_addr: Optional[str] = None,
) -> None:
    """Insert an audit row in the caller's transaction so it commits or rolls back with it."""

    await session.execute(
        insert(AuditLog).values(
            user_id=user_id,
            company_id=company_id,
            entity=entity,
            entity_id=str(entity_id) if entity_id is not None else None,
            action=action,
            details=json.dumps(details, default=str) if details is not None else None,
            remote_addr=remote_addr,
        )
    )
