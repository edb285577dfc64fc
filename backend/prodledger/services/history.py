"""History recorder: append-only ``group_history`` writes and the audit read path."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from prodledger.core.deps import CurrentUser
from prodledger.core.errors import NotFoundError
from prodledger.models.group_history import GroupHistory
from prodledger.models.production_group import ProductionGroup
from prodledger.models.production_schedule import ProductionSchedule
from prodledger.services.directory import employee_summaries, machine_summaries


async def record_group_history(
    session: AsyncSession,
    *,
    group: ProductionGroup,
    schedule: ProductionSchedule,
    employee_id: int,
    used_qty: Decimal,
    start_time: datetime,
    end_time: datetime,
    created_by: int,
    idempotency_key: Optional[str] = None,
) -> GroupHistory:
    """Append one history row snapshotting ``group`` after the update was applied."""

    entry = GroupHistory(
        company_id=group.company_id,
        group_id=group.id,
        production_schedule_id=schedule.id,
        group_manufactured_quantity=used_qty,
        total_manufactured=group.manufactured_qty,
        total_quantity=group.group_qty,
        balanced_quantity=group.balance_manufacture_qty,
        start_time=start_time,
        end_time=end_time,
        employee_id=employee_id,
        machine_id=schedule.machine_id,
        group_status="completed" if group.balance_manufacture_qty == 0 else "in_progress",
        idempotency_key=idempotency_key,
        created_by=created_by,
    )
    session.add(entry)
    await session.flush()
    return entry


async def find_history_by_idempotency_key(
    session: AsyncSession, company_id: int, idempotency_key: str
) -> Optional[GroupHistory]:
    return await session.scalar(
        select(GroupHistory)
        .where(GroupHistory.company_id == company_id)
        .where(GroupHistory.idempotency_key == idempotency_key)
    )


async def manufactured_by_employee(
    session: AsyncSession, company_id: int, group_id: int
) -> dict[int, Decimal]:
    """Sum of history deltas per employee for one group."""

    rows = await session.execute(
        select(GroupHistory.employee_id, func.sum(GroupHistory.group_manufactured_quantity))
        .where(GroupHistory.company_id == company_id)
        .where(GroupHistory.group_id == group_id)
        .group_by(GroupHistory.employee_id)
    )
    return {employee_id: Decimal(total or 0) for employee_id, total in rows.all()}


async def list_group_history(
    session: AsyncSession, user: CurrentUser, group_id: int
) -> dict[str, Any]:
    """Return the group and the history rows of its current active schedule, newest first.

    The current schedule is the most recently created active one.
    """

    group = await session.scalar(
        select(ProductionGroup)
        .where(ProductionGroup.id == group_id)
        .where(ProductionGroup.company_id == user.company_id)
        .where(ProductionGroup.status == "active")
    )
    if group is None:
        raise NotFoundError("group", "Production group not found or inactive.")

    schedule_id = await session.scalar(
        select(ProductionSchedule.id)
        .where(ProductionSchedule.group_id == group_id)
        .where(ProductionSchedule.company_id == user.company_id)
        .where(ProductionSchedule.status == "active")
        .order_by(ProductionSchedule.id.desc())
        .limit(1)
    )
    if schedule_id is None:
        raise NotFoundError("schedule", "No active production schedule for this group.")

    result = await session.execute(
        select(GroupHistory)
        .where(GroupHistory.group_id == group_id)
        .where(GroupHistory.production_schedule_id == schedule_id)
        .where(GroupHistory.company_id == user.company_id)
        .order_by(GroupHistory.created_at.desc(), GroupHistory.id.desc())
    )
    rows = list(result.scalars().all())

    employees = await employee_summaries(session, user.company_id, (row.employee_id for row in rows))
    machines = await machine_summaries(session, user.company_id, (row.machine_id for row in rows))

    return {
        "production_group": group,
        "production_histories": [
            {
                "id": row.id,
                "production_schedule_id": row.production_schedule_id,
                "start_time": row.start_time,
                "end_time": row.end_time,
                "group_manufactured_quantity": row.group_manufactured_quantity,
                "total_manufactured": row.total_manufactured,
                "balanced_quantity": row.balanced_quantity,
                "created_at": row.created_at,
                "employee": employees.get(row.employee_id),
                "machine": machines.get(row.machine_id),
            }
            for row in rows
        ],
    }
