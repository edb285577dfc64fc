"""Keeps the denormalized group quantities on ``production_schedule`` in step.

The fan-out runs inside the ledger transaction, so a failure rolls back with
the group update. ``reconcile_group_schedules`` is the safety net: it rebuilds
the mirrored columns from the group row and ``group_history``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prodledger.core.config import settings
from prodledger.models.production_group import ProductionGroup
from prodledger.models.production_schedule import ProductionSchedule
from prodledger.services.history import manufactured_by_employee


async def load_active_schedules(
    session: AsyncSession,
    *,
    company_id: int,
    group_id: int,
    employee_id: int,
    for_update: bool = False,
) -> list[ProductionSchedule]:
    """Active schedules for ``(group, employee)``, lowest id first."""

    stmt = (
        select(ProductionSchedule)
        .where(ProductionSchedule.company_id == company_id)
        .where(ProductionSchedule.group_id == group_id)
        .where(ProductionSchedule.employee_id == employee_id)
        .where(ProductionSchedule.status == "active")
        .order_by(ProductionSchedule.id)
    )
    if for_update:
        stmt = stmt.with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
    result = await session.execute(stmt)
    return list(result.scalars().all())


def apply_ledger_delta(
    schedules: Sequence[ProductionSchedule],
    *,
    used_qty: Decimal,
    group: ProductionGroup,
    updated_by: Optional[int] = None,
) -> None:
    """Mirror one ledger update onto every schedule of the same group+employee."""

    for schedule in schedules:
        schedule.group_manufactured_quantity = Decimal(schedule.group_manufactured_quantity or 0) + used_qty
        schedule.group_balanced_quantity = group.balance_manufacture_qty
        schedule.group_total_quantity = group.group_qty
        if updated_by is not None:
            schedule.updated_by = updated_by


async def seed_schedule_quantities(
    session: AsyncSession, schedule: ProductionSchedule, group: ProductionGroup
) -> None:
    """Initialise a new schedule's mirrored columns from the current ledger state."""

    totals = await manufactured_by_employee(session, group.company_id, group.id)
    schedule.group_total_quantity = group.group_qty
    schedule.group_balanced_quantity = group.balance_manufacture_qty
    schedule.group_manufactured_quantity = totals.get(schedule.employee_id, Decimal("0"))


@dataclass(frozen=True, slots=True)
class ScheduleDrift:
    schedule_id: int
    group_id: int
    employee_id: int
    field: str
    stored: Decimal
    expected: Decimal


def _check(
    drifts: list[ScheduleDrift], schedule: ProductionSchedule, field: str, expected: Decimal
) -> None:
    stored = Decimal(getattr(schedule, field) or 0)
    if stored != expected:
        drifts.append(
            ScheduleDrift(
                schedule_id=schedule.id,
                group_id=schedule.group_id,
                employee_id=schedule.employee_id,
                field=field,
                stored=stored,
                expected=expected,
            )
        )
        setattr(schedule, field, expected)


async def reconcile_group_schedules(
    session: AsyncSession, company_id: int, group_id: Optional[int] = None
) -> list[ScheduleDrift]:
    """Rewrite drifted mirror columns for one group (or all groups of a company).

    Must run inside a transaction; the caller commits. Returns every
    correction made so it can be logged or reported.
    """

    stmt = (
        select(ProductionGroup)
        .where(ProductionGroup.company_id == company_id)
        .order_by(ProductionGroup.id)
    )
    if group_id is not None:
        stmt = stmt.where(ProductionGroup.id == group_id)
    groups = list((await session.execute(stmt.with_for_update(nowait=settings.DB_NOWAIT_LOCKS))).scalars().all())

    drifts: list[ScheduleDrift] = []
    for group in groups:
        schedules = (
            await session.execute(
                select(ProductionSchedule)
                .where(ProductionSchedule.company_id == company_id)
                .where(ProductionSchedule.group_id == group.id)
                .where(ProductionSchedule.status == "active")
                .order_by(ProductionSchedule.id)
                .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
            )
        ).scalars().all()
        if not schedules:
            continue
        totals = await manufactured_by_employee(session, company_id, group.id)
        for schedule in schedules:
            _check(drifts, schedule, "group_total_quantity", Decimal(group.group_qty))
            _check(drifts, schedule, "group_balanced_quantity", Decimal(group.balance_manufacture_qty))
            _check(
                drifts,
                schedule,
                "group_manufactured_quantity",
                totals.get(schedule.employee_id, Decimal("0")),
            )

    await session.flush()
    for drift in drifts:
        logger.bind(
            schedule_id=drift.schedule_id,
            group_id=drift.group_id,
            field=drift.field,
            stored=str(drift.stored),
            expected=str(drift.expected),
        ).warning("schedule_reconciled")
    return drifts
