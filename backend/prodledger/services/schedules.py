"""Production schedule maintenance and the caller's "my groups" view."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from prodledger.core.audit import log_audit
from prodledger.core.config import settings
from prodledger.core.db import repeatable_read_transaction
from prodledger.core.db_errors import run_write
from prodledger.core.deps import CurrentUser
from prodledger.core.errors import NotFoundError, TransactionTimeoutError, ValidationError
from prodledger.core.optimistic_lock import ensure_expected_timestamp
from prodledger.models.production_group import ProductionGroup
from prodledger.models.production_schedule import ProductionSchedule
from prodledger.models.sequence import SequenceCounter
from prodledger.schemas.schedule import ProductionScheduleCreate, ProductionScheduleUpdate
from prodledger.services.directory import find_employee_for_user, get_employee, get_machine
from prodledger.services.schedule_sync import seed_schedule_quantities

SEQUENCE_MAX_ATTEMPTS = 5


async def reserve_sequence_number(session: AsyncSession, seq_name: str) -> int:
    """Reserve and return the next value for ``seq_name`` inside the caller's transaction."""

    attempts = 0
    while True:
        attempts += 1
        row = await session.scalar(
            select(SequenceCounter)
            .where(SequenceCounter.seq_name == seq_name)
            .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
        )
        if row:
            current = int(row.seq_no or 1)
            row.seq_no = current + 1
            await session.flush()
            return current
        try:
            await session.execute(insert(SequenceCounter).values(seq_name=seq_name, seq_no=1))
            await session.flush()
        except IntegrityError:
            # Another transaction created the counter first; lock it on the next pass.
            if attempts >= SEQUENCE_MAX_ATTEMPTS:
                logger.bind(seq_name=seq_name).warning("sequence_reservation_exhausted")
                raise TransactionTimeoutError("Sequence allocation failed. Please retry.")


async def next_schedule_number(session: AsyncSession, company_id: int) -> str:
    value = await reserve_sequence_number(session, f"production_schedule:{company_id}")
    return f"{settings.SCHEDULE_ID_PREFIX}-{company_id}-{value:0{settings.SCHEDULE_ID_DIGITS}d}"


async def get_schedule(session: AsyncSession, user: CurrentUser, schedule_id: int) -> ProductionSchedule:
    schedule = await session.scalar(
        select(ProductionSchedule)
        .where(ProductionSchedule.id == schedule_id)
        .where(ProductionSchedule.company_id == user.company_id)
    )
    if schedule is None:
        raise NotFoundError("schedule", "Production schedule not found.")
    return schedule


async def list_schedules(
    session: AsyncSession,
    user: CurrentUser,
    *,
    group_id: Optional[int] = None,
    status: Optional[str] = None,
) -> list[ProductionSchedule]:
    stmt = select(ProductionSchedule).where(ProductionSchedule.company_id == user.company_id)
    if group_id is not None:
        stmt = stmt.where(ProductionSchedule.group_id == group_id)
    if status and status != "all":
        stmt = stmt.where(ProductionSchedule.status == status)
    result = await session.execute(stmt.order_by(ProductionSchedule.id.desc()))
    return list(result.scalars().all())


def _check_time_range(start: Optional[datetime], end: Optional[datetime]) -> None:
    if start is not None and end is not None and end < start:
        raise ValidationError("end_time must not be before start_time.", reason="invalid_time_range")


async def create_schedule(
    session: AsyncSession,
    user: CurrentUser,
    payload: ProductionScheduleCreate,
    *,
    remote_addr: Optional[str] = None,
) -> ProductionSchedule:
    async def _create_once() -> ProductionSchedule:
        async with repeatable_read_transaction(session):
            group = await session.scalar(
                select(ProductionGroup)
                .where(ProductionGroup.id == payload.group_id)
                .where(ProductionGroup.company_id == user.company_id)
                .where(ProductionGroup.status == "active")
                .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
            )
            if group is None:
                raise NotFoundError("group", "Production group not found or inactive.")
            employee = await get_employee(session, user.company_id, payload.employee_id)
            if employee is None:
                raise NotFoundError("employee", "Employee not found in this company.")
            machine = await get_machine(session, user.company_id, payload.machine_id)
            if machine is None or machine.status != "active":
                raise NotFoundError("machine", "Machine not found or inactive.")

            schedule = ProductionSchedule(
                production_schedule_generate_id=await next_schedule_number(session, user.company_id),
                company_id=user.company_id,
                employee_id=employee.id,
                user_id=employee.user_id,
                machine_id=machine.id,
                group_id=group.id,
                task_name=payload.task_name,
                date=payload.schedule_date,
                start_time=payload.start_time,
                end_time=payload.end_time,
                production_status=payload.production_status,
                notes=payload.notes,
                created_by=user.id,
                updated_by=user.id,
            )
            await seed_schedule_quantities(session, schedule, group)
            session.add(schedule)
            await session.flush()
            await log_audit(
                session,
                user.id,
                user.company_id,
                "production_schedule",
                schedule.id,
                "CREATE",
                details={
                    "group_id": group.id,
                    "employee_id": employee.id,
                    "generate_id": schedule.production_schedule_generate_id,
                },
                remote_addr=remote_addr,
            )
            return schedule

    schedule = await run_write(session, _create_once)
    logger.bind(
        schedule_id=schedule.id,
        group_id=schedule.group_id,
        generate_id=schedule.production_schedule_generate_id,
    ).info("production_schedule_created")
    return schedule


async def update_schedule(
    session: AsyncSession,
    user: CurrentUser,
    schedule_id: int,
    payload: ProductionScheduleUpdate,
    *,
    remote_addr: Optional[str] = None,
) -> ProductionSchedule:
    changes = payload.model_dump(exclude_unset=True, exclude={"expected_updated_at"})
    if "schedule_date" in changes:
        changes["date"] = changes.pop("schedule_date")

    async def _update_once() -> ProductionSchedule:
        async with repeatable_read_transaction(session):
            schedule = await session.scalar(
                select(ProductionSchedule)
                .where(ProductionSchedule.id == schedule_id)
                .where(ProductionSchedule.company_id == user.company_id)
                .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
                .execution_options(populate_existing=True)
            )
            if schedule is None:
                raise NotFoundError("schedule", "Production schedule not found.")
            ensure_expected_timestamp(schedule.updated_at, payload.expected_updated_at)
            if changes.get("machine_id") is not None:
                machine = await get_machine(session, user.company_id, changes["machine_id"])
                if machine is None or machine.status != "active":
                    raise NotFoundError("machine", "Machine not found or inactive.")
            _check_time_range(
                changes.get("start_time", schedule.start_time),
                changes.get("end_time", schedule.end_time),
            )

            for field, value in changes.items():
                if value is None and field not in ("notes", "start_time", "end_time"):
                    continue
                setattr(schedule, field, value)
            schedule.updated_by = user.id
            await session.flush()
            await log_audit(
                session,
                user.id,
                user.company_id,
                "production_schedule",
                schedule.id,
                "UPDATE",
                details={"fields": sorted(changes)},
                remote_addr=remote_addr,
            )
            return schedule

    return await run_write(session, _update_once)


async def delete_schedule(
    session: AsyncSession,
    user: CurrentUser,
    schedule_id: int,
    *,
    remote_addr: Optional[str] = None,
) -> None:
    """Soft delete; ``group_history`` rows keep pointing at the schedule."""

    async def _delete_once() -> None:
        async with repeatable_read_transaction(session):
            schedule = await session.scalar(
                select(ProductionSchedule)
                .where(ProductionSchedule.id == schedule_id)
                .where(ProductionSchedule.company_id == user.company_id)
                .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
                .execution_options(populate_existing=True)
            )
            if schedule is None:
                raise NotFoundError("schedule", "Production schedule not found.")
            schedule.status = "inactive"
            schedule.updated_by = user.id
            await session.flush()
            await log_audit(
                session,
                user.id,
                user.company_id,
                "production_schedule",
                schedule.id,
                "DELETE",
                remote_addr=remote_addr,
            )

    await run_write(session, _delete_once)


async def my_group_schedules(
    session: AsyncSession, user: CurrentUser
) -> list[tuple[ProductionSchedule, ProductionGroup]]:
    """The caller's active schedules paired with their (active) groups."""

    employee = await find_employee_for_user(session, user)
    if employee is None:
        raise NotFoundError("employee", "Employee record not found for the current user.")
    result = await session.execute(
        select(ProductionSchedule, ProductionGroup)
        .join(ProductionGroup, ProductionGroup.id == ProductionSchedule.group_id)
        .where(ProductionSchedule.company_id == user.company_id)
        .where(ProductionSchedule.employee_id == employee.id)
        .where(ProductionSchedule.status == "active")
        .where(ProductionGroup.status == "active")
        .order_by(ProductionSchedule.date.desc(), ProductionSchedule.id.desc())
    )
    return [(schedule, group) for schedule, group in result.all()]
