"""Read-only lookups into the employee, user and machine directories."""

from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prodledger.core.deps import CurrentUser
from prodledger.models.employee import Employee
from prodledger.models.machine import Machine
from prodledger.models.user import User


async def find_employee_for_user(session: AsyncSession, user: CurrentUser) -> Optional[Employee]:
    """Resolve the caller's employee record (``user_id`` + ``company_id``)."""

    return await session.scalar(
        select(Employee)
        .where(Employee.user_id == user.id)
        .where(Employee.company_id == user.company_id)
        .order_by(Employee.id)
        .limit(1)
    )


async def get_employee(session: AsyncSession, company_id: int, employee_id: int) -> Optional[Employee]:
    return await session.scalar(
        select(Employee)
        .where(Employee.id == employee_id)
        .where(Employee.company_id == company_id)
    )


async def get_machine(session: AsyncSession, company_id: int, machine_id: int) -> Optional[Machine]:
    return await session.scalar(
        select(Machine)
        .where(Machine.id == machine_id)
        .where(Machine.company_id == company_id)
    )


async def employee_summaries(
    session: AsyncSession, company_id: int, employee_ids: Iterable[int]
) -> dict[int, dict[str, Any]]:
    """Batch-load ``{id, employee_id, user_id, name}`` keyed by employee id."""

    ids = sorted({int(i) for i in employee_ids if i is not None})
    if not ids:
        return {}
    rows = await session.execute(
        select(Employee.id, Employee.employee_id, Employee.user_id, User.name)
        .outerjoin(User, User.id == Employee.user_id)
        .where(Employee.company_id == company_id)
        .where(Employee.id.in_(ids))
    )
    return {
        emp_id: {"id": emp_id, "employee_id": code, "user_id": user_id, "name": name}
        for emp_id, code, user_id, name in rows.all()
    }


async def machine_summaries(
    session: AsyncSession, company_id: int, machine_ids: Iterable[int]
) -> dict[int, dict[str, Any]]:
    ids = sorted({int(i) for i in machine_ids if i is not None})
    if not ids:
        return {}
    rows = await session.execute(
        select(Machine.id, Machine.machine_name, Machine.machine_type)
        .where(Machine.company_id == company_id)
        .where(Machine.id.in_(ids))
    )
    return {
        machine_id: {"id": machine_id, "machine_name": name, "machine_type": machine_type}
        for machine_id, name, machine_type in rows.all()
    }
