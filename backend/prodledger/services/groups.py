"""Production group maintenance: everything except the quantity ledger itself.

``manufactured_qty`` and ``balance_manufacture_qty`` are seeded here on
create and never touched again outside ``prodledger.services.ledger``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from prodledger.core.audit import log_audit
from prodledger.core.config import settings
from prodledger.core.db import repeatable_read_transaction
from prodledger.core.db_errors import run_write
from prodledger.core.deps import CurrentUser
from prodledger.core.errors import NotFoundError, ValidationError
from prodledger.core.optimistic_lock import ensure_expected_timestamp
from prodledger.models.production_group import PRODUCTION_COMPLETED, ProductionGroup
from prodledger.models.production_schedule import ProductionSchedule
from prodledger.schemas.group import ProductionGroupCreate, ProductionGroupUpdate
from prodledger.services.allocation import build_group_layers, load_group_allocations


def _layer_refs(payload_value: Optional[list]) -> Optional[list[dict[str, Any]]]:
    if payload_value is None:
        return None
    return [ref.model_dump() for ref in payload_value]


def seed_ledger_quantities(payload: ProductionGroupCreate) -> tuple[Decimal, Decimal]:
    """Starting ``(manufactured, balance)`` for a new group.

    Missing values are derived from ``group_Qty``; explicit values must
    already satisfy ``manufactured + balance == group_Qty``.
    """

    target = Decimal(payload.group_Qty)
    manufactured = payload.manufactured_qty
    balance = payload.balance_manufacture_qty
    if manufactured is None and balance is None:
        manufactured, balance = Decimal("0"), target
    elif manufactured is None:
        manufactured = target - Decimal(balance)
    elif balance is None:
        balance = target - Decimal(manufactured)

    manufactured, balance = Decimal(manufactured), Decimal(balance)
    if manufactured < 0 or balance < 0 or manufactured + balance != target:
        raise ValidationError(
            "manufactured_qty + balance_manufacture_qty must equal group_Qty.",
            reason="ledger_mismatch",
        )
    return manufactured, balance


def check_group_status(group: ProductionGroup, group_status: str) -> None:
    """``production_completed`` is the status of exactly the groups with no balance left."""

    exhausted = Decimal(group.balance_manufacture_qty) == 0
    if (group_status == "production_completed") != exhausted:
        raise ValidationError(
            "group_status production_completed requires a zero balance, and only then.",
            reason="ledger_status_mismatch",
            group_status=group_status,
            balance_manufacture_qty=group.balance_manufacture_qty,
        )


async def get_group(
    session: AsyncSession, user: CurrentUser, group_id: int, *, active_only: bool = False
) -> ProductionGroup:
    stmt = (
        select(ProductionGroup)
        .where(ProductionGroup.id == group_id)
        .where(ProductionGroup.company_id == user.company_id)
    )
    if active_only:
        stmt = stmt.where(ProductionGroup.status == "active")
    group = await session.scalar(stmt)
    if group is None:
        raise NotFoundError("group", "Production group not found.")
    return group


async def create_group(
    session: AsyncSession,
    user: CurrentUser,
    payload: ProductionGroupCreate,
    *,
    remote_addr: Optional[str] = None,
) -> ProductionGroup:
    manufactured, balance = seed_ledger_quantities(payload)

    async def _create_once() -> ProductionGroup:
        async with repeatable_read_transaction(session):
            group = ProductionGroup(
                company_id=user.company_id,
                group_name=payload.group_name,
                group_value=_layer_refs(payload.group_value),
                group_qty=Decimal(payload.group_Qty),
                allocated_qty=payload.allocated_qty,
                manufactured_qty=manufactured,
                balance_manufacture_qty=balance,
                status=payload.status,
                production_completed=PRODUCTION_COMPLETED if balance == 0 else None,
                group_status="production_completed" if balance == 0 else "pending",
                created_by=user.id,
                updated_by=user.id,
            )
            session.add(group)
            await session.flush()
            await log_audit(
                session,
                user.id,
                user.company_id,
                "production_group",
                group.id,
                "CREATE",
                details={"group_name": group.group_name, "group_Qty": group.group_qty},
                remote_addr=remote_addr,
            )
            return group

    group = await run_write(session, _create_once)
    logger.bind(group_id=group.id, group_qty=str(group.group_qty)).info("production_group_created")
    return group


async def list_groups(
    session: AsyncSession,
    user: CurrentUser,
    *,
    page: int = 1,
    limit: int = 10,
    group_name: Optional[str] = None,
    status: str = "active",
) -> tuple[list[ProductionGroup], int]:
    """One page of the company's groups, most recently updated first, plus the total count."""

    filters = [ProductionGroup.company_id == user.company_id]
    if status != "all":
        filters.append(ProductionGroup.status == status)
    if group_name:
        filters.append(ProductionGroup.group_name.like(f"%{group_name}%"))

    total = await session.scalar(select(func.count()).select_from(ProductionGroup).where(*filters))
    result = await session.execute(
        select(ProductionGroup)
        .where(*filters)
        .order_by(ProductionGroup.updated_at.desc(), ProductionGroup.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def update_group(
    session: AsyncSession,
    user: CurrentUser,
    group_id: int,
    payload: ProductionGroupUpdate,
    *,
    remote_addr: Optional[str] = None,
) -> ProductionGroup:
    changes = payload.model_dump(exclude_unset=True, exclude={"expected_updated_at", "group_Qty"})

    async def _update_once() -> ProductionGroup:
        async with repeatable_read_transaction(session):
            group = await session.scalar(
                select(ProductionGroup)
                .where(ProductionGroup.id == group_id)
                .where(ProductionGroup.company_id == user.company_id)
                .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
                .execution_options(populate_existing=True)
            )
            if group is None:
                raise NotFoundError("group", "Production group not found.")
            ensure_expected_timestamp(group.updated_at, payload.expected_updated_at)
            if payload.group_Qty is not None and Decimal(payload.group_Qty) != Decimal(group.group_qty):
                raise ValidationError(
                    "group_Qty cannot be changed after the group is created.",
                    reason="group_qty_immutable",
                )
            if payload.group_status is not None:
                check_group_status(group, payload.group_status)

            for field, value in changes.items():
                if value is None and field != "group_value":
                    continue
                setattr(group, field, value)
            group.updated_by = user.id
            await session.flush()
            await log_audit(
                session,
                user.id,
                user.company_id,
                "production_group",
                group.id,
                "UPDATE",
                details={"fields": sorted(changes)},
                remote_addr=remote_addr,
            )
            return group

    return await run_write(session, _update_once)


async def delete_group(
    session: AsyncSession,
    user: CurrentUser,
    group_id: int,
    *,
    remote_addr: Optional[str] = None,
) -> None:
    """Soft delete: the group keeps its history but drops out of active lookups."""

    async def _delete_once() -> None:
        async with repeatable_read_transaction(session):
            group = await session.scalar(
                select(ProductionGroup)
                .where(ProductionGroup.id == group_id)
                .where(ProductionGroup.company_id == user.company_id)
                .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
                .execution_options(populate_existing=True)
            )
            if group is None:
                raise NotFoundError("group", "Production group not found.")
            group.status = "inactive"
            group.updated_by = user.id
            await session.flush()
            await log_audit(
                session,
                user.id,
                user.company_id,
                "production_group",
                group.id,
                "DELETE",
                remote_addr=remote_addr,
            )

    await run_write(session, _delete_once)


async def group_overview(session: AsyncSession, user: CurrentUser, group_id: int) -> dict[str, Any]:
    """The group with its resolved layers, inventory allocations and newest schedule."""

    group = await get_group(session, user, group_id)
    layers = await build_group_layers(session, group)
    allocations = await load_group_allocations(session, user.company_id, group.id)
    latest_schedule = await session.scalar(
        select(ProductionSchedule)
        .where(ProductionSchedule.company_id == user.company_id)
        .where(ProductionSchedule.group_id == group.id)
        .where(ProductionSchedule.status == "active")
        .order_by(ProductionSchedule.created_at.desc(), ProductionSchedule.id.desc())
        .limit(1)
    )
    return {
        "group": group,
        "layers": layers.layers,
        "layers_status": layers.status.value,
        "allocations": allocations,
        "latest_schedule": latest_schedule,
    }
