"""Group ledger: the single writer of a production group's manufactured quantity.

``apply_manufactured_quantity`` validates an update, then in one transaction
moves quantity from ``balance_manufacture_qty`` to ``manufactured_qty``,
appends a ``group_history`` row and mirrors the delta onto the matching
schedules. The group row is read ``FOR UPDATE`` and carries an ORM version
counter; a lost race is retried from a fresh read and reported as a conflict
once the attempts run out.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import anyio
from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from prodledger.core.audit import log_audit
from prodledger.core.config import settings
from prodledger.core.db import repeatable_read_transaction
from prodledger.core.db_errors import raise_on_lock_conflict
from prodledger.core.db_retry import with_db_retry
from prodledger.core.deps import CurrentUser
from prodledger.core.errors import (
    ConflictError,
    LedgerError,
    LedgerInvariantError,
    NotFoundError,
    TransactionTimeoutError,
    ValidationError,
)
from prodledger.models.group_history import GroupHistory
from prodledger.models.production_group import PRODUCTION_COMPLETED, ProductionGroup
from prodledger.services.directory import find_employee_for_user
from prodledger.services.history import find_history_by_idempotency_key, record_group_history
from prodledger.services.schedule_sync import apply_ledger_delta, load_active_schedules

TWO_PLACES = Decimal("0.01")
# Largest value a Numeric(12, 2) column can hold.
MAX_QUANTITY = Decimal("9999999999.99")


@dataclass(frozen=True, slots=True)
class LedgerUpdateResult:
    group_id: int
    group_history_id: int
    manufactured_quantity: Decimal
    total_manufactured: Decimal
    total_quantity: Decimal
    balanced_quantity: Decimal
    production_schedule_id: int
    production_completed: Optional[str] = None
    replayed: bool = False


def coerce_quantity(raw: Any) -> Decimal:
    """Turn a client-supplied quantity into a positive two-place ``Decimal``."""

    if raw is None or isinstance(raw, bool) or not isinstance(raw, (int, float, str, Decimal)):
        raise ValidationError("Manufactured quantity must be a number.", reason="invalid_quantity")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValidationError(
            "Manufactured quantity must be a number.", reason="invalid_quantity"
        ) from None
    if not value.is_finite():
        raise ValidationError("Manufactured quantity must be a finite number.", reason="invalid_quantity")
    if value <= 0:
        raise ValidationError("Manufactured quantity must be greater than zero.", reason="invalid_quantity")
    if value > MAX_QUANTITY:
        raise ValidationError("Manufactured quantity is too large.", reason="invalid_quantity")
    if value != value.quantize(TWO_PLACES):
        raise ValidationError(
            "Manufactured quantity supports at most two decimal places.", reason="invalid_quantity"
        )
    return value.quantize(TWO_PLACES)


def _naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def resolve_time_range(
    start_time: Optional[datetime], end_time: Optional[datetime]
) -> tuple[datetime, datetime]:
    """Default the work interval to "now" and reject an end before the start."""

    end = _naive(end_time) if end_time is not None else datetime.now().replace(microsecond=0)
    start = _naive(start_time) if start_time is not None else end
    if end < start:
        raise ValidationError("end_time must not be before start_time.", reason="invalid_time_range")
    return start, end


def check_ledger_invariant(group: ProductionGroup) -> None:
    manufactured = Decimal(group.manufactured_qty or 0)
    balance = Decimal(group.balance_manufacture_qty or 0)
    target = Decimal(group.group_qty)
    if manufactured + balance != target or balance < 0 or manufactured > target:
        raise LedgerInvariantError(
            "Production group quantities are inconsistent.",
            group_id=group.id,
            manufactured_qty=manufactured,
            balance_manufacture_qty=balance,
            group_qty=target,
        )


def check_capacity(group: ProductionGroup, used_qty: Decimal) -> None:
    balance = Decimal(group.balance_manufacture_qty)
    if used_qty > balance:
        raise ValidationError(
            f"Manufactured quantity exceeds the remaining balance of {balance}.",
            reason="exceeds_balance",
        )
    if Decimal(group.manufactured_qty) + used_qty > Decimal(group.group_qty):
        raise ValidationError(
            "Manufactured quantity exceeds the group target quantity.",
            reason="exceeds_target",
        )


async def _lock_group(session: AsyncSession, company_id: int, group_id: int) -> ProductionGroup:
    group = await session.scalar(
        select(ProductionGroup)
        .where(ProductionGroup.id == group_id)
        .where(ProductionGroup.company_id == company_id)
        .where(ProductionGroup.status == "active")
        .with_for_update(nowait=settings.DB_NOWAIT_LOCKS)
        .execution_options(populate_existing=True)
    )
    if group is None:
        raise NotFoundError("group", "Production group not found or inactive.")
    return group


def _replay_result(entry: GroupHistory) -> LedgerUpdateResult:
    return LedgerUpdateResult(
        group_id=entry.group_id,
        group_history_id=entry.id,
        manufactured_quantity=Decimal(entry.group_manufactured_quantity),
        total_manufactured=Decimal(entry.total_manufactured),
        total_quantity=Decimal(entry.total_quantity),
        balanced_quantity=Decimal(entry.balanced_quantity),
        production_schedule_id=entry.production_schedule_id,
        production_completed=PRODUCTION_COMPLETED if entry.group_status == "completed" else None,
        replayed=True,
    )


async def apply_manufactured_quantity(
    session: AsyncSession,
    user: CurrentUser,
    group_id: int,
    used_qty: Any,
    *,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    idempotency_key: Optional[str] = None,
    remote_addr: Optional[str] = None,
) -> LedgerUpdateResult:
    """Record ``used_qty`` units manufactured by the caller against ``group_id``.

    Raises ``NotFoundError`` (employee, group, schedule), ``ValidationError``
    (bad quantity, over balance or target), ``ConflictError`` when the group
    kept changing under us, ``TransactionTimeoutError`` when the database
    could not serve the update in time and ``LedgerInvariantError`` when the
    stored group is already inconsistent. Nothing is written on any error.
    """

    log = logger.bind(group_id=group_id, company_id=user.company_id, user_id=user.id)
    try:
        employee = await find_employee_for_user(session, user)
        if employee is None:
            raise NotFoundError("employee", "Employee record not found for the current user.")
        # The transaction below starts with a rollback that expires ORM state.
        employee_id = employee.id
        quantity = coerce_quantity(used_qty)
        start, end = resolve_time_range(start_time, end_time)

        async def _apply_once() -> LedgerUpdateResult:
            async with repeatable_read_transaction(session):
                group = await _lock_group(session, user.company_id, group_id)

                if idempotency_key is not None:
                    previous = await find_history_by_idempotency_key(
                        session, user.company_id, idempotency_key
                    )
                    if previous is not None:
                        if previous.group_id != group.id:
                            raise ConflictError(
                                "Idempotency-Key was already used for a different production group.",
                                reason="idempotency_key_mismatch",
                            )
                        if previous.employee_id != employee_id:
                            raise ConflictError(
                                "Idempotency-Key was already used by a different employee.",
                                reason="idempotency_key_mismatch",
                            )
                        return _replay_result(previous)

                check_ledger_invariant(group)
                check_capacity(group, quantity)

                schedules = await load_active_schedules(
                    session,
                    company_id=user.company_id,
                    group_id=group.id,
                    employee_id=employee_id,
                    for_update=True,
                )
                if not schedules:
                    raise NotFoundError(
                        "schedule", "No active production schedule for this group and employee."
                    )

                new_manufactured = Decimal(group.manufactured_qty) + quantity
                new_balance = Decimal(group.balance_manufacture_qty) - quantity
                if new_manufactured + new_balance != Decimal(group.group_qty):
                    raise LedgerInvariantError(
                        "Ledger update would break group quantity balance.", group_id=group.id
                    )

                group.manufactured_qty = new_manufactured
                group.balance_manufacture_qty = new_balance
                group.updated_by = user.id
                if new_balance == 0:
                    group.production_completed = PRODUCTION_COMPLETED
                    group.group_status = "production_completed"

                entry = await record_group_history(
                    session,
                    group=group,
                    schedule=schedules[0],
                    employee_id=employee_id,
                    used_qty=quantity,
                    start_time=start,
                    end_time=end,
                    created_by=user.id,
                    idempotency_key=idempotency_key,
                )
                apply_ledger_delta(schedules, used_qty=quantity, group=group, updated_by=user.id)
                await session.flush()

                await log_audit(
                    session,
                    user.id,
                    user.company_id,
                    "production_group",
                    group.id,
                    "UPDATE_QUANTITY",
                    details={
                        "used_qty": quantity,
                        "total_manufactured": new_manufactured,
                        "balanced_quantity": new_balance,
                        "group_history_id": entry.id,
                        "schedule_ids": [s.id for s in schedules],
                    },
                    remote_addr=remote_addr,
                )
                return LedgerUpdateResult(
                    group_id=group.id,
                    group_history_id=entry.id,
                    manufactured_quantity=quantity,
                    total_manufactured=new_manufactured,
                    total_quantity=Decimal(group.group_qty),
                    balanced_quantity=new_balance,
                    production_schedule_id=schedules[0].id,
                    production_completed=group.production_completed,
                )

        try:
            with anyio.fail_after(settings.LEDGER_TXN_TIMEOUT_SEC):
                result = await with_db_retry(
                    session,
                    _apply_once,
                    attempts=settings.LEDGER_CONFLICT_RETRIES,
                    retry_on=(StaleDataError,),
                )
        except StaleDataError as exc:
            raise ConflictError(
                "Production group was updated concurrently. Please retry.", reason="stale_version"
            ) from exc
        except IntegrityError as exc:
            raise ConflictError(
                "A concurrent request with the same Idempotency-Key was recorded first.",
                reason="duplicate_idempotency_key",
            ) from exc
        except DBAPIError as exc:
            raise_on_lock_conflict(exc)
        except TimeoutError as exc:
            raise TransactionTimeoutError(
                "Ledger update timed out. Please retry.",
                retry_after=max(1, int(settings.LEDGER_TXN_TIMEOUT_SEC // 5)),
            ) from exc
    except LedgerError as exc:
        log.bind(error=exc.code, reason=exc.details.get("reason")).info("ledger_update_rejected")
        raise

    log.bind(
        employee_id=employee_id,
        used_qty=str(result.manufactured_quantity),
        total_manufactured=str(result.total_manufactured),
        balanced_quantity=str(result.balanced_quantity),
        replayed=result.replayed,
    ).info("ledger_quantity_applied")
    return result
