"""Append-only history of ledger updates."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from prodledger.core.errors import ImmutableHistoryError
from prodledger.models.base import Base


class GroupHistory(Base):
    """One row per successful quantity update (``group_history``).

    ``group_manufactured_quantity`` is the delta applied by that update; the
    ``total_*``/``balanced_quantity`` columns snapshot the group right after
    it, which is what lets an idempotent replay rebuild the original response.
    """

    __tablename__ = "group_history"
    __table_args__ = (
        CheckConstraint("group_manufactured_quantity > 0", name="delta_positive"),
        UniqueConstraint("company_id", "idempotency_key", name="uq_group_history_idempotency_key"),
        Index("ix_group_history_group_created", "group_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False)
    group_id: Mapped[int] = mapped_column(Integer, nullable=False)
    production_schedule_id: Mapped[int] = mapped_column(Integer, nullable=False)
    group_manufactured_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_manufactured: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    balanced_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    employee_id: Mapped[int] = mapped_column(Integer, nullable=False)
    machine_id: Mapped[int] = mapped_column(Integer, nullable=False)
    group_status: Mapped[str] = mapped_column(
        Enum("in_progress", "completed", name="group_history_group_status"), nullable=False
    )
    idempotency_key: Mapped[Optional[str]] = mapped_column(String(128))
    created_by: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)


@event.listens_for(GroupHistory, "before_update")
def _reject_history_update(mapper, connection, target: GroupHistory) -> None:
    raise ImmutableHistoryError(
        "Group history rows are append-only.", group_history_id=target.id, operation="update"
    )


@event.listens_for(GroupHistory, "before_delete")
def _reject_history_delete(mapper, connection, target: GroupHistory) -> None:
    raise ImmutableHistoryError(
        "Group history rows are append-only.", group_history_id=target.id, operation="delete"
    )
