"""Production group ORM model: the quantity ledger row."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, Enum, Integer, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column

from prodledger.models.base import Base

GROUP_STATUSES = ("pending", "allocation_completed", "production_completed", "cancelled")
PRODUCTION_COMPLETED = "Completed"


class ProductionGroup(Base):
    """Represents ``production_group``.

    ``manufactured_qty`` and ``balance_manufacture_qty`` are written only by
    the ledger service; ``version`` is bumped by the ORM on every flush and
    guards that write against lost updates.
    """

    __tablename__ = "production_group"
    __table_args__ = (
        CheckConstraint("balance_manufacture_qty >= 0", name="balance_non_negative"),
        CheckConstraint("manufactured_qty >= 0", name="manufactured_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    group_name: Mapped[Optional[str]] = mapped_column(String(100))
    group_value: Mapped[Optional[Any]] = mapped_column(JSON)
    # Python attribute differs from the legacy column name ``group_Qty``
    group_qty: Mapped[Decimal] = mapped_column("group_Qty", Numeric(12, 2), nullable=False)
    allocated_qty: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    manufactured_qty: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0"), server_default=text("0")
    )
    balance_manufacture_qty: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        Enum("active", "inactive", name="production_group_status"),
        nullable=False,
        default="active",
        server_default=text("'active'"),
    )
    group_status: Mapped[str] = mapped_column(
        Enum(*GROUP_STATUSES, name="production_group_group_status"),
        nullable=False,
        default="pending",
        server_default=text("'pending'"),
    )
    production_completed: Mapped[Optional[str]] = mapped_column(String(20))
    temporary_status: Mapped[Optional[int]] = mapped_column(Integer, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    created_by: Mapped[Optional[int]] = mapped_column(Integer)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now, onupdate=datetime.now
    )

    __mapper_args__ = {"version_id_col": version}
