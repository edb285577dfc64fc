"""Production schedule ORM model."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Date, DateTime, Enum, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from prodledger.models.base import Base

PRODUCTION_STATUSES = ("Scheduled", "In Progress", "Completed")


class ProductionSchedule(Base):
    """Represents ``production_schedule``: one employee+machine assigned to a group.

    The ``group_*_quantity`` columns mirror the group ledger so the mobile
    views can read them without a join; they are kept in step by
    ``prodledger.services.schedule_sync``.
    """

    __tablename__ = "production_schedule"
    __table_args__ = (
        Index("ix_production_schedule_group_employee", "company_id", "group_id", "employee_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    production_schedule_generate_id: Mapped[Optional[str]] = mapped_column(String(200))
    company_id: Mapped[int] = mapped_column(Integer, nullable=False)
    employee_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    machine_id: Mapped[int] = mapped_column(Integer, nullable=False)
    group_id: Mapped[int] = mapped_column(Integer, nullable=False)
    task_name: Mapped[str] = mapped_column(String(255), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime)
    production_status: Mapped[str] = mapped_column(
        Enum(*PRODUCTION_STATUSES, name="production_schedule_production_status"),
        nullable=False,
        default="Scheduled",
        server_default=text("'Scheduled'"),
    )
    status: Mapped[str] = mapped_column(
        Enum("active", "inactive", name="production_schedule_status"),
        nullable=False,
        default="active",
        server_default=text("'active'"),
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    group_total_quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0"), server_default=text("0")
    )
    group_manufactured_quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0"), server_default=text("0")
    )
    group_balanced_quantity: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0"), server_default=text("0")
    )
    created_by: Mapped[Optional[int]] = mapped_column(Integer)
    updated_by: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now, onupdate=datetime.now
    )
