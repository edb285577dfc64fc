from datetime import date
from typing import Optional

from sqlalchemy import Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from prodledger.models.base import Base


class Employee(Base):
    """Employee directory row (``employee_details``), keyed to a login user."""

    __tablename__ = "employee_details"
    __table_args__ = (Index("ix_employee_details_user_company", "user_id", "company_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    # Human-facing employee code, e.g. ``EMP-00012``
    employee_id: Mapped[Optional[str]] = mapped_column(String(100))
    department_id: Mapped[Optional[int]] = mapped_column(Integer)
    designation_id: Mapped[Optional[int]] = mapped_column(Integer)
    joining_date: Mapped[Optional[date]] = mapped_column(Date)
