from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import JSON, Date, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from prodledger.models.base import Base


class WorkOrder(Base):
    """Work order header; ``work_order_sku_values`` holds its SKU layers as JSON."""

    __tablename__ = "work_order"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False)
    work_generate_id: Mapped[Optional[str]] = mapped_column(String(200))
    sku_name: Mapped[Optional[str]] = mapped_column(String(255))
    qty: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    priority: Mapped[Optional[str]] = mapped_column(String(50))
    edd: Mapped[Optional[date]] = mapped_column(Date)
    stage: Mapped[Optional[str]] = mapped_column(String(100))
    work_order_sku_values: Mapped[Optional[Any]] = mapped_column(JSON)
