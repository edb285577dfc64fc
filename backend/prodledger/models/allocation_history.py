from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Enum, Integer, Numeric, text
from sqlalchemy.orm import Mapped, mapped_column

from prodledger.models.base import Base


class AllocationHistory(Base):
    """Inventory lots consumed by a production group (read-only for the ledger)."""

    __tablename__ = "allocation_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False)
    inventory_id: Mapped[int] = mapped_column(Integer, nullable=False)
    group_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    allocated_qty: Mapped[Optional[Decimal]] = mapped_column("allocated_Qty", Numeric(12, 2))
    status: Mapped[str] = mapped_column(
        Enum("active", "inactive", name="allocation_history_status"),
        nullable=False,
        default="active",
        server_default=text("'active'"),
    )
    created_by: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)
