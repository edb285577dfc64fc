from typing import Optional

from sqlalchemy import Enum, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from prodledger.models.base import Base


class Machine(Base):
    __tablename__ = "machines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False)
    machine_name: Mapped[str] = mapped_column(String(255), nullable=False)
    machine_type: Mapped[Optional[str]] = mapped_column(String(255))
    model_number: Mapped[Optional[str]] = mapped_column(String(255))
    location: Mapped[Optional[str]] = mapped_column(String(255))
    machine_status: Mapped[Optional[str]] = mapped_column(
        Enum("Active", "Inactive", "Under Maintenance", name="machines_machine_status")
    )
    status: Mapped[str] = mapped_column(
        Enum("active", "inactive", name="machines_status"),
        nullable=False,
        default="active",
        server_default=text("'active'"),
    )
