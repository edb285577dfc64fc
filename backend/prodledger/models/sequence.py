"""Generic sequence table scoped by name (e.g. per-company schedule numbers)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from prodledger.models.base import Base


class SequenceCounter(Base):
    """Stores reusable sequence counters keyed by name."""

    __tablename__ = "gen_seq_no"

    seq_name: Mapped[str] = mapped_column(String(64), primary_key=True)
    seq_no: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.now, onupdate=datetime.now
    )
