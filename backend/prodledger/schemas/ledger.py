"""Pydantic schemas for the quantity ledger endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QuantityUpdatePayload(BaseModel):
    # Left untyped so the service can report an invalid quantity only after
    # the employee lookup, with the ledger's own error envelope.
    manufactured_quantity: Any = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class LedgerUpdateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_id: int
    group_history_id: int
    manufactured_quantity: float
    total_manufactured: float
    total_quantity: float
    balanced_quantity: float
    production_schedule_id: int
    production_completed: Optional[str] = None
    replayed: bool = False


class LedgerUpdateResponse(BaseModel):
    success: bool = True
    message: str
    data: LedgerUpdateOut


class EmployeeSummary(BaseModel):
    id: int
    employee_id: Optional[str] = None
    user_id: Optional[int] = None
    name: Optional[str] = None


class MachineSummary(BaseModel):
    id: int
    machine_name: str
    machine_type: Optional[str] = None


class GroupHistoryOut(BaseModel):
    id: int
    production_schedule_id: int
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    group_manufactured_quantity: float
    total_manufactured: float
    balanced_quantity: float
    created_at: datetime
    employee: Optional[EmployeeSummary] = None
    machine: Optional[MachineSummary] = None


class HistoryGroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    group_name: Optional[str] = None
    group_Qty: float = Field(validation_alias="group_qty")
    manufactured_qty: float
    balance_manufacture_qty: float
    group_status: str
    production_completed: Optional[str] = None


class GroupHistoryData(BaseModel):
    production_group: HistoryGroupOut
    production_histories: List[GroupHistoryOut]


class GroupHistoryResponse(BaseModel):
    success: bool = True
    message: str = "Group history retrieved successfully"
    data: GroupHistoryData
