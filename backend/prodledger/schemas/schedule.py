"""Pydantic schemas for production schedule operations."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ProductionStatus = Literal["Scheduled", "In Progress", "Completed"]


class ProductionScheduleCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    group_id: int = Field(gt=0)
    employee_id: int = Field(gt=0)
    machine_id: int = Field(gt=0)
    task_name: str = Field(min_length=1, max_length=255)
    schedule_date: date = Field(alias="date")
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    production_status: ProductionStatus = "Scheduled"
    notes: Optional[str] = None

    @field_validator("task_name")
    @classmethod
    def _strip_task(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("task_name must not be blank")
        return value

    @model_validator(mode="after")
    def _check_times(self) -> "ProductionScheduleCreate":
        if self.start_time and self.end_time and self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class ProductionScheduleUpdate(BaseModel):
    """Editable schedule fields. Ledger mirror columns are not accepted here."""

    model_config = ConfigDict(extra="forbid")

    machine_id: Optional[int] = Field(default=None, gt=0)
    task_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    schedule_date: Optional[date] = Field(default=None, alias="date")
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    production_status: Optional[ProductionStatus] = None
    notes: Optional[str] = None
    status: Optional[Literal["active", "inactive"]] = None
    expected_updated_at: Optional[datetime] = None


class ProductionScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    production_schedule_generate_id: Optional[str] = None
    company_id: int
    employee_id: int
    user_id: int
    machine_id: int
    group_id: int
    task_name: str
    schedule_date: date = Field(validation_alias="date", serialization_alias="date")
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    production_status: str
    status: str
    notes: Optional[str] = None
    group_total_quantity: float
    group_manufactured_quantity: float
    group_balanced_quantity: float
    created_at: datetime
    updated_at: datetime


class ProductionScheduleResponse(BaseModel):
    success: bool = True
    message: str
    data: ProductionScheduleOut


class ProductionScheduleListResponse(BaseModel):
    success: bool = True
    message: str = "Production schedules retrieved successfully"
    data: List[ProductionScheduleOut]


class MyGroupScheduleOut(ProductionScheduleOut):
    group_name: Optional[str] = None
    group_status: Optional[str] = None
    production_completed: Optional[str] = None


class MyGroupsResponse(BaseModel):
    success: bool = True
    message: str = "Assigned production groups retrieved successfully"
    data: List[MyGroupScheduleOut]
