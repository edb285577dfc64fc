"""Pydantic schemas for production group operations."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, condecimal, field_validator

GroupStatus = Literal["pending", "allocation_completed", "production_completed", "cancelled"]


class GroupLayerRef(BaseModel):
    model_config = ConfigDict(extra="allow")

    work_order_id: int
    layer_id: Any


class ProductionGroupCreate(BaseModel):
    group_name: str = Field(min_length=1, max_length=100)
    group_value: Optional[List[GroupLayerRef]] = None
    group_Qty: condecimal(max_digits=12, decimal_places=2, gt=0)
    allocated_qty: Optional[condecimal(max_digits=12, decimal_places=2, ge=0)] = None
    manufactured_qty: Optional[condecimal(max_digits=12, decimal_places=2, ge=0)] = None
    balance_manufacture_qty: Optional[condecimal(max_digits=12, decimal_places=2, ge=0)] = None
    status: Literal["active", "inactive"] = "active"

    @field_validator("group_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Group name is required")
        return value


class ProductionGroupUpdate(BaseModel):
    group_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    group_value: Optional[List[GroupLayerRef]] = None
    group_Qty: Optional[Decimal] = None
    allocated_qty: Optional[condecimal(max_digits=12, decimal_places=2, ge=0)] = None
    status: Optional[Literal["active", "inactive"]] = None
    group_status: Optional[GroupStatus] = None
    expected_updated_at: Optional[datetime] = Field(
        default=None,
        description="updated_at of the version being edited; a mismatch is rejected with 409.",
    )


class ProductionGroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    company_id: int
    group_name: Optional[str] = None
    group_value: Optional[Any] = None
    group_Qty: float = Field(validation_alias="group_qty")
    allocated_qty: Optional[float] = None
    manufactured_qty: float
    balance_manufacture_qty: float
    status: str
    group_status: str
    production_completed: Optional[str] = None
    version: int
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


class ProductionGroupPage(BaseModel):
    production_groups: List[ProductionGroupOut]
    pagination: Pagination


class ProductionGroupResponse(BaseModel):
    success: bool = True
    message: str
    data: ProductionGroupOut


class ProductionGroupListResponse(BaseModel):
    success: bool = True
    message: str = "Production groups retrieved successfully"
    data: ProductionGroupPage


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class GroupLayerOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    work_order_id: int
    work_generate_id: Optional[str] = None
    sku_name: Optional[str] = None
    priority: Optional[str] = None
    edd: Optional[date] = None
    stage: Optional[str] = None


class GroupAllocationOut(BaseModel):
    allocation_id: int
    inventory_id: int
    item_code: Optional[str] = None
    description: Optional[str] = None
    batch_no: Optional[str] = None
    allocated_qty: float
    quantity_available: float
    allocated_at: Optional[datetime] = None


class LatestScheduleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    production_schedule_generate_id: Optional[str] = None
    employee_id: int
    machine_id: int
    production_status: str
    schedule_date: date = Field(validation_alias="date", serialization_alias="date")
    group_manufactured_quantity: float
    group_balanced_quantity: float


class ProductionGroupDetail(ProductionGroupOut):
    layers: List[GroupLayerOut] = Field(default_factory=list)
    layers_status: Literal["ok", "empty", "parse_failed"]
    allocations: List[GroupAllocationOut] = Field(default_factory=list)
    latest_schedule: Optional[LatestScheduleOut] = None


class ProductionGroupDetailResponse(BaseModel):
    success: bool = True
    message: str = "Production group retrieved successfully"
    data: ProductionGroupDetail
