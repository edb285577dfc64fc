"""Production group endpoints."""

from __future__ import annotations

import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from prodledger.core.audit import remote_addr
from prodledger.core.db import get_session
from prodledger.core.deps import CurrentUser, get_current_user
from prodledger.schemas.group import (
    MessageResponse,
    Pagination,
    ProductionGroupCreate,
    ProductionGroupListResponse,
    ProductionGroupOut,
    ProductionGroupPage,
    ProductionGroupResponse,
    ProductionGroupUpdate,
)
from prodledger.services import groups as group_service
from prodledger.services.allocation import parse_group_value

router = APIRouter(prefix="/production/production-group", tags=["production-group"])


def _group_out(group) -> ProductionGroupOut:
    out = ProductionGroupOut.model_validate(group)
    parsed = parse_group_value(group)
    if not parsed.failed:
        # Keep the raw value when it cannot be parsed so nothing is hidden from the client.
        out.group_value = parsed.items
    return out


@router.post("", response_model=ProductionGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_production_group(
    payload: ProductionGroupCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> ProductionGroupResponse:
    group = await group_service.create_group(session, user, payload, remote_addr=remote_addr(request))
    return ProductionGroupResponse(
        message="Production group created successfully", data=_group_out(group)
    )


@router.get("", response_model=ProductionGroupListResponse)
async def list_production_groups(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=200),
    group_name: Optional[str] = Query(default=None),
    status_filter: str = Query(default="active", alias="status"),
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> ProductionGroupListResponse:
    groups, total = await group_service.list_groups(
        session, user, page=page, limit=limit, group_name=group_name, status=status_filter
    )
    return ProductionGroupListResponse(
        data=ProductionGroupPage(
            production_groups=[_group_out(group) for group in groups],
            pagination=Pagination(
                total=total, page=page, limit=limit, totalPages=math.ceil(total / limit)
            ),
        )
    )


@router.get("/{group_id}", response_model=ProductionGroupResponse)
async def get_production_group(
    group_id: int,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> ProductionGroupResponse:
    group = await group_service.get_group(session, user, group_id)
    return ProductionGroupResponse(
        message="Production group retrieved successfully", data=_group_out(group)
    )


@router.put("/{group_id}", response_model=ProductionGroupResponse)
async def update_production_group(
    group_id: int,
    payload: ProductionGroupUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> ProductionGroupResponse:
    group = await group_service.update_group(
        session, user, group_id, payload, remote_addr=remote_addr(request)
    )
    return ProductionGroupResponse(
        message="Production group updated successfully", data=_group_out(group)
    )


@router.delete("/{group_id}", response_model=MessageResponse)
async def delete_production_group(
    group_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> MessageResponse:
    await group_service.delete_group(session, user, group_id, remote_addr=remote_addr(request))
    return MessageResponse(message="Production group deleted successfully")
