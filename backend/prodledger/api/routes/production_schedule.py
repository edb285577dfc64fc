"""Production schedule endpoints, including the group quantity ledger."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from prodledger.core.audit import remote_addr
from prodledger.core.config import settings
from prodledger.core.db import get_session
from prodledger.core.deps import CurrentUser, get_current_user
from prodledger.core.idempotency import REPLAY_HEADER, optional_idempotency_key
from prodledger.core.rate_limit import limiter
from prodledger.schemas.group import (
    GroupAllocationOut,
    GroupLayerOut,
    LatestScheduleOut,
    MessageResponse,
    ProductionGroupDetail,
    ProductionGroupDetailResponse,
    ProductionGroupOut,
)
from prodledger.schemas.ledger import (
    GroupHistoryData,
    GroupHistoryOut,
    GroupHistoryResponse,
    HistoryGroupOut,
    LedgerUpdateOut,
    LedgerUpdateResponse,
    QuantityUpdatePayload,
)
from prodledger.schemas.schedule import (
    MyGroupScheduleOut,
    MyGroupsResponse,
    ProductionScheduleCreate,
    ProductionScheduleListResponse,
    ProductionScheduleOut,
    ProductionScheduleResponse,
    ProductionScheduleUpdate,
)
from prodledger.services import groups as group_service
from prodledger.services import schedules as schedule_service
from prodledger.services.history import list_group_history
from prodledger.services.ledger import apply_manufactured_quantity

router = APIRouter(prefix="/production-schedule", tags=["production-schedule"])


@router.patch("/group/update_quantity/{groupId}", response_model=LedgerUpdateResponse)
@limiter.limit(settings.LEDGER_UPDATE_RATE)
async def update_group_quantity(
    groupId: int,
    payload: QuantityUpdatePayload,
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> LedgerUpdateResponse:
    idempotency_key = optional_idempotency_key(request)
    result = await apply_manufactured_quantity(
        session,
        user,
        groupId,
        payload.manufactured_quantity,
        start_time=payload.start_time,
        end_time=payload.end_time,
        idempotency_key=idempotency_key,
        remote_addr=remote_addr(request),
    )
    if result.replayed:
        response.headers[REPLAY_HEADER] = "true"
    return LedgerUpdateResponse(
        message="Group quantity updated successfully",
        data=LedgerUpdateOut.model_validate(result),
    )


@router.get("/group/history/{group_id}", response_model=GroupHistoryResponse)
async def get_group_history(
    group_id: int,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> GroupHistoryResponse:
    history = await list_group_history(session, user, group_id)
    return GroupHistoryResponse(
        data=GroupHistoryData(
            production_group=HistoryGroupOut.model_validate(history["production_group"]),
            production_histories=[
                GroupHistoryOut.model_validate(row) for row in history["production_histories"]
            ],
        )
    )


@router.get("/group/{group_id}", response_model=ProductionGroupDetailResponse)
async def get_group_detail(
    group_id: int,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> ProductionGroupDetailResponse:
    overview = await group_service.group_overview(session, user, group_id)
    latest = overview["latest_schedule"]
    detail = ProductionGroupDetail(
        **ProductionGroupOut.model_validate(overview["group"]).model_dump(),
        layers=[GroupLayerOut.model_validate(layer) for layer in overview["layers"]],
        layers_status=overview["layers_status"],
        allocations=[GroupAllocationOut.model_validate(a) for a in overview["allocations"]],
        latest_schedule=LatestScheduleOut.model_validate(latest) if latest is not None else None,
    )
    return ProductionGroupDetailResponse(data=detail)


@router.post("/create", response_model=ProductionScheduleResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ProductionScheduleCreate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> ProductionScheduleResponse:
    schedule = await schedule_service.create_schedule(
        session, user, payload, remote_addr=remote_addr(request)
    )
    return ProductionScheduleResponse(
        message="Production schedule created successfully",
        data=ProductionScheduleOut.model_validate(schedule),
    )


@router.get("/get-all", response_model=ProductionScheduleListResponse)
async def list_schedules(
    group_id: Optional[int] = Query(default=None, gt=0),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> ProductionScheduleListResponse:
    schedules = await schedule_service.list_schedules(
        session, user, group_id=group_id, status=status_filter
    )
    return ProductionScheduleListResponse(
        data=[ProductionScheduleOut.model_validate(s) for s in schedules]
    )


@router.get("/get-by-id/{schedule_id}", response_model=ProductionScheduleResponse)
async def get_schedule(
    schedule_id: int,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> ProductionScheduleResponse:
    schedule = await schedule_service.get_schedule(session, user, schedule_id)
    return ProductionScheduleResponse(
        message="Production schedule retrieved successfully",
        data=ProductionScheduleOut.model_validate(schedule),
    )


@router.put("/update/{schedule_id}", response_model=ProductionScheduleResponse)
async def update_schedule(
    schedule_id: int,
    payload: ProductionScheduleUpdate,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> ProductionScheduleResponse:
    schedule = await schedule_service.update_schedule(
        session, user, schedule_id, payload, remote_addr=remote_addr(request)
    )
    return ProductionScheduleResponse(
        message="Production schedule updated successfully",
        data=ProductionScheduleOut.model_validate(schedule),
    )


@router.delete("/delete/{schedule_id}", response_model=MessageResponse)
async def delete_schedule(
    schedule_id: int,
    request: Request,
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> MessageResponse:
    await schedule_service.delete_schedule(session, user, schedule_id, remote_addr=remote_addr(request))
    return MessageResponse(message="Production schedule deleted successfully")


@router.get("/my-groups", response_model=MyGroupsResponse)
async def my_groups(
    session: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> MyGroupsResponse:
    rows = await schedule_service.my_group_schedules(session, user)
    return MyGroupsResponse(
        data=[
            MyGroupScheduleOut(
                **ProductionScheduleOut.model_validate(schedule).model_dump(),
                group_name=group.group_name,
                group_status=group.group_status,
                production_completed=group.production_completed,
            )
            for schedule, group in rows
        ]
    )
