"""Read-side reconstruction of what a production group is made of.

``group_value`` on a group and ``work_order_sku_values`` on a work order are
JSON lists written by other services. Parsing is lenient: bad JSON never
fails the request, but the result is tagged so callers (and the logs) can
tell a genuinely empty list from corrupt data.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prodledger.models.allocation_history import AllocationHistory
from prodledger.models.inventory import Inventory
from prodledger.models.production_group import ProductionGroup
from prodledger.models.work_order import WorkOrder


class ParseStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    PARSE_FAILED = "parse_failed"


@dataclass(frozen=True, slots=True)
class ParsedList:
    status: ParseStatus
    items: list[dict[str, Any]] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.status is ParseStatus.PARSE_FAILED


@dataclass(frozen=True, slots=True)
class GroupLayers:
    status: ParseStatus
    layers: list[dict[str, Any]]


def _failed(field_name: str, owner_id: Any, reason: str) -> ParsedList:
    logger.bind(field=field_name, owner_id=owner_id, reason=reason).warning(f"{field_name}_parse_failed")
    return ParsedList(ParseStatus.PARSE_FAILED)


def parse_json_list(raw: Any, *, field_name: str, owner_id: Any = None) -> ParsedList:
    """Parse a JSON-encoded list of objects without ever raising.

    Accepts an already-decoded list, a JSON string, or a JSON string that was
    encoded twice (some writers store ``JSON.stringify`` output in a JSON
    column). Non-object entries are dropped.
    """

    if raw is None or raw == "" or raw == b"":
        return ParsedList(ParseStatus.EMPTY)

    value = raw
    for _ in range(2):
        if not isinstance(value, (str, bytes, bytearray)):
            break
        try:
            value = json.loads(value)
        except (TypeError, ValueError) as exc:
            return _failed(field_name, owner_id, str(exc))

    if value is None:
        return ParsedList(ParseStatus.EMPTY)
    if not isinstance(value, list):
        return _failed(field_name, owner_id, f"expected a list, got {type(value).__name__}")

    items = [item for item in value if isinstance(item, dict)]
    if len(items) != len(value):
        logger.bind(
            field=field_name, owner_id=owner_id, dropped=len(value) - len(items)
        ).warning(f"{field_name}_entries_skipped")
    if not items:
        return ParsedList(ParseStatus.EMPTY)
    return ParsedList(ParseStatus.OK, items)


def parse_group_value(group: ProductionGroup) -> ParsedList:
    return parse_json_list(group.group_value, field_name="group_value", owner_id=group.id)


def parse_sku_layers(work_order: WorkOrder) -> ParsedList:
    return parse_json_list(
        work_order.work_order_sku_values,
        field_name="work_order_sku_values",
        owner_id=work_order.id,
    )


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _combine(statuses: Iterable[ParseStatus], has_layers: bool) -> ParseStatus:
    if any(status is ParseStatus.PARSE_FAILED for status in statuses):
        return ParseStatus.PARSE_FAILED
    return ParseStatus.OK if has_layers else ParseStatus.EMPTY


async def build_group_layers(session: AsyncSession, group: ProductionGroup) -> GroupLayers:
    """Zip the group's ``{work_order_id, layer_id}`` refs back into full layer rows."""

    refs = parse_group_value(group)
    if not refs.items:
        return GroupLayers(refs.status, [])

    work_order_ids = {wid for wid in (_as_int(ref.get("work_order_id")) for ref in refs.items) if wid is not None}
    work_orders: dict[int, WorkOrder] = {}
    if work_order_ids:
        result = await session.execute(
            select(WorkOrder)
            .where(WorkOrder.company_id == group.company_id)
            .where(WorkOrder.id.in_(sorted(work_order_ids)))
        )
        work_orders = {wo.id: wo for wo in result.scalars().all()}

    statuses = [refs.status]
    layers_by_order: dict[int, dict[str, dict[str, Any]]] = {}
    for wo_id, work_order in work_orders.items():
        parsed = parse_sku_layers(work_order)
        statuses.append(parsed.status)
        layers_by_order[wo_id] = {
            str(layer.get("layer_id")): layer for layer in parsed.items if layer.get("layer_id") is not None
        }

    layers: list[dict[str, Any]] = []
    for ref in refs.items:
        wo_id = _as_int(ref.get("work_order_id"))
        work_order = work_orders.get(wo_id) if wo_id is not None else None
        if work_order is None:
            continue
        layer = layers_by_order.get(wo_id, {}).get(str(ref.get("layer_id")))
        if layer is None:
            continue
        layers.append(
            {
                **layer,
                "work_order_id": work_order.id,
                "work_generate_id": work_order.work_generate_id,
                "sku_name": work_order.sku_name,
                "priority": work_order.priority,
                "edd": work_order.edd,
                "stage": work_order.stage,
            }
        )

    return GroupLayers(_combine(statuses, bool(layers)), layers)


async def load_group_allocations(
    session: AsyncSession, company_id: int, group_id: int
) -> list[dict[str, Any]]:
    """Inventory lots allocated to the group, oldest allocation first."""

    rows = await session.execute(
        select(
            AllocationHistory.id,
            AllocationHistory.inventory_id,
            AllocationHistory.allocated_qty,
            AllocationHistory.created_at,
            Inventory.item_code,
            Inventory.description,
            Inventory.batch_no,
            Inventory.quantity_available,
        )
        .join(Inventory, Inventory.id == AllocationHistory.inventory_id)
        .where(AllocationHistory.company_id == company_id)
        .where(AllocationHistory.group_id == group_id)
        .where(AllocationHistory.status == "active")
        .order_by(AllocationHistory.created_at, AllocationHistory.id)
    )
    return [
        {
            "allocation_id": allocation_id,
            "inventory_id": inventory_id,
            "item_code": item_code,
            "description": description,
            "batch_no": batch_no,
            "allocated_qty": Decimal(allocated or 0),
            "quantity_available": Decimal(available or 0),
            "allocated_at": allocated_at,
        }
        for (
            allocation_id,
            inventory_id,
            allocated,
            allocated_at,
            item_code,
            description,
            batch_no,
            available,
        ) in rows.all()
    ]
