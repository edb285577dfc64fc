"""Reconciliation of the schedule mirror columns."""

from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import update

from prodledger.models import ProductionSchedule
from prodledger.services.ledger import apply_manufactured_quantity
from prodledger.services.schedule_sync import reconcile_group_schedules


@pytest.mark.anyio
async def test_reconcile_rewrites_drifted_schedule(session, session_factory, ledger):
    await apply_manufactured_quantity(session, ledger["user"], 100, 40)

    async with session_factory() as writer:
        async with writer.begin():
            await writer.execute(
                update(ProductionSchedule)
                .where(ProductionSchedule.id == 50)
                .values(group_manufactured_quantity=Decimal("7"), group_balanced_quantity=Decimal("0"))
            )

    async with session_factory() as job:
        async with job.begin():
            drifts = await reconcile_group_schedules(job, 1, 100)

    assert sorted(d.field for d in drifts) == ["group_balanced_quantity", "group_manufactured_quantity"]
    assert {d.schedule_id for d in drifts} == {50}

    async with session_factory() as reader:
        schedule = await reader.get(ProductionSchedule, 50)
    assert schedule.group_manufactured_quantity == Decimal("40")
    assert schedule.group_balanced_quantity == Decimal("60")
    assert schedule.group_total_quantity == Decimal("100")

    async with session_factory() as job:
        async with job.begin():
            assert await reconcile_group_schedules(job, 1) == []


@pytest.mark.anyio
async def test_reconcile_ignores_other_companies(session, ledger):
    async with session.begin():
        assert await reconcile_group_schedules(session, 2) == []
