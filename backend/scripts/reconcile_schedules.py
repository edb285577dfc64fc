"""Rebuild the group quantity columns mirrored on production schedules.

Usage: python scripts/reconcile_schedules.py --company-id 7 [--group-id 12] [--dry-run]
"""

import argparse
import asyncio
import pathlib
import sys

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))

from prodledger.core.db import SessionLocal, engine, repeatable_read_transaction
from prodledger.core.logging import setup_logging
from prodledger.services.schedule_sync import reconcile_group_schedules


async def reconcile(company_id: int, group_id: int | None, dry_run: bool) -> int:
    async with SessionLocal() as session:
        if dry_run:
            drifts = await reconcile_group_schedules(session, company_id, group_id)
            await session.rollback()
        else:
            async with repeatable_read_transaction(session):
                drifts = await reconcile_group_schedules(session, company_id, group_id)

    for drift in drifts:
        print(
            f"schedule {drift.schedule_id} (group {drift.group_id}, employee {drift.employee_id}): "
            f"{drift.field} {drift.stored} -> {drift.expected}"
        )
    verb = "would be corrected" if dry_run else "corrected"
    print(f"{len(drifts)} drifted value(s) {verb}.")
    await engine.dispose()
    return len(drifts)


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--company-id", type=int, required=True)
    parser.add_argument("--group-id", type=int, default=None)
    parser.add_argument("--dry-run", action="store_true", help="report drift without writing")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(reconcile(args.company_id, args.group_id, args.dry_run))


if __name__ == "__main__":
    main()
