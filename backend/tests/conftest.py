import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

# Ensure required environment variables are present before settings import
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

# Add the backend directory so `prodledger` package imports resolve during tests
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.append(str(BACKEND_DIR))

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from prodledger.core.db import get_session  # noqa: E402
from prodledger.core.deps import CurrentUser  # noqa: E402
from prodledger.core.rate_limit import limiter  # noqa: E402
from prodledger.core.security import create_access_token  # noqa: E402
from prodledger.models import (  # noqa: E402
    Base,
    Employee,
    Machine,
    ProductionGroup,
    ProductionSchedule,
    User,
)

COMPANY_ID = 1
OTHER_COMPANY_ID = 2


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def ledger(session_factory):
    """One company with an operator, a machine, a 100-unit group and the operator's schedule."""

    async with session_factory() as session:
        async with session.begin():
            user = User(id=10, company_id=COMPANY_ID, name="Asha Operator", email="asha@example.com")
            other_user = User(id=11, company_id=COMPANY_ID, name="Ravi Operator")
            employee = Employee(id=1, company_id=COMPANY_ID, user_id=10, employee_id="EMP-00001")
            other_employee = Employee(id=2, company_id=COMPANY_ID, user_id=11, employee_id="EMP-00002")
            machine = Machine(id=5, company_id=COMPANY_ID, machine_name="Press 1", machine_type="press")
            group = ProductionGroup(
                id=100,
                company_id=COMPANY_ID,
                group_name="Batch A",
                group_qty=Decimal("100"),
                manufactured_qty=Decimal("0"),
                balance_manufacture_qty=Decimal("100"),
                created_by=10,
            )
            session.add_all([user, other_user, employee, other_employee, machine, group])
            await session.flush()
            schedule = ProductionSchedule(
                id=50,
                company_id=COMPANY_ID,
                employee_id=1,
                user_id=10,
                machine_id=5,
                group_id=100,
                task_name="Press batch A",
                date=date.today(),
                group_total_quantity=Decimal("100"),
                group_manufactured_quantity=Decimal("0"),
                group_balanced_quantity=Decimal("100"),
            )
            session.add(schedule)
    return {
        "user": CurrentUser(id=10, company_id=COMPANY_ID),
        "employee_id": 1,
        "other_employee_id": 2,
        "machine_id": 5,
        "group_id": 100,
        "schedule_id": 50,
    }


@pytest.fixture
def operator() -> CurrentUser:
    return CurrentUser(id=10, company_id=COMPANY_ID)


@pytest.fixture
def auth_headers():
    token = create_access_token({"id": 10, "company_id": COMPANY_ID})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory):
    from prodledger.main import app

    async def _override_session():
        async with session_factory() as session:
            yield session

    limiter.enabled = False
    app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
