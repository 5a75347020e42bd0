from datetime import date, datetime, timezone
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.context import AppContext, build_context
from app.database import Base
from app.main import app
from app.schemas import ActivityRecord
from app.services.auth import hash_password
from app.services.notifications import Notifier

# In-memory SQLite for tests, isolated from the real database and fresh per test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

DEFAULT_PASSWORD = "nurse-pass-123"


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def scheduler() -> AsyncGenerator[AsyncIOScheduler, None]:
    sched = AsyncIOScheduler(timezone="UTC")
    sched.start()
    yield sched
    sched.shutdown(wait=False)


@pytest_asyncio.fixture
async def ctx(session_factory, scheduler) -> AsyncGenerator[AppContext, None]:
    context = build_context(settings, session_factory, scheduler=scheduler, notifier=Notifier(api_key=""))
    yield context
    for view in context.views.values():
        view.stop()
    await context.notifier.aclose()


@pytest_asyncio.fixture
async def client(ctx: AppContext) -> AsyncGenerator[AsyncClient, None]:
    app.state.context = ctx
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture
def make_record() -> Callable[..., ActivityRecord]:
    counter = {"n": 0}

    def _make(**overrides) -> ActivityRecord:
        counter["n"] += 1
        values = {
            "id": f"act-{counter['n']}",
            "title": f"Activity {counter['n']}",
            "type": "General",
            "description": None,
            "facility": None,
            "duration": 30,
            "date": date(2024, 2, 10),
            "submitted_by": "nurse@nakuru.go.ke",
            "created_at": datetime(2024, 2, 10, 8, 0, tzinfo=timezone.utc),
        }
        values.update(overrides)
        return ActivityRecord(**values)

    return _make


@pytest.fixture
def make_profile(ctx: AppContext):
    async def _make(
        email: str,
        role: str = "Staff Nurse",
        status: str = "active",
        password: str = DEFAULT_PASSWORD,
        is_admin: bool = False,
    ) -> dict:
        result = await ctx.storage.insert(
            "profiles",
            {
                "email": email,
                "full_name": email.split("@")[0].title(),
                "role": role,
                "status": status,
                "is_admin": is_admin,
                "password_hash": hash_password(password),
            },
        )
        return result.unwrap()

    return _make


@pytest_asyncio.fixture
async def nurse_client(client: AsyncClient, make_profile) -> AsyncClient:
    await make_profile("nurse@nakuru.go.ke")
    response = await client.post(
        "/auth/login", json={"email": "nurse@nakuru.go.ke", "password": DEFAULT_PASSWORD}
    )
    assert response.status_code == 200
    return client


@pytest_asyncio.fixture
async def admin_client(client: AsyncClient, make_profile) -> AsyncClient:
    await make_profile("admin@nakuru.go.ke", role="System Administrator", is_admin=True)
    response = await client.post(
        "/auth/login", json={"email": "admin@nakuru.go.ke", "password": DEFAULT_PASSWORD}
    )
    assert response.status_code == 200
    return client
