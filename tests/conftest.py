"""
Pytest configuration and fixtures for the AidlY analytics tests.

Provides:
- Async in-memory SQLite database with the ORM tables and a `tickets` table to report on
- A ReportExecutionService wired to tmp_path storage
- Test client for API testing with auth helpers
"""

from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from aidly.core.config import Settings, get_settings
from aidly.core.security import sign_session
from aidly.db import models  # noqa: F401  (registers tables)
from aidly.db.database import Base, get_session
from aidly.db.models import Report, ScheduledReport
from aidly.main import app
from aidly.services.report_execution import ReportExecutionService
from aidly.services.storage import LocalStorage

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TICKET_ROWS = [
    {"id": 1, "subject": "Printer offline", "status": "open", "created_at": "2024-01-08T09:15:00"},
    {"id": 2, "subject": 'Says "access denied"', "status": "open", "created_at": "2024-01-08T11:40:30"},
    {"id": 3, "subject": "Refund request", "status": "closed", "created_at": "2024-01-09T14:00:00"},
]


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=TEST_DATABASE_URL,
        storage_path=str(tmp_path / "storage"),
        business_days="1,2,3,4,5",
        business_hours_start="09:00",
        business_hours_end="18:00",
        timezone="UTC",
    )


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        await session.execute(
            text("CREATE TABLE tickets (id INTEGER PRIMARY KEY, subject TEXT, status TEXT, created_at TEXT)")
        )
        for row in TICKET_ROWS:
            await session.execute(
                text("INSERT INTO tickets (id, subject, status, created_at) VALUES (:id, :subject, :status, :created_at)"),
                row,
            )
        await session.commit()
        yield session
        await session.rollback()


@pytest.fixture
def storage(settings) -> LocalStorage:
    return LocalStorage(settings.storage_path)


@pytest.fixture
def report_service(db_session, storage) -> ReportExecutionService:
    return ReportExecutionService(db_session, storage, query_timeout_seconds=5)


@pytest_asyncio.fixture
async def create_report(db_session):
    """Factory for persisted reports."""

    async def _create(
        query_sql: str = "SELECT id, subject, status, created_at FROM tickets ORDER BY id",
        columns: list | None = None,
        **kwargs,
    ) -> Report:
        report = Report(
            name=kwargs.pop("name", "Open tickets"),
            query_sql=query_sql,
            columns=["id", "subject", "status", "created_at"] if columns is None else columns,
            output_format=kwargs.pop("output_format", "csv"),
            **kwargs,
        )
        db_session.add(report)
        await db_session.commit()
        return report

    return _create


@pytest_asyncio.fixture
async def create_schedule(db_session):
    """Factory for persisted report schedules."""

    async def _create(report: Report, next_run_at: datetime, **kwargs) -> ScheduledReport:
        schedule = ScheduledReport(report_id=report.id, next_run_at=next_run_at, **kwargs)
        db_session.add(schedule)
        await db_session.commit()
        return schedule

    return _create


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_settings] = lambda: settings

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {sign_session({'uid': 'admin-1', 'role': 'admin'})}"}


@pytest.fixture
def agent_headers() -> dict:
    return {"Authorization": f"Bearer {sign_session({'uid': 'agent-1', 'role': 'agent'})}"}
