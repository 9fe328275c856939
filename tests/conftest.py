"""
Shared fixtures.

Every test gets its own SQLite file through aiosqlite, with tables created
from the declarative metadata.
"""

import os
import tempfile
from datetime import datetime, timedelta

# Must be set before workscore.config is imported
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "workscore-test-app.db"),
)
os.environ.setdefault("CRON_SECRET_TOKEN", "test-cron-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workscore.database import Base
from workscore.models import registry  # noqa: F401
from workscore.models.user import Team, User
from workscore.models.work_item import WorkItem, COMPLETED, IN_PROGRESS

# A Monday; the default scoring week for most tests
WEEK_START = datetime(2026, 10, 5)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'workscore.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_team(db):
    async def _add(name="Engineering"):
        team = Team(name=name)
        db.add(team)
        await db.commit()
        return team
    return _add


@pytest.fixture
def add_user(db):
    counter = {"n": 0}

    async def _add(name=None, team_id=None, is_active=True):
        counter["n"] += 1
        user = User(
            name=name or f"User {counter['n']}",
            email=f"user{counter['n']}@example.com",
            team_id=team_id,
            is_active=is_active,
        )
        db.add(user)
        await db.commit()
        return user
    return _add


@pytest.fixture
def add_item(db):
    """Insert a work item; defaults to an in-progress task assigned on WEEK_START."""
    async def _add(assignees, **fields):
        fields.setdefault("title", "task")
        fields.setdefault("status", IN_PROGRESS)
        fields.setdefault("assigned_at", WEEK_START + timedelta(hours=9))
        fields.setdefault("updated_at", fields["assigned_at"])
        item = WorkItem(assignees=list(assignees), **fields)
        db.add(item)
        await db.commit()
        return item
    return _add


@pytest.fixture
def add_completed(add_item):
    """Completed item due mid-week, finished on time or `days_late` after the due date."""
    async def _add(assignees, days_late=0, **fields):
        due = fields.pop("due_date", WEEK_START + timedelta(days=3, hours=17))
        return await add_item(
            assignees,
            status=COMPLETED,
            due_date=due,
            completed_at=due + timedelta(days=days_late, hours=-1 if days_late == 0 else 0),
            **fields,
        )
    return _add


@pytest.fixture
def unreachable_factory():
    """Session factory for a database that refuses every connection."""
    def _factory():
        raise OperationalError("connect", {}, ConnectionRefusedError("could not connect to server"))
    return _factory
