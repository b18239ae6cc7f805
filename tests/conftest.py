import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "testing"

import uuid
from typing import AsyncGenerator, Dict, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from planboard.main import app
from planboard.core.security import TokenManager
from planboard.db.client import get_db, create_tables
from planboard.models import (
    User,
    SystemRole,
    Project,
    ProjectStatus,
    TeamMember,
    TeamRole,
    Task,
    TaskAssignee,
)
from planboard.services.project_status_service import ProjectStatusService

# In-memory SQLite shared across the session's connections
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def get_unique_id() -> str:
    """Get unique identifier for test data."""
    return str(uuid.uuid4())[:8]


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create a fresh in-memory database with all tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # SQLAlchemy emits BEGIN itself so SAVEPOINT works on SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_db(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with async_session() as session:
        yield session


@pytest_asyncio.fixture
async def client(test_db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with overridden database dependency."""

    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client

    # Cleanup
    app.dependency_overrides.clear()


# ==========================================
# Data helpers
# ==========================================


async def create_user(
    db: AsyncSession, role: SystemRole = SystemRole.USER, name: Optional[str] = None
) -> User:
    unique_id = get_unique_id()
    user = User(
        email=f"user_{unique_id}@example.com",
        name=name or f"User {unique_id}",
        role=role,
    )
    db.add(user)
    await db.commit()
    return user


async def add_member(
    db: AsyncSession, project: Project, user: User, role: TeamRole = TeamRole.MEMBER
) -> TeamMember:
    member = TeamMember(project_id=project.id, user_id=user.id, role=role)
    db.add(member)
    await db.commit()
    return member


async def assign(db: AsyncSession, task: Task, user: User) -> TaskAssignee:
    assignee = TaskAssignee(task_id=task.id, user_id=user.id)
    db.add(assignee)
    await db.commit()
    return assignee


async def create_task_row(
    db: AsyncSession,
    project: Project,
    title: str,
    order: int = 0,
    parent: Optional[Task] = None,
    status: Optional[ProjectStatus] = None,
) -> Task:
    """Insert a task directly, bypassing the mutation service."""
    task = Task(
        title=title,
        project_id=project.id,
        parent_id=parent.id if parent else None,
        status_id=status.id if status else None,
        order=order,
    )
    db.add(task)
    await db.commit()
    return task


def auth_headers(user: User) -> Dict[str, str]:
    token = TokenManager.create_access_token(
        subject=user.email, user_id=str(user.id), role=user.role.value
    )
    return {"Authorization": f"Bearer {token}"}


# ==========================================
# Fixtures
# ==========================================


@pytest_asyncio.fixture
async def admin(test_db: AsyncSession) -> User:
    return await create_user(test_db, SystemRole.ADMIN, "Admin")


@pytest_asyncio.fixture
async def owner(test_db: AsyncSession) -> User:
    return await create_user(test_db, SystemRole.USER, "Owner")


@pytest_asyncio.fixture
async def member(test_db: AsyncSession) -> User:
    return await create_user(test_db, SystemRole.USER, "Member")


@pytest_asyncio.fixture
async def outsider(test_db: AsyncSession) -> User:
    return await create_user(test_db, SystemRole.USER, "Outsider")


@pytest_asyncio.fixture
async def project(test_db: AsyncSession, owner: User, member: User) -> Project:
    """Project owned by `owner` with `member` on the team."""
    project = Project(name=f"Project {get_unique_id()}", created_by_id=owner.id)
    test_db.add(project)
    await test_db.commit()
    await add_member(test_db, project, member)
    return project


@pytest_asyncio.fixture
async def statuses(test_db: AsyncSession, project: Project) -> Dict[str, ProjectStatus]:
    """Default columns keyed by name."""
    created = await ProjectStatusService(test_db).create_default_statuses(project.id)
    return {status.name: status for status in created}
