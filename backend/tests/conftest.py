"""
Test fixtures for the Hope Bridge Operations API.

The app runs in-process through ``httpx.ASGITransport`` against a fresh
in-memory SQLite database per test (``get_db`` is overridden). One active
user is seeded for every role; ``headers[UserRole.X]`` carries that user's
bearer token.
"""
import uuid
from datetime import timedelta

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hopebridge.database import Base, get_db
from hopebridge.main import app
from hopebridge.middleware.auth import hash_password, token_for_user
from hopebridge.models.base import utcnow
from hopebridge.models.task import Task
from hopebridge.models.user import User
from hopebridge.rbac import ROLE_DISPLAY_NAMES, UserRole

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
BASE_URL = "http://testserver"
PASSWORD = "hopebridge123"

# bcrypt is slow; hash once for every seeded user.
_PASSWORD_HASH = hash_password(PASSWORD)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def auth_headers(token: str) -> dict:
    """Return auth header dict for a given token."""
    return {"Authorization": f"Bearer {token}"}


def email_for(role: UserRole) -> str:
    return f"{role.value.lower()}@hopebridge.org"


def simple_form(required: bool = True) -> dict:
    return {
        "title": "Field report",
        "description": "What was done on site",
        "fields": [
            {"id": "summary", "type": "textarea", "label": "Summary", "required": required},
            {"id": "hours", "type": "number", "label": "Hours spent", "required": False},
        ],
        "instructions": "Fill in after the visit",
    }


async def add_user(session_factory, role: str, name: str | None = None, is_active: bool = True) -> User:
    """Insert one extra user directly."""
    async with session_factory() as session:
        user = User(
            name=name or f"Extra {role}",
            email=f"extra-{uuid.uuid4().hex[:8]}@hopebridge.org",
            password_hash=_PASSWORD_HASH,
            role=role,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        return user


async def add_task(session_factory, assignee: User, assigner: User, **overrides) -> Task:
    """Insert a task directly, bypassing the API (for sweep tests)."""
    values = dict(
        title="Distribute hygiene kits",
        description="Kits for the northern camps",
        assigned_by=assigner.id,
        assigned_by_name=assigner.name,
        assigned_by_role=assigner.role,
        assigned_to=assignee.id,
        assigned_to_name=assignee.name,
        assigned_to_role=assignee.role,
        status="PENDING",
        priority="high",
        form_data=simple_form(),
        due_date=utcnow() + timedelta(days=3),
    )
    values.update(overrides)
    async with session_factory() as session:
        task = Task(**values)
        session.add(task)
        await session.commit()
        return task


# ---------------------------------------------------------------------------
# Database & client
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory database with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def client(session_factory):
    """Async HTTP client bound to the app, with ``get_db`` overridden."""

    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=BASE_URL) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seed users, one per role
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def users(session_factory) -> dict:
    """``{UserRole: User}`` for every role."""
    async with session_factory() as session:
        rows = {
            role: User(
                name=f"{ROLE_DISPLAY_NAMES[role]} Tester",
                email=email_for(role),
                password_hash=_PASSWORD_HASH,
                role=role.value,
                department="Operations",
                is_active=True,
                email_verified=True,
            )
            for role in UserRole
        }
        session.add_all(rows.values())
        await session.commit()
    return rows


@pytest.fixture
def headers(users) -> dict:
    """``{UserRole: auth headers}`` for every seeded user."""
    return {role: auth_headers(token_for_user(user)) for role, user in users.items()}
