"""
Pytest configuration and fixtures for Tag Taxonomy API tests.
"""

import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from app.auth.dependencies import get_current_user
from app.cache import (
    InMemoryCacheBackend,
    ReadThroughCache,
    commit_and_invalidate,
    discard_invalidations,
    get_cache,
)
from app.config import Settings
from app.core.exceptions import OrchestrationUnavailableException
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.workflow import WorkflowExecutionStatus
from app.services.inheritance import ScopeContext
from app.services.orchestrator import WorkflowOrchestrator, get_orchestrator
from app.services.tag_service import TagService

# Test database URL (SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"


class FakeOrchestrator(WorkflowOrchestrator):
    """In-memory orchestrator recording every call."""

    def __init__(self, available: bool = True):
        self.available = available
        self.started: list[dict[str, Any]] = []
        self.cancelled: list[str] = []
        self.status = WorkflowExecutionStatus.RUNNING

    async def start(self, workflow_type: str, workflow_id: str, payload: dict[str, Any]) -> str:
        if not self.available:
            raise OrchestrationUnavailableException("Orchestrator unreachable")
        self.started.append({"type": workflow_type, "id": workflow_id, "payload": payload})
        return f"run-{len(self.started)}"

    async def describe(self, workflow_id: str) -> WorkflowExecutionStatus:
        if not self.available:
            raise OrchestrationUnavailableException("Orchestrator unreachable")
        return self.status

    async def cancel(self, workflow_id: str) -> None:
        if not self.available:
            raise OrchestrationUnavailableException("Orchestrator unreachable")
        self.cancelled.append(workflow_id)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Get test settings."""
    return Settings(
        DATABASE_URL=TEST_DATABASE_URL,
        CACHE_BACKEND="memory",
        ORCHESTRATOR_BACKEND="disabled",
        DEV_MODE=True,
        DEV_USER_ID="test-user-001",
        DEV_USER_EMAIL="test@marketplace.local",
        TAG_MAX_DEPTH=5,
        BULK_OPERATION_BATCH_SIZE=2,
        BULK_OPERATION_MAX_ITEMS=10,
    )


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()

    # Cleanup test database file
    if os.path.exists("./test.db"):
        os.remove("./test.db")


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def cache_backend() -> InMemoryCacheBackend:
    """Fresh in-memory cache backend per test."""
    return InMemoryCacheBackend()


@pytest.fixture
def cache(cache_backend) -> ReadThroughCache:
    return ReadThroughCache(cache_backend)


@pytest.fixture
def orchestrator() -> FakeOrchestrator:
    return FakeOrchestrator()


@pytest.fixture
def tag_service(db_session, cache, test_settings) -> TagService:
    return TagService(db_session, cache, test_settings)


@pytest.fixture
def platform() -> ScopeContext:
    return ScopeContext.platform()


@pytest.fixture
def tenant() -> ScopeContext:
    return ScopeContext.tenant(7)


@pytest_asyncio.fixture(scope="function")
async def client(db_session, cache, orchestrator) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db():
        try:
            yield db_session
            await commit_and_invalidate(db_session)
        except Exception:
            await db_session.rollback()
            discard_invalidations(db_session)
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def as_user():
    """
    Replace the authenticated user for the rest of the test.

    Usage:
        as_user(tenant_id=7, scopes=["tags:read"])
    """
    def _as_user(**claims: Any) -> dict[str, Any]:
        user = {
            "user_id": "user-001",
            "name": "Test User",
            "email": "user@marketplace.local",
            "tenant_id": None,
            "roles": [],
            "scopes": [],
        }
        user.update(claims)
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    return _as_user


@pytest.fixture
def sample_tag_data() -> dict[str, Any]:
    """Sample tag payload for testing."""
    return {
        "name": "Photography",
        "description": "Photo shoots and portfolios",
        "category": "skills",
    }


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Authorization headers for authenticated requests."""
    # In dev mode, no real token needed
    return {"Authorization": "Bearer dev-token"}
