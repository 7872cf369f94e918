from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from compliance_lms.api.deps import get_assignment_notifier, get_db_session
from compliance_lms.api.main import app
from compliance_lms.core.auth import create_access_token
from compliance_lms.domain.services.assignment_email import AssignmentNotifier
from compliance_lms.infrastructure.db.base import Base
from compliance_lms.infrastructure.repositories.learning_store import SqlAlchemyLearningStore
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tests.utils import RecordingEmailClient


@pytest.fixture()
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture()
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Provide a database session for tests that need direct DB access."""
    async with session_factory() as session:
        yield session


@pytest.fixture()
def store(db: AsyncSession) -> SqlAlchemyLearningStore:
    return SqlAlchemyLearningStore(db)


@pytest.fixture()
def email_client() -> RecordingEmailClient:
    return RecordingEmailClient()


@pytest.fixture()
def notifier(email_client: RecordingEmailClient) -> AssignmentNotifier:
    return AssignmentNotifier(client=email_client, timeout_seconds=1.0)


@pytest.fixture()
async def async_client(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: AssignmentNotifier,
) -> AsyncIterator[AsyncClient]:
    """Async HTTP client wired to the in-memory database and the recording notifier."""

    async def override_db_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_assignment_notifier] = lambda: notifier

    transport = ASGITransport(app=app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.pop(get_db_session, None)
    app.dependency_overrides.pop(get_assignment_notifier, None)


@pytest.fixture()
def admin_token() -> str:
    """Generate admin JWT token for testing."""
    return create_access_token("admin-user", roles=["admin"])


@pytest.fixture()
def learner_token() -> str:
    """Generate learner JWT token for testing."""
    return create_access_token("learner-user", roles=["learner"])
