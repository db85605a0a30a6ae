"""
Grant Portal Test Configuration and Fixtures
Shared pytest fixtures for all test modules.
"""
import os
import tempfile
from datetime import timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from backend.models import Base, GrantCycleConfig, Organization, User, utcnow
from backend.services.access_policy import AccessPolicy, Actor, build_default_policy
from backend.services.notification_service import (
    NotificationDispatcher,
    NotificationIntent,
    NotificationSender,
)
from tests.fixtures.factories import (
    GrantCycleFactory,
    OrganizationFactory,
    UserFactory,
    applicant_actor,
    staff_actor,
)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create an async SQLite engine for testing."""
    # Use a unique temp file for each test to ensure complete isolation
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        echo=False,
    )

    # pysqlite's implicit transactions break SAVEPOINT; take over BEGIN
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()

    # Clean up the temp file
    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest_asyncio.fixture(scope="function")
async def session_factory(async_engine) -> async_sessionmaker:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create an async session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Notification Fakes
# =============================================================================


class RecordingSender(NotificationSender):
    """Sender that records intents instead of emailing them."""

    def __init__(self, fail_for: tuple[str, ...] = (), raise_for: tuple[str, ...] = ()):
        self.sent: list[NotificationIntent] = []
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)

    async def send(self, intent: NotificationIntent) -> bool:
        if self.raise_for.intersection(intent.recipients):
            raise ConnectionError("provider unreachable")
        if self.fail_for.intersection(intent.recipients):
            return False
        self.sent.append(intent)
        return True


class RecordingDispatcher(NotificationDispatcher):
    """Dispatcher that keeps every intent it is handed."""

    def __init__(self):
        self.intents: list[NotificationIntent] = []

    async def dispatch(self, intent: NotificationIntent) -> None:
        self.intents.append(intent)

    def kinds(self) -> list[str]:
        return [intent.kind.value for intent in self.intents]


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def policy() -> AccessPolicy:
    """Default rule chain without any environment-provided admin override."""
    return build_default_policy(override_emails=[])


# =============================================================================
# Seeded Records
# =============================================================================


@pytest_asyncio.fixture
async def cycle(async_session: AsyncSession) -> GrantCycleConfig:
    """Active cycle accepting LOIs and applications, deadline a week out."""
    config = GrantCycleFactory.create(
        is_active=True,
        accepting_lois=True,
        accepting_applications=True,
        loi_deadline=utcnow() + timedelta(days=7),
    )
    async_session.add(config)
    await async_session.commit()
    return config


@pytest_asyncio.fixture
async def organization(async_session: AsyncSession) -> Organization:
    org = OrganizationFactory.create(profile_complete=True)
    async_session.add(org)
    await async_session.commit()
    return org


@pytest_asyncio.fixture
async def org_user(async_session: AsyncSession, organization: Organization) -> User:
    user = UserFactory.create(organization_id=organization.id)
    async_session.add(user)
    await async_session.commit()
    return user


@pytest_asyncio.fixture
async def other_organization(async_session: AsyncSession) -> Organization:
    org = OrganizationFactory.create(profile_complete=True)
    async_session.add(org)
    await async_session.commit()
    return org


# =============================================================================
# Actors
# =============================================================================


@pytest.fixture
def applicant(organization: Organization, org_user: User) -> Actor:
    return applicant_actor(org_user)


@pytest.fixture
def outsider(other_organization: Organization) -> Actor:
    return Actor(
        id="user_outsider",
        display_name="Other Applicant",
        email="applicant@other.org",
        organization_id=other_organization.id,
    )


@pytest.fixture
def member() -> Actor:
    return staff_actor("org:member")


@pytest.fixture
def manager() -> Actor:
    return staff_actor("org:manager")


@pytest.fixture
def admin() -> Actor:
    return staff_actor("org:admin")
