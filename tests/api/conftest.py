"""
API test fixtures.
HTTP client wired to the test database, policy and notification doubles.
"""
from datetime import timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from backend.api.deps import create_access_token
from backend.database import get_db
from backend.main import app
from backend.services.access_policy import Actor, get_access_policy
from backend.services.notification_service import (
    get_notification_dispatcher,
    get_notification_sender,
)


def auth_headers(actor: Actor, expires_delta: Optional[timedelta] = None) -> dict[str, str]:
    """Create authorization headers carrying ``actor``'s claims."""
    token = create_access_token(actor, expires_delta=expires_delta)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(session_factory, policy, sender, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the application with test dependencies."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_access_policy] = lambda: policy
    app.dependency_overrides[get_notification_sender] = lambda: sender
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def applicant_headers(applicant) -> dict[str, str]:
    return auth_headers(applicant)


@pytest.fixture
def member_headers(member) -> dict[str, str]:
    return auth_headers(member)


@pytest.fixture
def manager_headers(manager) -> dict[str, str]:
    return auth_headers(manager)


@pytest.fixture
def admin_headers(admin) -> dict[str, str]:
    return auth_headers(admin)
