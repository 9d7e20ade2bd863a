"""
Test configuration and fixtures.

Provides:
- A throwaway SQLite database, rebuilt for every test
- Profile fixtures for a care seeker and two providers
- HTTPX AsyncClient factory acting as a given profile (JWT cookie + CSRF header)
"""
import os
import tempfile
import uuid
from typing import Any, AsyncGenerator, Callable, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

# Configure before the app (and its engine) is imported
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = f"sqlite:///{tempfile.mkdtemp()}/care_connections_test.db"

from care_connections.main import app
from care_connections.core.deps import COOKIE_NAME, get_db
from care_connections.core.security import create_session_token
from care_connections.db.base import Base
from care_connections.db.enums import ConnectionStatus, ConnectionType, ProfileType
from care_connections.db.models import Connection, Profile
from care_connections.db.session import SessionLocal, engine
from care_connections.services import connection_service, connection_status_service


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    Services commit their own unit of work, so isolation comes from
    recreating the tables rather than from a rolled-back transaction.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


def make_profile(db: Session, **overrides: Any) -> Profile:
    values: dict[str, Any] = {
        "id": uuid.uuid4(),
        "account_id": uuid.uuid4(),
        "type": ProfileType.FAMILY.value,
        "display_name": "Test Profile",
        "city": "Houston",
        "state": "TX",
        "care_types": [],
        "metadata_": {},
    }
    values.update(overrides)
    profile = Profile(**values)
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture(scope="function")
def seeker(db: Session) -> Profile:
    """Care seeker looking for home care for a parent."""
    return make_profile(
        db,
        display_name="Maria Lopez",
        care_types=["Home Care"],
        metadata_={
            "relationship_to_recipient": "parent",
            "timeline": "asap",
            "payment_methods": ["Medicaid"],
        },
    )


@pytest.fixture(scope="function")
def provider(db: Session) -> Profile:
    """Home care agency in the seeker's city."""
    return make_profile(
        db,
        type=ProfileType.ORGANIZATION.value,
        display_name="Sunrise Home Care",
        care_types=["Home Care", "Memory Care"],
        metadata_={"accepts_medicaid": True, "accepts_medicare": True},
    )


@pytest.fixture(scope="function")
def other_provider(db: Session) -> Profile:
    """Provider with no relationship to the fixtures' connections."""
    return make_profile(
        db,
        type=ProfileType.ORGANIZATION.value,
        display_name="Lakeside Assisted Living",
        city="Dallas",
        care_types=["Assisted Living"],
    )


# =============================================================================
# Connection Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def inquiry(db: Session, seeker: Profile, provider: Profile) -> Connection:
    """Pending inquiry seeker -> provider."""
    connection, _ = connection_service.create_connection(
        db, seeker.id, provider.id, ConnectionType.INQUIRY.value
    )
    return connection


@pytest.fixture(scope="function")
def accepted_inquiry(db: Session, inquiry: Connection, provider: Profile) -> Connection:
    """Inquiry the provider has accepted."""
    connection = connection_status_service.set_status(db, inquiry.id, provider.id, "accept")
    assert connection.status == ConnectionStatus.ACCEPTED.value
    return connection


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client_for(
    db: Session,
) -> AsyncGenerator[Callable[..., AsyncClient], None]:
    """
    Factory for AsyncClients authenticated as a given profile.

    Every client shares the test session through the get_db override.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    clients: list[AsyncClient] = []

    def _make(profile: Profile | None, csrf: bool = True) -> AsyncClient:
        cookies = {}
        if profile is not None:
            cookies[COOKIE_NAME] = create_session_token(profile.account_id, profile.id)
        headers = {"X-Requested-With": "XMLHttpRequest"} if csrf else {}
        client = AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies=cookies,
            headers=headers,
        )
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()
