# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from typing import Any

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("NS_VERIFY_TOKEN_SECRET", "test-token-secret")
os.environ.setdefault("ADMIN_PASSWORD", "correct horse battery staple")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("DUMP_REFRESH_ENABLED", "false")
os.environ.setdefault("ADMIN_COOKIE_SECURE", "false")
os.environ.setdefault("DUMP_TRIGGER_SECRET", "test-trigger-secret")

from fastapi import FastAPI  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from open_letter.api.v1 import dependencies  # noqa: E402
from open_letter.core.settings import settings  # noqa: E402
from open_letter.db.session import Base  # noqa: E402
from open_letter.db.session import get_db as app_get_session  # noqa: E402
from open_letter.main import app as fastapi_app  # noqa: E402
from open_letter.services.nation_lookup import NationLookupService  # noqa: E402
from open_letter.services.nationstates import NationStatesClient  # noqa: E402

TEST_DB_URL = "sqlite://"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    """Sessions bound to the shared in-memory database."""
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session(engine: Engine, session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()

        # Ensure each test sees a clean database; code under test commits.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def mock_ns_client(mocker: Any) -> Any:
    """An async stand-in for the NationStates client; verification succeeds by default."""
    client = mocker.AsyncMock(spec=NationStatesClient)
    client.verify.return_value = True
    client.fetch_nation.return_value = None
    return client


@pytest.fixture(autouse=True)
def override_nationstates_dependencies(app: FastAPI, mock_ns_client: Any) -> Iterator[None]:
    """Keep every request inside the test process: no live NationStates calls."""
    lookup = NationLookupService(mock_ns_client, live_fallback=False)
    app.dependency_overrides[dependencies.get_nationstates_client_dep] = lambda: mock_ns_client
    app.dependency_overrides[dependencies.get_nation_lookup_dep] = lambda: lookup
    try:
        yield
    finally:
        app.dependency_overrides.pop(dependencies.get_nationstates_client_dep, None)
        app.dependency_overrides.pop(dependencies.get_nation_lookup_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def admin_client(client: TestClient) -> TestClient:
    """A client logged in through the admin endpoint."""
    response = client.post("/api/v1/admin/login", json={"password": settings.admin_password})
    assert response.status_code == 200
    return client
