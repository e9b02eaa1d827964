import os
import sys
from pathlib import Path

from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import Session, sessionmaker

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TEST_DATABASE_URL = "sqlite://"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("APPROVAL_NOTIFICATION_WEBHOOK_URL", "")

from freight_approvals.constants.approvals import DEFAULT_OPERATION_TRIGGERS  # noqa: E402
from freight_approvals.database import Base, get_db  # noqa: E402
from freight_approvals.main import app  # noqa: E402
from freight_approvals.models import OperationTrigger, User  # noqa: E402
from freight_approvals.services.role_hierarchy import RoleHierarchy, set_role_hierarchy  # noqa: E402
from freight_approvals.services.trigger_registry import seed_default_triggers  # noqa: E402


def _create_testing_engine():
    return create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )


def _create_test_sessionmaker(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture(scope="session")
def engine():
    engine = _create_testing_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Session, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    connection = engine.connect()

    TestingSessionLocal = _create_test_sessionmaker(connection)
    session = TestingSessionLocal()

    set_role_hierarchy(RoleHierarchy.default())

    try:
        yield session
    finally:
        session.close()
        connection.close()


@pytest.fixture()
def default_triggers(db_session: Session) -> dict[str, OperationTrigger]:
    triggers = seed_default_triggers(db_session, DEFAULT_OPERATION_TRIGGERS)
    return {trigger.operation_code: trigger for trigger in triggers}


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    def _make_user(name: str, role_code: str = "operator", supervisor: User | None = None, **kwargs) -> User:
        user = User(
            name=name,
            role_code=role_code,
            supervisor_id=supervisor.id if supervisor else None,
            **kwargs,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


class PrefixedTestClient(TestClient):
    api_prefix = "/api"

    def request(self, method: str, url: str, *args, **kwargs):  # type: ignore[override]
        if url.startswith("/"):
            url = f"{self.api_prefix}{url}"
        return super().request(method, url, *args, **kwargs)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    client = PrefixedTestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.pop(get_db, None)
