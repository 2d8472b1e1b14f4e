import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

TEST_DB = Path("./test.db")

TEST_ENV = {
    "DATABASE_URL": "sqlite:///./test.db",
    "REDIS_URL": "redis://localhost:6379/0",
    "CELERY_BROKER_URL": "redis://localhost:6379/0",
    "CELERY_RESULT_BACKEND": "redis://localhost:6379/1",
    "ENV": "test",
    "API_AUTH_ENABLED": "false",
    "CELERY_EAGER_MODE": "true",
    "OBSERVABILITY_ENABLED": "false",
}

# The Celery app and the FastAPI app read settings when first imported.
os.environ.update(TEST_ENV)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db_url():
    if TEST_DB.exists():
        TEST_DB.unlink()
    os.environ.update(TEST_ENV)

    from portal.core.config import get_settings
    from portal.db.session import reset_session_for_tests

    get_settings.cache_clear()
    reset_session_for_tests()

    yield

    reset_session_for_tests()
    if TEST_DB.exists():
        TEST_DB.unlink()


@pytest.fixture
def clean_db(setup_test_db_url):
    from portal.db.base import Base
    from portal.db.session import get_engine
    from portal.models import entities  # noqa: F401

    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    return engine


def _open_session():
    from portal.db.session import get_session_maker

    return get_session_maker()()


@pytest.fixture
def db_session(clean_db):
    session = _open_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def other_session(clean_db):
    session = _open_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(clean_db):
    from portal.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def producer():
    from portal.schemas.common import Actor
    from portal.state_machine.taxonomy import ActorRole

    return Actor(id="u-prod-1", name="Dana", role=ActorRole.producer)


@pytest.fixture
def acme(db_session):
    from portal.models.entities import ApprovalMode, Client

    record = Client(name="Acme", content_approval_mode=ApprovalMode.full_approval)
    db_session.add(record)
    db_session.commit()
    return record


@pytest.fixture
def reviewer(acme):
    from portal.schemas.common import Actor
    from portal.state_machine.taxonomy import ActorRole

    return Actor(id="u-client-1", name="Riley", role=ActorRole.client, client_id=acme.id)
