"""Shared fixtures: in-memory SQLite store, fakeredis queue, API client."""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from scanmark.core.database import build_engine, create_tables, get_db
from scanmark.core.dependencies import get_queue
from scanmark.core.queue import ImportQueue
from scanmark.services.importer import ImportService
from scanmark.worker import ImportWorker


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=Session, expire_on_commit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def queue(redis_client):
    return ImportQueue(
        redis_client,
        name="test-imports",
        max_attempts=3,
        retry_base_seconds=10,
        status_ttl=3600,
    )


@pytest.fixture
def importer(session_factory):
    return ImportService(session_factory)


@pytest.fixture
def worker(queue, importer):
    return ImportWorker(queue, importer, heartbeat_interval=60)


@pytest.fixture
def client(session_factory, queue):
    from scanmark.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_queue] = lambda: queue
    yield TestClient(app)
    app.dependency_overrides.clear()
