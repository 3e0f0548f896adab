"""Pytest configuration and fixtures for the catalog search service."""

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.connection import get_db, init_db
from services.cache_service import CacheService, get_redis_client
from services.performance_monitor import PerformanceMonitor
from services.search_service import SearchService


@pytest.fixture()
def db_session():
    """Fresh in-memory SQLite catalog per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def redis_client():
    """Fake Redis with its own server so tests never share cache state."""
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer())
    try:
        yield client
    finally:
        client.flushall()


@pytest.fixture()
def cache(redis_client):
    return CacheService(redis_client)


@pytest.fixture()
def monitor(redis_client):
    return PerformanceMonitor(redis_client)


@pytest.fixture()
def service(db_session, cache, monitor):
    return SearchService(db_session, cache=cache, monitor=monitor, cache_enabled=True)


@pytest.fixture()
def client(db_session, redis_client):
    """TestClient wired to the in-memory database and fake Redis."""
    from main import app

    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_redis_client] = lambda: redis_client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.dependency_overrides.pop(get_redis_client, None)
