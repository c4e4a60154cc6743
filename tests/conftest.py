"""Pytest fixtures for engine and API tests."""

import os
import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("OFFLINE_QUEUE_URL", "sqlite://")
os.environ.setdefault("STORAGE_RETRY_BACKOFF_SECONDS", "0")
os.environ.setdefault("STORAGE_RETRY_MAX_WAIT_SECONDS", "0")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from vocab_progress.api.deps import (
    get_clock,
    get_local_session_factory,
    get_session_factory,
    reset_facades,
)
from vocab_progress.db import models  # noqa: F401  # Imported for side effects
from vocab_progress.db.base import Base, LocalBase
from vocab_progress.main import create_app
from vocab_progress.services.facade import ProgressFacade
from vocab_progress.services.offline_queue import OfflineQueue
from vocab_progress.services.progress_store import ProgressStore

USER_ID = uuid.UUID("7d0f1c64-2b8e-4a57-9d3c-5f0f4b1a2c11")


class FakeClock:
    """Callable clock the tests move forward by hand."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FlakySessionFactory:
    """Session factory that can simulate a lost connection to the store.

    ``fail_after`` lets that many more sessions through before the
    connection drops.
    """

    def __init__(self, bind) -> None:
        self._factory = sessionmaker(
            autocommit=False, autoflush=False, bind=bind, expire_on_commit=False
        )
        self.online = True
        self.fail_after: int | None = None
        self.failures = 0

    def __call__(self) -> Session:
        if self.fail_after is not None:
            if self.fail_after <= 0:
                self.online = False
                self.fail_after = None
            else:
                self.fail_after -= 1
        if not self.online:
            self.failures += 1
            raise OperationalError("SELECT 1", {}, ConnectionError("network is unreachable"))
        return self._factory()


def _memory_engine():
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
def user_id() -> uuid.UUID:
    return USER_ID


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc))


@pytest.fixture()
def db_engine():
    engine = _memory_engine()
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def local_engine():
    engine = _memory_engine()
    LocalBase.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        LocalBase.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def remote_factory(db_engine) -> FlakySessionFactory:
    return FlakySessionFactory(db_engine)


@pytest.fixture()
def local_factory(local_engine):
    return sessionmaker(
        autocommit=False, autoflush=False, bind=local_engine, expire_on_commit=False
    )


@pytest.fixture()
def queue(local_factory) -> OfflineQueue:
    return OfflineQueue(local_factory, user_id=USER_ID)


@pytest.fixture()
def store(remote_factory, queue) -> ProgressStore:
    return ProgressStore(
        remote_factory,
        queue,
        user_id=USER_ID,
        retry_attempts=2,
        retry_backoff=0,
        retry_max_wait=0,
    )


@pytest.fixture()
def facade(store, clock) -> ProgressFacade:
    facade = ProgressFacade(store, clock=clock)
    facade.load()
    return facade


@pytest.fixture()
def client(remote_factory, local_factory, clock) -> Generator[TestClient, None, None]:
    app = create_app()
    app.dependency_overrides[get_session_factory] = lambda: remote_factory
    app.dependency_overrides[get_local_session_factory] = lambda: local_factory
    app.dependency_overrides[get_clock] = lambda: clock
    reset_facades()
    with TestClient(app) as test_client:
        yield test_client
    reset_facades()


@pytest.fixture()
def user_headers() -> dict[str, str]:
    return {"X-User-Id": str(USER_ID)}
