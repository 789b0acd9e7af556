from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from vanish.db import Base, engine_options
from vanish.domain import models as _models  # noqa: F401
from vanish.repositories.memory_store import InMemoryPasteStore
from vanish.repositories.paste_repository import SqlPasteStore
from vanish.services.paste_service import PasteService


START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Controllable replacement for ``datetime.now(timezone.utc)``."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def engine(tmp_path) -> Generator[Engine, None, None]:
    """
    Create a fresh file-backed SQLite engine for each test function.

    A file (rather than ``:memory:``) lets several threads share the database
    in the concurrency tests.
    """

    url = f"sqlite+pysqlite:///{tmp_path / 'vanish.db'}"
    engine = create_engine(url, **engine_options(url, timeout=15.0, pool_size=10))
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sql_store(engine) -> SqlPasteStore:
    """Store with its own session factory; each call gets a new session from the test engine."""
    session_factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    return SqlPasteStore(session_factory=session_factory)


@pytest.fixture
def memory_store() -> InMemoryPasteStore:
    return InMemoryPasteStore()


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def paste_service(memory_store: InMemoryPasteStore, clock: FakeClock) -> PasteService:
    return PasteService(store=memory_store, base_url="https://vanish.test", clock=clock)
