from __future__ import annotations

import datetime as dt
import os
import tempfile
from pathlib import Path
from typing import Generator

_DATA_DIR = Path(tempfile.mkdtemp(prefix="timeblock-tests-"))
os.environ.setdefault("TT_SQLITE_PATH", str(_DATA_DIR / "timeblock.db"))
os.environ.setdefault("TT_DOCUMENTS_DIR", str(_DATA_DIR / "documents"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from timeblock import models
from timeblock.config import settings
from timeblock.database import get_db
from timeblock.entries import Container, Leaf, Tracker
from timeblock.host import FileDocumentStore
from timeblock.main import app, get_clock, get_store
from timeblock.state import RuntimeState

T0 = dt.datetime(2024, 3, 4, 9, 0, tzinfo=dt.timezone.utc)

TEST_SETTINGS = {
    "timezone": "UTC",
    "timestamp_format": "%y-%m-%d %H:%M:%S",
    "editable_timestamp_format": "%Y-%m-%d %H:%M:%S",
    "csv_delimiter": ",",
    "fine_grained_durations": True,
    "reverse_segment_order": False,
    "timestamp_durations": False,
    "show_today": False,
    "display_refresh_seconds": 1,
}


class FakeClock:
    def __init__(self, now: dt.datetime) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += dt.timedelta(seconds=seconds)


@pytest.fixture(scope="session")
def temp_db_path() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        yield path


@pytest.fixture(scope="session")
def engine(temp_db_path: Path):
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionTesting = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture()
def documents_dir(tmp_path: Path) -> Path:
    path = tmp_path / "documents"
    path.mkdir()
    return path


@pytest.fixture()
def store(documents_dir: Path) -> FileDocumentStore:
    return FileDocumentStore(documents_dir)


@pytest.fixture(scope="function")
def client(session: Session, store: FileDocumentStore, clock: FakeClock) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    original_state = app.state.runtime_state
    app.state.runtime_state = RuntimeState(settings.model_copy(update=TEST_SETTINGS))
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    app.state.runtime_state = original_state


@pytest.fixture()
def finished_leaf() -> Leaf:
    return Leaf(name="A", start_time=T0, end_time=T0 + dt.timedelta(hours=1))


@pytest.fixture()
def split_tracker() -> Tracker:
    first = Leaf(name="Part 1", start_time=T0, end_time=T0 + dt.timedelta(minutes=30))
    second = Leaf(
        name="Part 2",
        start_time=T0 + dt.timedelta(hours=1),
        end_time=T0 + dt.timedelta(hours=1, minutes=30),
    )
    return Tracker(entries=[Container(name="Task", sub_entries=[first, second])])
