# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "needboard-test-secret")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CREATE_TABLES_ON_STARTUP", "false")

from needboard.api.v1.dependencies import get_board_dep
from needboard.core.region import Region
from needboard.core.security import create_access_token
from needboard.db.session import Base
from needboard.main import app as fastapi_app
from needboard.realtime.connection import Connection
from needboard.repositories.store import SqlAlchemyStore
from needboard.services.board import Board, build_board

TEST_DB_URL = "sqlite://"


class FakeTransport:
    """Records frames sent to a connection instead of writing to a socket."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed_with: int | None = None
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def events(self, name: str | None = None) -> list[dict[str, Any]]:
        """Return payloads of received frames, optionally filtered by event name."""
        return [frame["data"] for frame in self.sent if name is None or frame["event"] == name]


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
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    factory = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield factory
    finally:
        # Store methods commit on their own, so wipe every table between tests.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def store(session_factory: sessionmaker[Session]) -> SqlAlchemyStore:
    return SqlAlchemyStore(session_factory)


@pytest.fixture()
def upload_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "uploads"
    directory.mkdir()
    return directory


@pytest.fixture()
def board(store: SqlAlchemyStore, upload_dir: Path) -> Board:
    """A fresh board wired to the test database."""
    return build_board(store, upload_dir=upload_dir)


@pytest.fixture()
def make_connection() -> Callable[..., Connection]:
    """Build unjoined connections backed by a :class:`FakeTransport`."""

    def _make(username: str, *, fail: bool = False) -> Connection:
        return Connection(username, FakeTransport(fail=fail))

    return _make


@pytest.fixture()
def connect(board: Board, make_connection: Callable[..., Connection]) -> Callable[..., Any]:
    """Return a coroutine that persists a user's region and joins them like the socket handshake."""

    async def _connect(username: str, region: Region, *, fail: bool = False) -> Connection:
        board.store.set_user_region(username, region)
        connection = make_connection(username, fail=fail)
        await board.hub.connect(connection, region)
        return connection

    return _connect


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_board_dependency(app: FastAPI, board: Board) -> Iterator[None]:
    app.dependency_overrides[get_board_dep] = lambda: board
    try:
        yield
    finally:
        app.dependency_overrides.pop(get_board_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def auth_headers() -> Callable[..., dict[str, str]]:
    """Return a helper producing bearer headers for a username and optional claims."""

    def _headers(username: str, **claims: Any) -> dict[str, str]:
        token = create_access_token(username, **claims)
        return {"Authorization": f"Bearer {token}"}

    return _headers
