import json
from typing import AsyncGenerator, Generator

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from core.config import Settings
from core.database import Database
from main import create_app
from services.broadcast_service import BroadcastHub
from services.bubble_service import BubbleService
from services.suggestion_service import SuggestionService

START_MS = 1_700_000_000_000
HOUR_MS = 60 * 60 * 1000


class FakeClock:
    """Controllable epoch-millisecond clock"""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, hours: float = 0, minutes: float = 0) -> int:
        self.now += int(hours * HOUR_MS + minutes * 60 * 1000)
        return self.now


class FakeViewer:
    """Stands in for a connected WebSocket and records what it receives"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.messages = []

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("connection reset")
        self.messages.append(json.loads(data))

    def types(self):
        return [m["type"] for m in self.messages]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Fresh SQLite file per test"""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'bubbles.db'}")
    await db.create_db_and_tables()
    yield db
    await db.dispose()


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub()


@pytest.fixture
def viewer(hub) -> FakeViewer:
    fake = FakeViewer()
    hub.register(fake)
    return fake


@pytest.fixture
def bubble_service(database, hub, clock) -> BubbleService:
    return BubbleService(database, hub, retention_hours=24, dedup_epsilon=0.001, clock=clock)


@pytest.fixture
def suggestion_service(database, hub, clock) -> SuggestionService:
    return SuggestionService(database, hub, title_min_length=5, clock=clock)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        ENVIRONMENT="test",
        ENABLE_SCHEDULER=False,
        GEOCODER="static",
        UPLOADS_DIR=str(tmp_path / "uploads"),
        MAX_UPLOAD_BYTES=1024,
    )


@pytest.fixture
def test_client(test_settings) -> Generator[TestClient, None, None]:
    """Test client running the full application lifespan"""
    with TestClient(create_app(test_settings)) as client:
        yield client


@pytest.fixture
def viewer_factory(hub):
    """Register extra fake viewers, optionally ones whose sends fail"""

    def make(fail: bool = False) -> FakeViewer:
        fake = FakeViewer(fail=fail)
        hub.register(fake)
        return fake

    return make
