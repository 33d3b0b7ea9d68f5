"""
Pytest fixtures for test database, client, gateways and seed data.

Each test gets a fresh in-memory SQLite database (aiosqlite); set
TEST_DATABASE_URL to run against PostgreSQL instead. Push delivery and the
external game database are replaced by recording fakes.
"""

import os

# Settings are read once and cached; configure them before the app is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("FCM_ENABLED", "false")
os.environ.setdefault("TIMEZONE", "Europe/Madrid")
os.environ.setdefault("FILES_BASE_URL", "http://files.test/files")

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.models import Difficulty, Game, GameCategory, Participation, Reservation, Shop, Table, User
from app.schemas.catalog import ExternalGame
from app.services.gateway_factory import get_game_lookup, get_notification_gateway
from app.services.interfaces.game_lookup import GameLookupGateway
from app.services.interfaces.notification import NotificationGateway

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


class RecordingNotificationGateway(NotificationGateway):
    """Keeps every message instead of delivering it. `fail=True` simulates an outage."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.multicasts: list[dict] = []
        self.topics: list[dict] = []

    async def send_multicast(self, tokens, title, body, image_url=None):
        if self.fail:
            raise RuntimeError("push backend unavailable")
        self.multicasts.append(
            {"tokens": list(tokens), "title": title, "body": body, "image_url": image_url}
        )

    async def send_topic(self, topic, title, body, image_url=None):
        if self.fail:
            raise RuntimeError("push backend unavailable")
        self.topics.append({"topic": topic, "title": title, "body": body, "image_url": image_url})


class FakeGameLookup(GameLookupGateway):
    def __init__(self, games: Optional[dict] = None):
        self.games = games or {}
        self.calls: list[int] = []

    async def fetch_game(self, external_id):
        self.calls.append(external_id)
        return self.games.get(external_id)


@pytest_asyncio.fixture(scope="function")
async def engine():
    """Create tables on a fresh database, drop them afterwards."""
    options = {}
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection, otherwise every session sees its own empty database
        options = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, **options)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotificationGateway:
    return RecordingNotificationGateway()


@pytest.fixture
def game_lookup() -> FakeGameLookup:
    return FakeGameLookup(
        {
            174430: ExternalGame(
                name="Gloomhaven",
                description="Tactical combat in a persistent world.",
                category_name="Adventure",
            ),
        }
    )


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, notifier, game_lookup) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB session and gateways swapped for test doubles."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_gateway] = lambda: notifier
    app.dependency_overrides[get_game_lookup] = lambda: game_lookup

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def seed(db_session: AsyncSession) -> SimpleNamespace:
    """
    Two shops, three tables, one game, one difficulty and five players.
    carol and dave share a device token; erin has none.
    """
    shop = Shop(name="Dragon's Den", address="Calle Mayor 1", logo="dragons-den.png")
    other_shop = Shop(name="Meeple House", address="Gran Via 2")
    db_session.add_all([shop, other_shop])
    await db_session.flush()

    table = Table(number=1, shop_id=shop.id)
    table2 = Table(number=2, shop_id=shop.id)
    other_table = Table(number=1, shop_id=other_shop.id)
    category = GameCategory(description="Strategy")
    db_session.add_all([table, table2, other_table, category])
    await db_session.flush()

    game = Game(name="Catan", description="Trade and build.", bgg_id=13, category_id=category.id)
    difficulty = Difficulty(description="Medium", difficulty_rate=3)
    users = {
        "alice": User(external_id="g-alice", username="alice", name="Alice", token_notification="tok-alice"),
        "bob": User(external_id="g-bob", username="bob", name="Bob", token_notification="tok-bob"),
        "carol": User(external_id="g-carol", username="carol", name="Carol", token_notification="tok-shared"),
        "dave": User(external_id="g-dave", username="dave", name="Dave", token_notification="tok-shared"),
        "erin": User(external_id="g-erin", username="erin", name="Erin", token_notification=None),
    }
    db_session.add_all([game, difficulty, *users.values()])
    await db_session.commit()

    return SimpleNamespace(
        shop=shop,
        other_shop=other_shop,
        table=table,
        table2=table2,
        other_table=other_table,
        game=game,
        category=category,
        difficulty=difficulty,
        users=users,
    )


@pytest.fixture
def make_reservation(db_session: AsyncSession, seed):
    """Insert a reservation directly, optionally with participants (user keys from `seed`)."""

    async def _make(
        start: Optional[datetime] = None,
        duration: timedelta = timedelta(hours=3),
        participants: tuple = (),
        **fields,
    ) -> Reservation:
        start = start or datetime.now(timezone.utc) + timedelta(days=3)
        values = {
            "total_places": 4,
            "description": "Friday game night",
            "required_material": "None",
            "shop_event": False,
            "game_id": seed.game.id,
            "table_id": seed.table.id,
            "difficulty_id": seed.difficulty.id,
        }
        values.update(fields)
        reservation = Reservation(hour_start=start, hour_end=start + duration, **values)
        db_session.add(reservation)
        await db_session.flush()
        for key in participants:
            db_session.add(Participation(user_id=seed.users[key].id, reservation_id=reservation.id))
        await db_session.commit()
        return reservation

    return _make


@pytest.fixture
def reservation_payload(seed):
    """Builds JSON bodies for POST /reserves/{shop_id}; naive times are local shop time."""

    def _payload(**overrides) -> dict:
        payload = {
            "total_places": 4,
            "hour_start": "2030-03-15T18:00:00",
            "hour_end": "2030-03-15T21:00:00",
            "description": "Catan league",
            "required_material": "None",
            "shop_event": False,
            "difficulty_id": seed.difficulty.id,
            "game_id": seed.game.id,
            "table_id": seed.table.id,
        }
        payload.update(overrides)
        return payload

    return _payload
