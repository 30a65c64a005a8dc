import random
from datetime import datetime, timedelta, timezone

import pytest

import config
from models.domain_models import Game
from services.engine import GameEngine
from services.notifications import NotificationDispatcher, Notifier
from services.tripwires import GeofenceMonitor
from stores import GeofenceLimitExceeded, SqliteGameStore
from utils.geo import Coordinate, offset

# Toronto city hall; every test map is laid out around it
ORIGIN = Coordinate(43.6532, -79.3832)

# 12:00 in Toronto (EDT)
START = datetime(2026, 6, 15, 16, 0, tzinfo=timezone.utc)


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self):
        self.sent = []

    async def send(self, recipient_ids, title, body, payload):
        self.sent.append({"recipients": list(recipient_ids), "title": title, "body": body, "payload": payload})

    def of_type(self, kind: str) -> list[dict]:
        return [m for m in self.sent if m["payload"].get("type") == kind]


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeGeofenceMonitor(GeofenceMonitor):
    def __init__(self, max_regions: int = config.MAX_GEOFENCE_REGIONS, *, capacity: int | None = None):
        self.max_regions = max_regions
        self.capacity = max_regions if capacity is None else capacity
        self.regions = {}

    def add_region(self, region):
        if len(self.regions) >= self.capacity:
            raise GeofenceLimitExceeded(region.identifier)
        self.regions[region.identifier] = region

    def remove_all_regions(self):
        self.regions.clear()


def home_base_site(index: int) -> Coordinate:
    """Home bases sit well south of the play area, one block of streets per player."""
    return offset(ORIGIN, 5000 + 1000 * index, 180)


@pytest.fixture()
def clock():
    return FakeClock(START)


@pytest.fixture()
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture()
async def store(tmp_path):
    s = SqliteGameStore(str(tmp_path / "test.sqlite3"))
    await s.init()
    yield s
    await s.close()


@pytest.fixture()
async def engine(store, dispatcher, clock):
    eng = GameEngine(store, Notifier(dispatcher), clock=clock, rng=random.Random(7))
    yield eng
    eng.inactivity.stop()
    await eng.notifier.drain()


@pytest.fixture()
def make_game(engine):
    """Create a game and (by default) start it by placing everyone's home bases."""

    async def _make(players=("alice", "bob"), *, start=True, title="Tag") -> Game:
        for pid in players:
            await engine.lobby.register_player(pid, pid.capitalize())
        game = await engine.lobby.create_game(players[0], title, list(players[1:]))
        if start:
            for i, pid in enumerate(players):
                site = home_base_site(i)
                await engine.zones.place_home_base(game.id, pid, site)
                await engine.zones.place_home_base(game.id, pid, offset(site, 400, 90))
        return await engine.store.get_game(game.id)

    return _make


@pytest.fixture()
def place(engine, clock):
    """Record a player's current location at the clock's time."""

    async def _place(player_id: str, location: Coordinate):
        return await engine.store.record_location(player_id, location, at=clock())

    return _place
