import random
from datetime import timedelta

import pytest

import config
from models.domain_models import ArsenalItem
from services.radar import RadarDisclosure
from stores import LocationUnavailable, RadarUnavailable
from utils.geo import distance_m, offset

from conftest import ORIGIN


async def test_reveal_returns_real_point_and_decoy(engine, make_game, place, clock):
    game = await make_game()
    await engine.ledger.credit("alice", ArsenalItem.RADAR, 3)
    bob_at = offset(ORIGIN, 800, 30)
    await place("bob", bob_at)

    reveal = await engine.radar.reveal(game.id, "alice")

    assert reveal.target_id == "bob"
    assert reveal.target_name == "Bob"
    assert reveal.radius == config.RADAR_RADIUS
    assert len(reveal.locations) == 2
    assert reveal.locations.count(bob_at) == 1
    decoy = next(c for c in reveal.locations if c != bob_at)
    gap = distance_m(bob_at, decoy)
    assert config.RADAR_DECOY_MIN_DISTANCE - 1 <= gap <= config.RADAR_DECOY_MAX_DISTANCE + 1
    assert reveal.expires_at == clock() + timedelta(seconds=config.RADAR_DURATION_SEC)

    game = await engine.store.get_game(game.id)
    assert game.players["alice"].inventory.radars == 2


async def test_decoy_offset_varies(engine, make_game, place):
    game = await make_game()
    await engine.ledger.credit("alice", ArsenalItem.RADAR, 5)
    bob_at = offset(ORIGIN, 800, 30)
    await place("bob", bob_at)

    gaps = set()
    for _ in range(5):
        reveal = await engine.radar.reveal(game.id, "alice")
        decoy = next(c for c in reveal.locations if c != bob_at)
        gap = distance_m(bob_at, decoy)
        assert config.RADAR_DECOY_MIN_DISTANCE - 1 <= gap <= config.RADAR_DECOY_MAX_DISTANCE + 1
        gaps.add(round(gap))
    assert len(gaps) > 1


async def test_target_chosen_among_located_opponents(engine, make_game, place):
    game = await make_game(("alice", "bob", "carol"))
    await engine.ledger.credit("alice", ArsenalItem.RADAR, 10)
    await place("carol", offset(ORIGIN, 800, 30))

    for _ in range(10):
        reveal = await engine.radar.reveal(game.id, "alice")
        assert reveal.target_id == "carol"


async def test_reveal_visibility_window(engine, make_game, place, clock):
    game = await make_game()
    await engine.ledger.credit("alice", ArsenalItem.RADAR, 1)
    await place("bob", ORIGIN)

    reveal = await engine.radar.reveal(game.id, "alice")

    assert reveal.is_visible(clock() + timedelta(seconds=9))
    assert not reveal.is_visible(clock() + timedelta(seconds=config.RADAR_DURATION_SEC))
    reveal.dismiss()
    assert not reveal.is_visible(clock())


async def test_reveal_without_radars(engine, make_game, place):
    game = await make_game()
    await place("bob", ORIGIN)

    with pytest.raises(RadarUnavailable):
        await engine.radar.reveal(game.id, "alice")


async def test_reveal_without_locations_keeps_the_radar(engine, make_game):
    game = await make_game()
    await engine.ledger.credit("alice", ArsenalItem.RADAR, 1)

    with pytest.raises(LocationUnavailable):
        await engine.radar.reveal(game.id, "alice")

    game = await engine.store.get_game(game.id)
    assert game.players["alice"].inventory.radars == 1


async def test_eliminated_player_cannot_use_radar(engine, make_game, place, clock):
    game = await make_game(("alice", "bob", "carol"))
    await engine.ledger.credit("carol", ArsenalItem.RADAR, 1)
    await place("bob", ORIGIN)
    for _ in range(config.STARTING_STRIKES):
        await engine.store.deduct_strike(game.id, "carol", at=clock())

    with pytest.raises(RadarUnavailable):
        await engine.radar.reveal(game.id, "carol")


async def test_seeded_rng_is_reproducible(store, clock, make_game, place, engine):
    game = await make_game()
    await engine.ledger.credit("alice", ArsenalItem.RADAR, 2)
    await place("bob", ORIGIN)

    first = RadarDisclosure(store, engine.ledger, clock, random.Random(3))
    second = RadarDisclosure(store, engine.ledger, clock, random.Random(3))

    a = await first.reveal(game.id, "alice")
    b = await second.reveal(game.id, "alice")
    assert a.locations == b.locations
