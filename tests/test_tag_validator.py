import random

import pytest

import config
from models.domain_models import (
    ArsenalItem,
    Blocked,
    BlockReason,
    GameStatus,
    Hit,
    Miss,
    SafeZoneKind,
    TagKind,
    is_protected,
)
from services.notifications import NotificationType
from stores import GameNotFound, InvalidState, PlayerNotFound, StoreUnavailable
from utils.geo import distance_m, offset
from utils.time import next_local_midnight

from conftest import ORIGIN, home_base_site


async def test_basic_tag_near_unprotected_target_hits(engine, make_game, place, dispatcher):
    game = await make_game()
    bob_at = offset(ORIGIN, 2000, 90)
    await place("bob", bob_at)

    result = await engine.tags.submit_tag(game.id, "alice", offset(bob_at, 50, 0))

    assert isinstance(result, Hit)
    assert result.target_id == "bob"
    assert result.strikes_remaining == 2
    assert result.eliminated is False
    assert result.distance == pytest.approx(50, abs=1)
    assert result.actual_location == bob_at

    game = await engine.store.get_game(game.id)
    bob = game.players["bob"]
    assert bob.strikes == 2
    assert bob.is_active
    hit_zones = [z for z in bob.safe_zones if z.kind is SafeZoneKind.HIT_ZONE]
    assert len(hit_zones) == 1
    assert hit_zones[0].expires_at is None
    assert hit_zones[0].radius == config.HIT_ZONE_RADIUS
    assert game.players["alice"].inventory.daily_tags_remaining == config.DAILY_TAG_LIMIT - 1

    await engine.notifier.drain()
    assert dispatcher.of_type(NotificationType.TAG_WARNING)[0]["recipients"] == ["bob"]
    assert dispatcher.of_type(NotificationType.TAGGED)[0]["recipients"] == ["bob"]


async def test_target_at_home_base_is_blocked(engine, make_game, place):
    game = await make_game()
    bob_base = home_base_site(1)
    await place("bob", bob_base)

    result = await engine.tags.submit_tag(game.id, "alice", offset(bob_base, 50, 0))

    assert result == Blocked(BlockReason.HOME_BASE)
    game = await engine.store.get_game(game.id)
    assert game.players["bob"].strikes == config.STARTING_STRIKES
    assert game.players["alice"].inventory.daily_tags_remaining == config.DAILY_TAG_LIMIT - 1


async def test_target_inside_hit_zone_is_blocked_as_safe_base(engine, make_game, place):
    game = await make_game()
    bob_at = offset(ORIGIN, 2000, 90)
    await place("bob", bob_at)

    assert isinstance(await engine.tags.submit_tag(game.id, "alice", bob_at), Hit)
    result = await engine.tags.submit_tag(game.id, "alice", offset(bob_at, 20, 0))

    assert result == Blocked(BlockReason.SAFE_BASE)


async def test_wide_tag_miss_creates_miss_zone_for_nearest_home_base_owner(engine, make_game, place, clock):
    game = await make_game(("alice", "bob", "carol"))
    await engine.ledger.credit("alice", ArsenalItem.WIDE_RADIUS_TAG, 1)
    await place("bob", offset(ORIGIN, 3000, 0))
    await place("carol", offset(ORIGIN, 3000, 270))

    # 200 m past carol's first home base, over a kilometre from bob's
    guess = offset(home_base_site(2), 200, 180)
    result = await engine.tags.submit_tag(game.id, "alice", guess, TagKind.WIDE_RADIUS)

    assert isinstance(result, Miss)
    assert result.nearest_distance > config.WIDE_TAG_RADIUS

    game = await engine.store.get_game(game.id)
    miss_zones = [z for z in game.players["carol"].safe_zones if z.kind is SafeZoneKind.MISS_ZONE]
    assert len(miss_zones) == 1
    zone = miss_zones[0]
    assert distance_m(zone.location, guess) < 0.01
    assert zone.expires_at == next_local_midnight(clock(), "America/Toronto")
    assert not [z for z in game.players["bob"].safe_zones if z.kind is SafeZoneKind.MISS_ZONE]
    assert game.players["alice"].inventory.wide_radius_tags == 0


async def test_miss_zone_is_active_until_local_midnight(engine, make_game, place, clock):
    game = await make_game()
    await place("bob", offset(ORIGIN, 3000, 0))
    guess = offset(ORIGIN, 1000, 180)

    await engine.tags.submit_tag(game.id, "alice", guess)
    game = await engine.store.get_game(game.id)
    zone = next(z for z in game.players["bob"].safe_zones if z.kind is SafeZoneKind.MISS_ZONE)

    # 00:00 EDT on June 16
    assert zone.expires_at.isoformat() == "2026-06-16T04:00:00+00:00"
    bob = game.players["bob"]
    assert is_protected(bob, guess, clock())
    assert not is_protected(bob, guess, zone.expires_at)
    assert zone.is_active(clock())
    assert not zone.is_active(zone.expires_at)


async def test_miss_without_any_known_location_reports_sentinel(engine, make_game):
    game = await make_game()

    result = await engine.tags.submit_tag(game.id, "alice", ORIGIN)

    assert result == Miss(nearest_distance=config.MISS_SENTINEL_DISTANCE)


async def test_out_of_tags_after_daily_allowance(engine, make_game):
    game = await make_game()
    for _ in range(config.DAILY_TAG_LIMIT):
        assert isinstance(await engine.tags.submit_tag(game.id, "alice", ORIGIN), Miss)

    result = await engine.tags.submit_tag(game.id, "alice", ORIGIN)

    assert result == Blocked(BlockReason.OUT_OF_TAGS)
    game = await engine.store.get_game(game.id)
    assert game.players["alice"].inventory.daily_tags_remaining == 0


async def test_purchased_basic_tags_used_after_daily_allowance(engine, make_game):
    game = await make_game()
    await engine.ledger.credit("alice", ArsenalItem.BASIC_TAG, 2)
    for _ in range(config.DAILY_TAG_LIMIT + 1):
        await engine.tags.submit_tag(game.id, "alice", ORIGIN)

    game = await engine.store.get_game(game.id)
    inv = game.players["alice"].inventory
    assert inv.daily_tags_remaining == 0
    assert inv.basic_tags == 1


async def test_wide_tag_without_units_is_blocked(engine, make_game):
    game = await make_game()

    result = await engine.tags.submit_tag(game.id, "alice", ORIGIN, TagKind.WIDE_RADIUS)

    assert result == Blocked(BlockReason.OUT_OF_TAGS)


async def test_hit_to_zero_strikes_completes_game(engine, make_game, place, clock, dispatcher):
    game = await make_game()
    bob_at = offset(ORIGIN, 2000, 90)
    await place("bob", bob_at)
    await engine.store.deduct_strike(game.id, "bob", at=clock())
    await engine.store.deduct_strike(game.id, "bob", at=clock())

    result = await engine.tags.submit_tag(game.id, "alice", bob_at)

    assert isinstance(result, Hit)
    assert result.eliminated
    assert result.strikes_remaining == 0
    game = await engine.store.get_game(game.id)
    assert game.players["bob"].is_active is False
    assert game.status is GameStatus.COMPLETED
    ended_at = game.ended_at
    assert await engine.store.complete_game_if_over(game.id, at=clock.advance(minutes=5)) is False
    assert (await engine.store.get_game(game.id)).ended_at == ended_at

    await engine.notifier.drain()
    assert dispatcher.of_type(NotificationType.ELIMINATED)[0]["recipients"] == ["alice", "bob"]


async def test_eliminated_player_is_blocked(engine, make_game, clock):
    game = await make_game(("alice", "bob", "carol"))
    for _ in range(config.STARTING_STRIKES):
        await engine.store.deduct_strike(game.id, "carol", at=clock())

    result = await engine.tags.submit_tag(game.id, "carol", ORIGIN)

    assert result == Blocked(BlockReason.PLAYER_ELIMINATED)
    game = await engine.store.get_game(game.id)
    assert game.status is GameStatus.ACTIVE
    assert game.players["carol"].inventory.daily_tags_remaining == config.DAILY_TAG_LIMIT


async def test_closest_candidate_wins_with_player_id_tie_break(engine, make_game, place):
    game = await make_game(("alice", "bob", "carol"))
    guess = offset(ORIGIN, 2000, 90)
    await place("bob", offset(guess, 30, 0))
    await place("carol", offset(guess, 30, 0))

    result = await engine.tags.submit_tag(game.id, "alice", guess)

    assert isinstance(result, Hit)
    assert result.target_id == "bob"


async def test_closest_candidate_protected_blocks_tag(engine, make_game, place):
    game = await make_game(("alice", "bob", "carol"))
    bob_base = home_base_site(1)
    await place("bob", bob_base)
    await place("carol", offset(bob_base, 60, 90))

    result = await engine.tags.submit_tag(game.id, "alice", offset(bob_base, 10, 0))

    assert result == Blocked(BlockReason.HOME_BASE)
    game = await engine.store.get_game(game.id)
    assert game.players["carol"].strikes == config.STARTING_STRIKES


async def test_tag_before_game_starts_is_rejected(engine, make_game):
    game = await make_game(start=False)

    with pytest.raises(InvalidState):
        await engine.tags.submit_tag(game.id, "alice", ORIGIN)


async def test_unknown_game_or_player(engine, make_game):
    game = await make_game()

    with pytest.raises(GameNotFound):
        await engine.tags.submit_tag("nope", "alice", ORIGIN)
    with pytest.raises(PlayerNotFound):
        await engine.tags.submit_tag(game.id, "mallory", ORIGIN)


async def test_target_inside_own_zones_is_never_hit(engine, make_game, place):
    game = await make_game()
    bob_base = home_base_site(1)
    await place("bob", offset(bob_base, 20, 45))
    await engine.ledger.credit("alice", ArsenalItem.BASIC_TAG, 40)
    rng = random.Random(11)

    for _ in range(40):
        guess = offset(bob_base, rng.uniform(0, 120), rng.uniform(0, 360))
        result = await engine.tags.submit_tag(game.id, "alice", guess)
        assert not isinstance(result, Hit)

    game = await engine.store.get_game(game.id)
    assert game.players["bob"].strikes == config.STARTING_STRIKES


async def test_candidate_in_warning_band_is_warned_but_not_hit(engine, make_game, place, dispatcher):
    game = await make_game()
    bob_at = offset(ORIGIN, 2000, 90)
    await place("bob", bob_at)

    result = await engine.tags.submit_tag(game.id, "alice", offset(bob_at, 300, 0))

    assert isinstance(result, Miss)
    assert result.nearest_distance == pytest.approx(300, abs=1)
    assert config.BASIC_TAG_RADIUS < result.nearest_distance <= config.TAG_WARNING_RADIUS
    assert (await engine.store.get_game(game.id)).players["bob"].strikes == config.STARTING_STRIKES
    await engine.notifier.drain()
    assert [m["recipients"] for m in dispatcher.of_type(NotificationType.TAG_WARNING)] == [["bob"]]
    assert dispatcher.of_type(NotificationType.TAGGED) == []


async def test_candidate_beyond_warning_band_is_not_warned(engine, make_game, place, dispatcher):
    game = await make_game()
    bob_at = offset(ORIGIN, 2000, 90)
    await place("bob", bob_at)

    result = await engine.tags.submit_tag(game.id, "alice", offset(bob_at, 600, 0))

    assert isinstance(result, Miss)
    await engine.notifier.drain()
    assert dispatcher.of_type(NotificationType.TAG_WARNING) == []


@pytest.mark.parametrize("method", ["get_locations", "deduct_strike"])
async def test_store_failure_propagates_instead_of_missing(engine, make_game, place, monkeypatch, method):
    game = await make_game()
    bob_at = offset(ORIGIN, 2000, 90)
    await place("bob", bob_at)

    async def unavailable(*args, **kwargs):
        raise StoreUnavailable("database is locked")

    monkeypatch.setattr(engine.store, method, unavailable)

    with pytest.raises(StoreUnavailable):
        await engine.tags.submit_tag(game.id, "alice", offset(bob_at, 10, 0))

    monkeypatch.undo()
    bob = (await engine.store.get_game(game.id)).players["bob"]
    assert bob.strikes == config.STARTING_STRIKES
    assert [z for z in bob.safe_zones if z.kind is SafeZoneKind.MISS_ZONE] == []
