import pytest

import config
from models.domain_models import GameStatus
from services.notifications import NotificationType
from stores import GameFull, GameNotFound, InvalidState
from utils.geo import offset

from conftest import home_base_site


async def test_create_game_sends_invites(engine, dispatcher):
    await engine.lobby.register_player("alice", "Alice")

    game = await engine.lobby.create_game("alice", "Friday", ["bob", "carol", "bob"])

    assert game.status is GameStatus.WAITING
    assert game.timezone == config.GAME_TIMEZONE
    assert sorted(game.players) == ["alice", "bob", "carol"]
    assert len(game.join_code) == config.JOIN_CODE_LENGTH
    for player in game.players.values():
        assert player.strikes == config.STARTING_STRIKES
        assert player.inventory.daily_tags_remaining == config.DAILY_TAG_LIMIT

    await engine.notifier.drain()
    invite = dispatcher.of_type(NotificationType.GAME_INVITE)[0]
    assert invite["recipients"] == ["bob", "carol"]
    assert "Alice" in invite["body"]


@pytest.mark.parametrize("title", ["", "   ", "NineChars", "a$b"])
async def test_create_game_rejects_bad_titles(engine, title):
    with pytest.raises(InvalidState):
        await engine.lobby.create_game("alice", title, [])


async def test_create_game_rejects_unknown_timezone(engine):
    with pytest.raises(InvalidState):
        await engine.lobby.create_game("alice", "Tag", [], timezone="Mars/Olympus")


async def test_create_game_caps_players(engine):
    with pytest.raises(GameFull):
        await engine.lobby.create_game("p0", "Tag", [f"p{i}" for i in range(1, config.MAX_PLAYERS + 1)])


async def test_join_code_is_case_insensitive(engine, make_game):
    game = await make_game(start=False)

    joined = await engine.lobby.join_by_code(f"  {game.join_code.lower()} ", "carol")

    assert "carol" in joined.players
    again = await engine.lobby.join_by_code(game.join_code, "carol")
    assert sorted(again.players) == ["alice", "bob", "carol"]


async def test_join_rejects_unknown_and_malformed_codes(engine, make_game):
    await make_game(start=False)

    with pytest.raises(GameNotFound):
        await engine.lobby.join_by_code("ZZZZZZ", "carol")
    with pytest.raises(GameNotFound):
        await engine.lobby.join_by_code("no!", "carol")


async def test_join_full_game(engine):
    game = await engine.lobby.create_game("p0", "Tag", [f"p{i}" for i in range(1, config.MAX_PLAYERS)])

    with pytest.raises(GameFull):
        await engine.lobby.join_by_code(game.join_code, "late")


async def test_join_started_game(engine, make_game):
    game = await make_game()

    with pytest.raises(InvalidState):
        await engine.lobby.join_by_code(game.join_code, "carol")


async def test_activation_waits_for_every_second_home_base(engine, make_game, dispatcher):
    game = await make_game(("alice", "bob", "carol"), start=False)
    players = ["alice", "bob", "carol"]

    for i, pid in enumerate(players):
        await engine.zones.place_home_base(game.id, pid, home_base_site(i))
    for i, pid in enumerate(players[:-1]):
        await engine.zones.place_home_base(game.id, pid, offset(home_base_site(i), 400, 90))
    assert (await engine.store.get_game(game.id)).status is GameStatus.WAITING

    await engine.zones.place_home_base(game.id, "carol", offset(home_base_site(2), 400, 90))

    game = await engine.store.get_game(game.id)
    assert game.status is GameStatus.ACTIVE
    assert game.started_at is not None
    assert all(p.is_ready for p in game.players.values())
    await engine.notifier.drain()
    assert dispatcher.of_type(NotificationType.GAME_STARTED)[0]["recipients"] == players


async def test_third_home_base_is_rejected(engine, make_game):
    game = await make_game(start=False)
    await engine.zones.place_home_base(game.id, "alice", home_base_site(0))
    await engine.zones.place_home_base(game.id, "alice", home_base_site(1))

    with pytest.raises(InvalidState):
        await engine.zones.place_home_base(game.id, "alice", home_base_site(2))


async def test_home_bases_keep_placement_order(engine, make_game, clock):
    game = await make_game(start=False)
    first, second = home_base_site(0), home_base_site(3)
    await engine.zones.place_home_base(game.id, "alice", first)
    clock.advance(seconds=5)
    await engine.zones.place_home_base(game.id, "alice", second)

    alice = (await engine.store.get_game(game.id)).players["alice"]
    assert alice.home_base_1 == first
    assert alice.home_base_2 == second


async def test_leaving_an_active_game_can_complete_it(engine, make_game):
    game = await make_game()

    game = await engine.lobby.leave_game(game.id, "bob")

    assert game.players["bob"].is_active is False
    assert game.players["bob"].strikes == 0
    assert game.status is GameStatus.COMPLETED


async def test_leaving_a_waiting_game_keeps_it_open(engine, make_game):
    game = await make_game(start=False)

    game = await engine.lobby.leave_game(game.id, "bob")

    assert game.status is GameStatus.WAITING
    game = await engine.lobby.leave_game(game.id, "alice")
    assert game.status is GameStatus.COMPLETED


async def test_last_unready_player_leaving_starts_the_game(engine, make_game, dispatcher):
    game = await make_game(("alice", "bob", "carol"), start=False)
    for i, pid in enumerate(("alice", "bob")):
        await engine.zones.place_home_base(game.id, pid, home_base_site(i))
        await engine.zones.place_home_base(game.id, pid, offset(home_base_site(i), 400, 90))
    assert (await engine.store.get_game(game.id)).status is GameStatus.WAITING

    game = await engine.lobby.leave_game(game.id, "carol")

    assert game.status is GameStatus.ACTIVE
    assert game.started_at is not None
    await engine.notifier.drain()
    started = dispatcher.of_type(NotificationType.GAME_STARTED)
    assert len(started) == 1
    assert sorted(started[0]["recipients"]) == ["alice", "bob"]


async def test_player_who_left_cannot_place_home_bases(engine, make_game):
    game = await make_game(("alice", "bob", "carol"), start=False)
    await engine.lobby.leave_game(game.id, "carol")

    with pytest.raises(InvalidState):
        await engine.zones.place_home_base(game.id, "carol", home_base_site(2))
    game = await engine.store.get_game(game.id)
    assert game.players["carol"].safe_zones == []
