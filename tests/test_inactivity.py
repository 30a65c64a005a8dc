from datetime import timedelta

import pytest

import config
from models.domain_models import GameStatus
from services.notifications import NotificationType
from stores import InvalidState

from conftest import ORIGIN


async def test_offline_warning_then_single_penalty(engine, make_game, place, clock, dispatcher):
    game = await make_game()
    await place("alice", ORIGIN)
    await place("bob", ORIGIN)

    clock.advance(hours=46)
    await place("alice", ORIGIN)

    clock.advance(hours=1)
    report = await engine.inactivity.sweep()
    assert report.warned == [(game.id, "bob")]
    assert report.penalized == []
    assert (await engine.inactivity.sweep()).warned == []

    clock.advance(hours=1)
    report = await engine.inactivity.sweep()
    assert report.penalized == [(game.id, "bob", 2)]

    clock.advance(hours=1)
    report = await engine.inactivity.sweep()
    assert report.penalized == []
    assert (await engine.store.get_game(game.id)).players["bob"].strikes == 2

    await engine.notifier.drain()
    assert [m["recipients"] for m in dispatcher.of_type(NotificationType.OFFLINE_WARNING)] == [["bob"]]
    strikes = dispatcher.of_type(NotificationType.OFFLINE_STRIKE)
    assert len(strikes) == 1
    assert strikes[0]["recipients"] == ["alice", "bob"]


async def test_new_offline_period_is_penalized_again(engine, make_game, place, clock, dispatcher):
    game = await make_game(("alice", "bob", "carol"))
    for pid in ("alice", "bob", "carol"):
        await place(pid, ORIGIN)

    clock.advance(hours=config.OFFLINE_PENALTY_HOURS)
    await place("alice", ORIGIN)
    await place("carol", ORIGIN)
    assert (await engine.inactivity.sweep()).penalized == [(game.id, "bob", 2)]

    clock.advance(hours=2)
    await engine.inactivity.record_upload("bob", ORIGIN)
    await engine.notifier.drain()
    returned = dispatcher.of_type(NotificationType.PLAYER_RETURNED)
    assert returned[0]["recipients"] == ["alice", "carol"]

    clock.advance(hours=config.OFFLINE_PENALTY_HOURS)
    await place("alice", ORIGIN)
    await place("carol", ORIGIN)
    assert (await engine.inactivity.sweep()).penalized == [(game.id, "bob", 1)]


async def test_short_gap_does_not_announce_return(engine, make_game, place, clock, dispatcher):
    await make_game()
    await place("bob", ORIGIN)
    clock.advance(hours=config.OFFLINE_PENALTY_HOURS - 1)

    await engine.inactivity.record_upload("bob", ORIGIN)

    await engine.notifier.drain()
    assert dispatcher.of_type(NotificationType.PLAYER_RETURNED) == []


async def test_offline_elimination_completes_game(engine, make_game, place, clock, dispatcher):
    game = await make_game()
    await place("bob", ORIGIN)
    await engine.store.deduct_strike(game.id, "bob", at=clock())
    await engine.store.deduct_strike(game.id, "bob", at=clock())

    clock.advance(hours=config.OFFLINE_PENALTY_HOURS)
    await place("alice", ORIGIN)
    report = await engine.inactivity.sweep()

    assert report.penalized == [(game.id, "bob", 0)]
    game = await engine.store.get_game(game.id)
    assert game.status is GameStatus.COMPLETED
    await engine.notifier.drain()
    assert dispatcher.of_type(NotificationType.ELIMINATED)[0]["recipients"] == ["alice"]


async def test_players_without_uploads_are_skipped(engine, make_game, clock):
    game = await make_game()
    clock.advance(days=5)

    report = await engine.inactivity.sweep()

    assert report.games_scanned == 1
    assert report.penalized == []
    assert report.warned == []
    assert (await engine.store.get_game(game.id)).players["bob"].strikes == config.STARTING_STRIKES


async def test_sweep_can_be_scoped_to_a_player(engine, make_game, place, clock):
    await make_game(("alice", "bob"))
    other = await make_game(("carol", "dave"))
    await place("dave", ORIGIN)
    clock.advance(hours=config.OFFLINE_PENALTY_HOURS)

    assert (await engine.inactivity.sweep("alice")).penalized == []
    assert (await engine.inactivity.sweep("carol")).penalized == [(other.id, "dave", 2)]


async def test_nudge_penalizes_players_who_stay_away(engine, make_game, place, clock, dispatcher):
    game = await make_game(("alice", "bob", "carol"))

    deadline = await engine.inactivity.issue_nudge(game.id, "alice")
    assert deadline == clock() + timedelta(hours=config.NUDGE_RESPONSE_WINDOW_HOURS)
    with pytest.raises(InvalidState):
        await engine.inactivity.issue_nudge(game.id, "bob")

    clock.advance(hours=1)
    await place("alice", ORIGIN)
    await place("bob", ORIGIN)

    clock.advance(hours=4)
    assert await engine.inactivity.enforce_nudge_deadlines() == []

    clock.advance(hours=1)
    assert await engine.inactivity.enforce_nudge_deadlines() == [(game.id, "carol", 2)]
    assert await engine.inactivity.enforce_nudge_deadlines() == []

    await engine.notifier.drain()
    assert dispatcher.of_type(NotificationType.NUDGE)[0]["recipients"] == ["bob", "carol"]

    # the claimed nudge frees the slot for another
    await engine.inactivity.issue_nudge(game.id, "bob")


async def test_nudge_requires_active_game(engine, make_game):
    game = await make_game(start=False)

    with pytest.raises(InvalidState):
        await engine.inactivity.issue_nudge(game.id, "alice")


async def test_session_monitor_lifecycle(engine):
    engine.inactivity.start(minutes=60)
    assert engine.inactivity.running
    engine.inactivity.start(minutes=60)

    engine.inactivity.stop()
    assert not engine.inactivity.running
    engine.inactivity.stop()


async def test_session_monitor_can_enforce_nudges(engine):
    engine.inactivity.start(minutes=60, enforce_nudges=True)

    jobs = {job.id for job in engine.inactivity._scheduler.get_jobs()}
    assert jobs == {"inactivity-sweep", "nudge-deadlines"}
    engine.inactivity.stop()
