import pytest

import config
from workers import tasks
from workers.celery_app import app
from workers.task_helpers import run_with_engine


@pytest.fixture()
def db_path(tmp_path, monkeypatch):
    path = str(tmp_path / "worker.sqlite3")
    monkeypatch.setattr(config, "DB_PATH", path)
    return path


@pytest.fixture()
def no_lock(monkeypatch):
    monkeypatch.setattr(
        tasks, "run_exclusive", lambda key, work, timeout: run_with_engine(work, timeout=timeout)
    )


def test_sweep_inactivity_reports_success(db_path, no_lock):
    result = tasks.sweep_inactivity()

    assert result["status"] == "success"
    assert result["games_scanned"] == 0
    assert result["penalized"] == []


def test_sweep_skipped_when_lock_is_held(db_path, monkeypatch):
    monkeypatch.setattr(tasks, "run_exclusive", lambda key, work, timeout: None)

    assert tasks.sweep_inactivity()["status"] == "skipped"
    assert tasks.enforce_nudge_deadlines()["status"] == "skipped"


def test_enforce_nudge_deadlines_without_nudges(db_path, no_lock):
    result = tasks.enforce_nudge_deadlines()

    assert result["status"] == "success"
    assert result["penalized"] == []


def test_credit_purchase_for_player_without_games(db_path):
    result = tasks.credit_purchase("alice", "radar.3")

    assert result["status"] == "success"
    assert result["credited_games"] == []


def test_unknown_product_is_a_non_retryable_failure(db_path):
    result = tasks.credit_purchase("alice", "nope")

    assert result["status"] == "failure"
    assert result["error"] == "InvalidState"


def test_beat_schedule_targets_registered_tasks():
    names = {entry["task"] for entry in app.conf.beat_schedule.values()}
    assert names == {"workers.tasks.sweep_inactivity", "workers.tasks.enforce_nudge_deadlines"}
    assert names <= set(app.tasks)
