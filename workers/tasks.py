"""Celery task definitions for the phone tag engine."""
from celery import Task
from celery.exceptions import SoftTimeLimitExceeded
import logging
from datetime import datetime, UTC
from typing import Any, Dict
from functools import wraps

from services.engine import GameEngine
from .task_helpers import run_exclusive, run_with_engine
from workers.celery_app import app

logger = logging.getLogger(__name__)

soft_time_limit = 60  # seconds
hard_time_limit = 180  # seconds

SWEEP_LOCK_KEY = "phonetag:lock:sweep_inactivity"
NUDGE_LOCK_KEY = "phonetag:lock:enforce_nudge_deadlines"


def celery_task(**task_kwargs):
    """Register `func` as a PhoneTagTask and classify its failures.

    Exceptions carrying `retryable = False` (the store's domain errors) end the
    task with a failure dict; anything else is logged and re-raised so the
    autoretry policy on PhoneTagTask applies.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except SoftTimeLimitExceeded:
                logger.warning(f"{func.__name__} hit its soft time limit")
                raise
            except Exception as exc:
                if getattr(exc, 'retryable', True):
                    logger.error(f"{func.__name__} will retry after {exc.__class__.__name__}: {exc}", exc_info=True)
                    raise
                logger.error(f"{func.__name__} gave up on {exc.__class__.__name__}: {exc}", exc_info=True)
                return {
                    "status": "failure",
                    "error": exc.__class__.__name__,
                    "message": str(exc),
                    "timestamp": datetime.now(UTC).isoformat(),
                }
        return app.task(base=PhoneTagTask, **task_kwargs)(wrapper)
    return decorator


class PhoneTagTask(Task):
    """Retries with jittered backoff; logs every outcome with the task id."""

    autoretry_for = (Exception,)
    retry_kwargs = {"max_retries": 5}
    retry_backoff = True
    retry_backoff_max = 3600
    retry_jitter = True

    def on_retry(self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
        logger.warning(
            f"{self.name}[{task_id}] retry scheduled: {exc}",
            extra={"task_id": task_id, "task_args": args, "task_kwargs": kwargs},
        )

    def on_failure(self, exc: Exception, task_id: str, args: tuple, kwargs: dict, einfo: Any) -> None:
        logger.error(
            f"{self.name}[{task_id}] failed: {exc}",
            extra={"task_id": task_id, "task_args": args, "task_kwargs": kwargs},
            exc_info=einfo,
        )

    def on_success(self, result: Any, task_id: str, args: tuple, kwargs: dict) -> None:
        logger.info(
            f"{self.name}[{task_id}] done",
            extra={"task_id": task_id, "task_result": result},
        )


@celery_task(
    bind=True,
    name="workers.tasks.sweep_inactivity",
    queue="maintenance",
    priority=5,
    soft_time_limit=soft_time_limit,
    time_limit=hard_time_limit,
)
def sweep_inactivity(self, player_id: str | None = None) -> Dict[str, Any]:
    """
    Periodic task (every 30 minutes): penalize players offline for 48h and
    warn those offline for 47h, across every Active game.

    Returns:
        dict: {
            "status": "success" | "partial_failure" | "skipped",
            "games_scanned": int,
            "penalized": list,
            "warned": list,
            "errors": list[str],
        }
    """
    logger.info(f"Starting sweep_inactivity task (player_id={player_id})")

    async def work(engine: GameEngine):
        report = await engine.inactivity.sweep(player_id)
        await engine.notifier.drain()
        return report

    report = run_exclusive(SWEEP_LOCK_KEY, work, timeout=soft_time_limit - 5)
    if report is None:
        return {"status": "skipped", "timestamp": datetime.now(UTC).isoformat()}

    result = {
        "status": "partial_failure" if report.errors else "success",
        **report.to_dict(),
        "timestamp": datetime.now(UTC).isoformat(),
    }
    logger.info(f"sweep_inactivity task completed: {result}")
    return result


@celery_task(
    bind=True,
    name="workers.tasks.enforce_nudge_deadlines",
    queue="maintenance",
    priority=5,
    soft_time_limit=soft_time_limit,
    time_limit=hard_time_limit,
)
def enforce_nudge_deadlines(self) -> Dict[str, Any]:
    """
    Periodic task (every 30 minutes): strike players who ignored a nudge.

    Nudge markers are claimed atomically by the store, so overlapping runs
    cannot penalize twice; the lock only avoids wasted work.
    """
    logger.info("Starting enforce_nudge_deadlines task")

    async def work(engine: GameEngine):
        penalized = await engine.inactivity.enforce_nudge_deadlines()
        await engine.notifier.drain()
        return penalized

    penalized = run_exclusive(NUDGE_LOCK_KEY, work, timeout=soft_time_limit - 5)
    if penalized is None:
        return {"status": "skipped", "timestamp": datetime.now(UTC).isoformat()}

    result = {
        "status": "success",
        "penalized": [list(p) for p in penalized],
        "timestamp": datetime.now(UTC).isoformat(),
    }
    logger.info(f"enforce_nudge_deadlines task completed: {result}")
    return result


@celery_task(
    bind=True,
    name="workers.tasks.credit_purchase",
    queue="default",
    priority=3,
    soft_time_limit=soft_time_limit,
    time_limit=hard_time_limit,
)
def credit_purchase(self, player_id: str, product_id: str) -> Dict[str, Any]:
    """Apply a verified store purchase to every non-completed game of the player."""
    logger.info(f"credit_purchase called for player_id={player_id} product_id={product_id}")

    credited = run_with_engine(lambda engine: engine.ledger.purchase(player_id, product_id))
    result = {
        "status": "success",
        "player_id": player_id,
        "product_id": product_id,
        "credited_games": credited,
        "timestamp": datetime.now(UTC).isoformat(),
    }
    logger.info(f"credit_purchase completed: {result}")
    return result
