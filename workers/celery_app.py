"""Celery app configuration and periodic task scheduling."""
import sys
import os
from pathlib import Path

# Add project root to Python path so imports work when celery runs this module directly
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Configure timezone BEFORE importing anything else
import pytz
os.environ['TZ'] = 'UTC'

from celery import Celery
from celery.schedules import crontab
from kombu import Exchange, Queue
import logging
import config

logger = logging.getLogger(__name__)

# Initialize Celery app
app = Celery("phonetag")

# Load config from environment variables or defaults
broker_url = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
result_backend = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

logger.info(f"[CELERY] Using broker_url: {broker_url}")
logger.info(f"[CELERY] Using result_backend: {result_backend}")

app.config_from_object({
    "broker_url": broker_url,
    "result_backend": result_backend,
    "task_serializer": "json",
    "accept_content": ["json"],
    "result_serializer": "json",
    "timezone": pytz.UTC,
    "enable_utc": True,
    "task_acks_late": True,
    "worker_prefetch_multiplier": 1,
})

# Define queues
default_exchange = Exchange("default", type="direct")
maintenance_exchange = Exchange("maintenance", type="direct")

app.conf.task_queues = (
    Queue(
        "default",
        exchange=default_exchange,
        routing_key="default",
        queue_arguments={"x-max-priority": 10},
    ),
    Queue(
        "maintenance",
        exchange=maintenance_exchange,
        routing_key="maintenance",
        queue_arguments={"x-max-priority": 10},
    ),
)

# Default queue for tasks without explicit routing
app.conf.task_default_queue = "default"
app.conf.task_default_exchange = "default"
app.conf.task_default_routing_key = "default"

# SQLAlchemy-backed Beat scheduler: schedule state survives service restarts
scheduler_db_url = os.getenv("CELERY_SCHEDULER_DB_URL", "sqlite:///celery_beat_schedule.db")

app.conf.beat_scheduler = 'celery_sqlalchemy_scheduler.schedulers:DatabaseScheduler'
app.conf.sqlalchemy_engine_options = {
    'url': scheduler_db_url,
}
app.conf.sqlalchemy_session_options = {}

# Periodic task schedules (Celery Beat)
app.conf.beat_schedule = {
    "sweep-inactivity": {
        "task": "workers.tasks.sweep_inactivity",
        "schedule": crontab(minute=f"*/{config.INACTIVITY_SWEEP_MINUTES}"),
        "options": {
            "queue": "maintenance",
            "priority": 5,
        },
    },
    "enforce-nudge-deadlines": {
        "task": "workers.tasks.enforce_nudge_deadlines",
        "schedule": crontab(minute=f"*/{config.INACTIVITY_SWEEP_MINUTES}"),
        "options": {
            "queue": "maintenance",
            "priority": 5,
        },
    },
}

# Task configuration defaults
app.conf.task_default_retry_delay = 60
app.conf.task_max_retries = 5

# NOTE: The engine (and its aiosqlite connection) is NOT created here at import time.
# An aiosqlite connection is bound to the event loop it was opened on, and every task
# runs its own loop via asyncio.run(); see task_helpers.run_with_engine.

# Tasks are imported in workers/__init__.py to register them
