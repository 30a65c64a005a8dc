"""Workers package: Celery app and background task definitions.

Public API:
- `celery_app`: Celery application instance and configuration
- `tasks`: task implementations (e.g. `sweep_inactivity`)
"""

# Import tasks early to register Celery decorators before lazy loading
from . import tasks as _tasks_module


# Lazy attribute access to avoid circular dependencies
def __getattr__(name):
    if name == "celery_app":
        from .celery_app import app
        return app
    elif name == "tasks":
        return _tasks_module
    elif name in (
        "sweep_inactivity",
        "enforce_nudge_deadlines",
        "credit_purchase",
    ):
        return getattr(_tasks_module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "celery_app",
    "tasks",
    "sweep_inactivity",
    "enforce_nudge_deadlines",
    "credit_purchase",
]
