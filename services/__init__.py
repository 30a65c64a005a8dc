"""Services package: the rules engine built on top of the game store.

Import submodules to make them available as `services.tag_validator`,
etc. `GameEngine` wires them together.
"""

from .engine import GameEngine
from .notifications import (
	Notifier,
	NotificationDispatcher,
	LoggingDispatcher,
	RedisDispatcher,
	build_dispatcher,
)
from .tripwires import GeofenceMonitor

__all__ = [
	"GameEngine",
	"Notifier",
	"NotificationDispatcher",
	"LoggingDispatcher",
	"RedisDispatcher",
	"build_dispatcher",
	"GeofenceMonitor",
]
