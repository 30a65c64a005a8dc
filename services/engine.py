"""Wires the engine services around one store, notifier and clock."""
import logging
import random
from datetime import datetime
from typing import Callable, Optional

import config
from stores import open_game_store
from stores.game_store import GameStore
from utils.time import now_utc

from .arsenal import ArsenalLedger
from .inactivity import InactivityMonitor
from .lobby import GameLobby
from .notifications import NotificationDispatcher, Notifier, build_dispatcher
from .radar import RadarDisclosure
from .safe_zones import SafeZoneLifecycle
from .tag_validator import TagValidator
from .tripwires import TripwireGeofenceCoordinator

logger = logging.getLogger(__name__)


class GameEngine:
    """Container for the engine's services.

    Nothing here is process-global: build one per app, worker task or test.
    """

    def __init__(
        self,
        store: GameStore,
        notifier: Notifier,
        *,
        clock: Callable[[], datetime] = now_utc,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.ledger = ArsenalLedger(store, clock)
        self.zones = SafeZoneLifecycle(store, notifier, clock)
        self.tags = TagValidator(store, self.ledger, notifier, clock)
        self.tripwires = TripwireGeofenceCoordinator(store, notifier, clock)
        self.radar = RadarDisclosure(store, self.ledger, clock, rng)
        self.inactivity = InactivityMonitor(store, notifier, clock)
        self.lobby = GameLobby(store, notifier, clock)

    @classmethod
    async def open(
        cls,
        db_path: str = config.DB_PATH,
        dispatcher: Optional[NotificationDispatcher] = None,
        **kwargs,
    ) -> "GameEngine":
        store = await open_game_store(db_path)
        notifier = Notifier(dispatcher or build_dispatcher())
        logger.info(f"[ENGINE] Opened engine on {db_path}")
        return cls(store, notifier, **kwargs)

    async def close(self) -> None:
        self.inactivity.stop()
        await self.notifier.close()
        await self.store.close()
