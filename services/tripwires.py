"""Tripwire placement, device geofence registration and entry handling."""
import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Callable, Optional

import config
from models.domain_models import (
    GameStatus,
    GeofenceRegion,
    Hit,
    Tripwire,
    TripwireTriggered,
)
from stores.exceptions import GeofenceLimitExceeded, InvalidState, PlayerNotFound
from stores.game_store import GameStore
from utils.geo import Coordinate, distance_m
from utils.time import now_utc

from .notifications import Notifier
from .safe_zones import hit_zone

logger = logging.getLogger(__name__)


class GeofenceMonitor(ABC):
    """The device's region monitoring capability."""

    max_regions: int = config.MAX_GEOFENCE_REGIONS

    @abstractmethod
    def add_region(self, region: GeofenceRegion) -> None:
        """Start monitoring `region`. Raises GeofenceLimitExceeded when full."""

    @abstractmethod
    def remove_all_regions(self) -> None:
        """Stop monitoring every region."""


class TripwireGeofenceCoordinator:

    def __init__(self, store: GameStore, notifier: Notifier, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.notifier = notifier
        self.clock = clock

    async def place_tripwire(self, game_id: str, owner_id: str, path: list[Coordinate]) -> Optional[Tripwire]:
        """Arm a tripwire along `path`; returns None if the owner has no tripwire units.

        Raises:
            GameNotFound, PlayerNotFound
            InvalidState: Game not Active, empty path, or the owner is eliminated.
        """
        if not path:
            raise InvalidState("A tripwire needs at least one point")
        game = await self.store.get_game(game_id)
        owner = game.players.get(owner_id)
        if owner is None:
            raise PlayerNotFound(f"Player {owner_id} not in game {game_id}")
        if not owner.is_active:
            raise InvalidState(f"Player {owner_id} is eliminated")

        tripwire = Tripwire(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            path=[Coordinate(*c) for c in path],
            placed_at=self.clock(),
        )
        if not await self.store.place_tripwire(game_id, tripwire):
            logger.info(f"[TRIPWIRE] {owner_id} has no tripwires left in {game_id}")
            return None
        logger.info(f"[TRIPWIRE] {owner_id} armed {tripwire.id} in {game_id} at {tripwire.anchor}")
        return tripwire

    async def register_geofences(
        self,
        game_id: str,
        viewer_id: str,
        monitor: GeofenceMonitor,
        viewer_location: Optional[Coordinate] = None,
    ) -> list[GeofenceRegion]:
        """Replace the viewer's monitored regions with the opponents' armed tripwires.

        When there are more tripwires than region slots, the nearest to the
        viewer win (ordered by id when the viewer's location is unknown).
        Returns the regions actually registered.
        """
        game = await self.store.get_game(game_id)
        monitor.remove_all_regions()
        if game.status is not GameStatus.ACTIVE:
            return []

        regions = [
            GeofenceRegion(identifier=t.id, center=t.anchor, radius=config.TRIPWIRE_RADIUS)
            for player in game.opponents_of(viewer_id)
            for t in player.tripwires
            if t.triggered_by is None
        ]
        if viewer_location is not None:
            regions.sort(key=lambda r: (distance_m(viewer_location, r.center), r.identifier))
        else:
            regions.sort(key=lambda r: r.identifier)

        limit = monitor.max_regions
        if len(regions) > limit:
            dropped = [r.identifier for r in regions[limit:]]
            logger.warning(f"[TRIPWIRE] {GeofenceLimitExceeded.__name__}: {viewer_id} dropping {dropped}")
            regions = regions[:limit]

        registered = []
        for region in regions:
            try:
                monitor.add_region(region)
            except GeofenceLimitExceeded:
                logger.warning(f"[TRIPWIRE] Monitor full for {viewer_id}; {region.identifier} not registered")
                break
            registered.append(region)
        return registered

    async def on_geofence_entry(
        self,
        tripwire_id: str,
        entering_player_id: str,
        at: Optional[datetime] = None,
    ) -> Optional[Hit]:
        """Apply a tripwire hit. Entry alone confirms it; no distance check.

        Returns None when the tripwire is already consumed, the entrant owns
        it or cannot be struck, or the game is not Active.
        """
        at = at or self.clock()
        found = await self.store.find_tripwire(tripwire_id)
        if found is None:
            logger.info(f"[TRIPWIRE] {tripwire_id} already consumed")
            return None
        game_id, tripwire = found
        if tripwire.owner_id == entering_player_id:
            return None

        strikes = await self.store.trigger_tripwire(
            game_id,
            tripwire_id,
            entering_player_id,
            at=at,
            hit_zone=hit_zone(entering_player_id, tripwire.anchor, at, tagger_id=tripwire.owner_id),
        )
        if strikes is None:
            return None

        game = await self.store.get_game(game_id)
        entrant = game.players[entering_player_id]
        owner_name = game.players[tripwire.owner_id].display_name if tripwire.owner_id in game.players else "Player"
        eliminated = strikes == 0
        if eliminated:
            self.notifier.eliminated(game.players.keys(), game_id=game_id, player_name=entrant.display_name)
        else:
            self.notifier.tagged(
                entering_player_id,
                game_id=game_id,
                tagger_name=owner_name,
                strikes=strikes,
                source="tripwire",
            )
        await self.store.complete_game_if_over(game_id, at=at)
        return Hit(
            actual_location=tripwire.anchor,
            distance=0.0,
            target_id=entering_player_id,
            target_name=entrant.display_name,
            strikes_remaining=strikes,
            eliminated=eliminated,
            source="tripwire",
        )

    async def consume(self, queue: "asyncio.Queue[TripwireTriggered]") -> None:
        """Process entry events until cancelled."""
        while True:
            event = await queue.get()
            try:
                await self.on_geofence_entry(event.tripwire_id, event.player_id, event.at)
            except Exception:
                logger.exception(f"[TRIPWIRE] Failed to apply {event}")
            finally:
                queue.task_done()
