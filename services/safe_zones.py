"""Home bases, hit zones and miss zones."""
import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

import config
from models.domain_models import (
    PlayerState,
    SafeZone,
    SafeZoneKind,
    is_protected as _is_protected,
    prune_expired as _prune_expired,
)
from stores.exceptions import PlayerNotFound
from stores.game_store import GameStore
from utils.geo import Coordinate
from utils.time import next_local_midnight, now_utc

from .notifications import Notifier

logger = logging.getLogger(__name__)


def new_zone_id() -> str:
    return uuid.uuid4().hex


def hit_zone(owner_id: str, location: Coordinate, at: datetime, tagger_id: Optional[str] = None) -> SafeZone:
    """Permanent zone at a tagged player's true position; always basic-tag sized."""
    return SafeZone(
        id=new_zone_id(),
        owner_id=owner_id,
        location=location,
        kind=SafeZoneKind.HIT_ZONE,
        radius=config.HIT_ZONE_RADIUS,
        created_at=at,
        tagger_id=tagger_id,
    )


def miss_zone(owner_id: str, location: Coordinate, at: datetime, timezone: str, tagger_id: Optional[str] = None) -> SafeZone:
    """Zone at a missed guess that lasts until the next local midnight."""
    return SafeZone(
        id=new_zone_id(),
        owner_id=owner_id,
        location=location,
        kind=SafeZoneKind.MISS_ZONE,
        radius=config.MISS_ZONE_RADIUS,
        created_at=at,
        expires_at=next_local_midnight(at, timezone),
        tagger_id=tagger_id,
    )


class SafeZoneLifecycle:

    def __init__(self, store: GameStore, notifier: Notifier, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.notifier = notifier
        self.clock = clock

    async def place_home_base(self, game_id: str, player_id: str, coordinate: Coordinate) -> SafeZone:
        """Add one of the player's two home bases; may start the game.

        Raises:
            GameNotFound, PlayerNotFound
            InvalidState: Game already started, or both bases already placed.
        """
        at = self.clock()
        zone = SafeZone(
            id=new_zone_id(),
            owner_id=player_id,
            location=coordinate,
            kind=SafeZoneKind.HOME_BASE,
            radius=config.HOME_BASE_RADIUS,
            created_at=at,
        )
        count = await self.store.add_home_base(game_id, zone)
        logger.info(f"[ZONES] {player_id} placed home base {count} in {game_id}")

        if await self.store.activate_game_if_ready(game_id, at=at):
            game = await self.store.get_game(game_id)
            self.notifier.game_started(game.players.keys(), game_id=game_id, game_title=game.title)
        return zone

    async def is_protected(
        self,
        game_id: str,
        player_id: str,
        coordinate: Coordinate,
        at: Optional[datetime] = None,
    ) -> bool:
        game = await self.store.get_game(game_id)
        player = game.players.get(player_id)
        if player is None:
            raise PlayerNotFound(f"Player {player_id} not in game {game_id}")
        return _is_protected(player, coordinate, at or self.clock())

    @staticmethod
    def prune_expired(player_state: PlayerState, at: datetime) -> list[SafeZone]:
        return _prune_expired(player_state, at)
