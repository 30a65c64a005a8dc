"""Radar: reveal one opponent as a real point plus a decoy."""
import logging
import random
from datetime import datetime
from typing import Callable, Optional

import config
from models.domain_models import ArsenalItem, RadarReveal
from stores.exceptions import LocationUnavailable, PlayerNotFound, RadarUnavailable
from stores.game_store import GameStore
from utils.geo import offset
from utils.time import now_utc

from .arsenal import ArsenalLedger

logger = logging.getLogger(__name__)


class RadarDisclosure:

    def __init__(
        self,
        store: GameStore,
        ledger: ArsenalLedger,
        clock: Callable[[], datetime] = now_utc,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.clock = clock
        self.rng = rng or random.Random()

    async def reveal(self, game_id: str, requester_id: str) -> RadarReveal:
        """
        Raises:
            GameNotFound, PlayerNotFound
            RadarUnavailable: Requester eliminated or out of radars.
            LocationUnavailable: No opponent has a recorded location.
        """
        game = await self.store.get_game(game_id)
        requester = game.players.get(requester_id)
        if requester is None:
            raise PlayerNotFound(f"Player {requester_id} not in game {game_id}")
        if not requester.is_active:
            raise RadarUnavailable(f"Player {requester_id} is eliminated")
        if requester.inventory.available(ArsenalItem.RADAR) < 1:
            raise RadarUnavailable(f"Player {requester_id} has no radars")

        opponents = game.opponents_of(requester_id)
        locations = await self.store.get_locations(p.player_id for p in opponents)
        located = [p for p in opponents if p.player_id in locations]
        if not located:
            raise LocationUnavailable(f"No opponent location available in {game_id}")

        if not await self.ledger.consume(requester_id, game_id, ArsenalItem.RADAR):
            raise RadarUnavailable(f"Player {requester_id} has no radars")

        target = self.rng.choice(located)
        real = locations[target.player_id].location
        decoy = offset(
            real,
            self.rng.uniform(config.RADAR_DECOY_MIN_DISTANCE, config.RADAR_DECOY_MAX_DISTANCE),
            self.rng.uniform(0.0, 360.0),
        )
        points = [real, decoy]
        self.rng.shuffle(points)

        logger.info(f"[RADAR] {requester_id} pinged {target.player_id} in {game_id}")
        return RadarReveal(
            locations=points,
            radius=config.RADAR_RADIUS,
            target_id=target.player_id,
            target_name=target.display_name,
            created_at=self.clock(),
        )
