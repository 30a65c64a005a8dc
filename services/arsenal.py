"""Per-player, per-game item accounting."""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from models.domain_models import ArsenalItem
from stores.exceptions import InvalidState
from stores.game_store import GameStore
from utils.time import local_date, now_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreProduct:
    id: str
    item: ArsenalItem
    quantity: int
    description: str


PRODUCT_CATALOG: dict[str, StoreProduct] = {
    p.id: p
    for p in (
        StoreProduct("basictag.10", ArsenalItem.BASIC_TAG, 10, "10 basic tags (~1 block radius)"),
        StoreProduct("wideradius.5", ArsenalItem.WIDE_RADIUS_TAG, 5, "5 wide radius tags (~3-5 blocks)"),
        StoreProduct("radar.3", ArsenalItem.RADAR, 3, "3 radar pings to locate players"),
        StoreProduct("tripwire.3", ArsenalItem.TRIPWIRE, 3, "3 tripwires to place at locations"),
    )
}


class ArsenalLedger:

    def __init__(self, store: GameStore, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.clock = clock

    async def consume(self, player_id: str, game_id: str, item: ArsenalItem) -> bool:
        """Use one unit. Basic tags spend the free daily allowance before purchased ones."""
        item = ArsenalItem(item)
        used = await self.store.consume_item(game_id, player_id, item)
        if not used:
            logger.info(f"[ARSENAL] {player_id} has no {item.value} left in {game_id}")
        return used

    async def credit(
        self,
        player_id: str,
        item: ArsenalItem,
        quantity: int,
        across_games: Optional[Iterable[str]] = None,
    ) -> list[str]:
        """Add purchased units to every non-completed game the player is in."""
        if quantity <= 0:
            raise ValueError("quantity must be positive")
        item = ArsenalItem(item)
        credited = await self.store.credit_item(player_id, item, quantity, game_ids=across_games)
        logger.info(f"[ARSENAL] Credited {quantity} x {item.value} to {player_id} in {credited}")
        return credited

    async def purchase(self, player_id: str, product_id: str) -> list[str]:
        """Apply a completed store purchase.

        Raises:
            InvalidState: If the product id is unknown.
        """
        product = PRODUCT_CATALOG.get(product_id)
        if product is None:
            raise InvalidState(f"Unknown product {product_id}")
        return await self.credit(player_id, product.item, product.quantity)

    async def ensure_daily_reset(
        self,
        game_id: str,
        player_id: str,
        today: Optional[date] = None,
        *,
        timezone: Optional[str] = None,
    ) -> bool:
        """Refill the free daily tags to the cap once per local day.

        `today` defaults to the current date in `timezone` (the game's zone).
        """
        at = self.clock()
        if today is None:
            if timezone is None:
                timezone = (await self.store.get_game(game_id)).timezone
            today = local_date(at, timezone)
        reset = await self.store.reset_daily_allowance_if_due(game_id, player_id, today=today, at=at)
        if reset:
            logger.debug(f"[ARSENAL] Daily allowance refilled for {player_id} in {game_id}")
        return reset
