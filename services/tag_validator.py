"""Server-side tag resolution: guess -> Hit / Miss / Blocked."""
import logging
from datetime import datetime
from typing import Callable, Optional

import config
from models.domain_models import (
    Blocked,
    BlockReason,
    Game,
    GameStatus,
    Hit,
    Miss,
    SafeZoneKind,
    TagKind,
    TagResult,
    protecting_zone,
)
from stores.exceptions import InvalidState, PlayerNotFound, UnexpectedResult
from stores.game_store import GameStore
from utils.geo import Coordinate, distance_m
from utils.time import now_utc

from .arsenal import ArsenalLedger
from .notifications import Notifier
from .safe_zones import hit_zone, miss_zone

logger = logging.getLogger(__name__)


class TagValidator:
    # re-resolutions when the chosen target was eliminated between read and write
    MAX_RESOLVE_ATTEMPTS = 3

    def __init__(
        self,
        store: GameStore,
        ledger: ArsenalLedger,
        notifier: Notifier,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self.ledger = ledger
        self.notifier = notifier
        self.clock = clock

    async def submit_tag(
        self,
        game_id: str,
        submitter_id: str,
        guess: Coordinate,
        tag_kind: TagKind = TagKind.BASIC,
    ) -> TagResult:
        """Resolve a guessed coordinate against every opponent's true location.

        One unit of `tag_kind` is spent once the preconditions pass, whatever
        the outcome.

        Raises:
            GameNotFound, PlayerNotFound
            InvalidState: The game is not Active.
            StoreUnavailable: The store could not be reached.
            UnexpectedResult: The target kept changing under concurrent writes.
        """
        tag_kind = TagKind(tag_kind)
        game = await self.store.get_game(game_id)
        submitter = game.players.get(submitter_id)
        if submitter is None:
            raise PlayerNotFound(f"Player {submitter_id} not in game {game_id}")
        if game.status is not GameStatus.ACTIVE:
            raise InvalidState(f"Game {game_id} is {game.status.value}")
        if not submitter.is_active:
            return Blocked(BlockReason.PLAYER_ELIMINATED)

        await self.ledger.ensure_daily_reset(game_id, submitter_id, timezone=game.timezone)
        if not await self.ledger.consume(submitter_id, game_id, tag_kind.item):
            fresh = await self.store.get_game(game_id)
            if not fresh.players[submitter_id].is_active:
                return Blocked(BlockReason.PLAYER_ELIMINATED)
            return Blocked(BlockReason.OUT_OF_TAGS)

        logger.info(f"[TAG] {submitter_id} tagged ({tag_kind.value}) in {game_id} at {guess}")
        for attempt in range(1, self.MAX_RESOLVE_ATTEMPTS + 1):
            if attempt > 1:
                game = await self.store.get_game(game_id)
            result = await self._resolve(game, submitter_id, guess, tag_kind, warn=attempt == 1)
            if result is not None:
                logger.info(f"[TAG] {submitter_id} in {game_id}: {result.outcome}")
                return result
            logger.info(f"[TAG] Target changed under tag by {submitter_id}; re-resolving ({attempt})")

        raise UnexpectedResult(
            f"Tag by {submitter_id} in {game_id} could not be applied after {self.MAX_RESOLVE_ATTEMPTS} attempts"
        )

    async def _resolve(
        self,
        game: Game,
        submitter_id: str,
        guess: Coordinate,
        tag_kind: TagKind,
        *,
        warn: bool,
    ) -> Optional[TagResult]:
        """One pass over fresh state. None means the chosen target could not be struck."""
        at = self.clock()
        tagger_name = game.players[submitter_id].display_name
        opponents = game.opponents_of(submitter_id)
        locations = await self.store.get_locations(p.player_id for p in opponents)

        candidates = []
        for player in opponents:
            record = locations.get(player.player_id)
            if record is None:
                continue
            candidates.append((distance_m(guess, record.location), player.player_id, player, record))
        candidates.sort(key=lambda c: (c[0], c[1]))

        if warn:
            for dist, pid, _, _ in candidates:
                if dist <= config.TAG_WARNING_RADIUS:
                    self.notifier.tag_warning(pid, game_id=game.id, game_title=game.title, tagger_name=tagger_name)

        for dist, pid, player, record in candidates:
            if dist > tag_kind.radius:
                break
            zone = protecting_zone(player.safe_zones, record.location, at)
            if zone is not None:
                reason = BlockReason.HOME_BASE if zone.kind is SafeZoneKind.HOME_BASE else BlockReason.SAFE_BASE
                return Blocked(reason)

            strikes = await self.store.deduct_strike(
                game.id,
                pid,
                at=at,
                hit_zone=hit_zone(pid, record.location, at, tagger_id=submitter_id),
            )
            if strikes is None:
                return None

            eliminated = strikes == 0
            if eliminated:
                self.notifier.eliminated(game.players.keys(), game_id=game.id, player_name=player.display_name)
            else:
                self.notifier.tagged(pid, game_id=game.id, tagger_name=tagger_name, strikes=strikes)
            await self.store.complete_game_if_over(game.id, at=at)
            return Hit(
                actual_location=record.location,
                distance=dist,
                target_id=pid,
                target_name=player.display_name,
                strikes_remaining=strikes,
                eliminated=eliminated,
            )

        owner_id = self._miss_zone_owner(game, submitter_id, guess)
        if owner_id is not None:
            await self.store.add_safe_zone(
                game.id,
                miss_zone(owner_id, guess, at, game.timezone, tagger_id=submitter_id),
            )
        nearest = candidates[0][0] if candidates else config.MISS_SENTINEL_DISTANCE
        return Miss(nearest_distance=nearest)

    @staticmethod
    def _miss_zone_owner(game: Game, submitter_id: str, guess: Coordinate) -> Optional[str]:
        """Active opponent whose nearest home base is closest to the guess."""
        best = None
        for player in game.opponents_of(submitter_id):
            bases = player.home_bases
            if not bases:
                continue
            key = (min(distance_m(guess, z.location) for z in bases), player.player_id)
            if best is None or key < best:
                best = key
        return best[1] if best else None
