"""Offline penalties, offline warnings, return notices and nudge deadlines.

The sweep is driven either by a session-scoped APScheduler job (`start` /
`stop`) or by the Celery beat task in `workers.tasks`.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pytz import utc

import config
from models.domain_models import Game, GameStatus
from stores.exceptions import InvalidState, PlayerNotFound, StoreError
from stores.game_store import GameStore
from utils.geo import Coordinate
from utils.time import now_utc

from .notifications import Notifier

logger = logging.getLogger(__name__)

WARNING_AFTER = timedelta(hours=config.OFFLINE_WARNING_HOURS)
PENALTY_AFTER = timedelta(hours=config.OFFLINE_PENALTY_HOURS)
NUDGE_WINDOW = timedelta(hours=config.NUDGE_RESPONSE_WINDOW_HOURS)


@dataclass
class SweepReport:
    games_scanned: int = 0
    penalized: list[tuple[str, str, int]] = field(default_factory=list)  # (game, player, strikes left)
    warned: list[tuple[str, str]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "games_scanned": self.games_scanned,
            "penalized": [list(p) for p in self.penalized],
            "warned": [list(w) for w in self.warned],
            "errors": list(self.errors),
        }


class InactivityMonitor:

    def __init__(self, store: GameStore, notifier: Notifier, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None

    # -------------------------------------------------
    # Session lifecycle
    # -------------------------------------------------

    def start(
        self,
        player_id: Optional[str] = None,
        *,
        minutes: int = config.INACTIVITY_SWEEP_MINUTES,
        enforce_nudges: bool = False,
    ) -> None:
        """Sweep every `minutes` on the running event loop until `stop()`.

        With `enforce_nudges` the same scheduler also strikes players whose
        nudge deadline passed, for deployments without Celery beat.
        """
        if self._scheduler is not None:
            return
        self._scheduler = AsyncIOScheduler(timezone=utc)
        self._scheduler.add_job(
            self.sweep,
            trigger="interval",
            minutes=minutes,
            kwargs={"player_id": player_id},
            id="inactivity-sweep",
            max_instances=1,
            coalesce=True,
            next_run_time=now_utc(),
        )
        if enforce_nudges:
            self._scheduler.add_job(
                self.enforce_nudge_deadlines,
                trigger="interval",
                minutes=minutes,
                id="nudge-deadlines",
                max_instances=1,
                coalesce=True,
            )
        self._scheduler.start()
        logger.info(f"[INACTIVITY] Session monitor started (every {minutes} min)")

    def stop(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("[INACTIVITY] Session monitor stopped")

    @property
    def running(self) -> bool:
        return self._scheduler is not None

    # -------------------------------------------------
    # Sweep
    # -------------------------------------------------

    async def sweep(self, player_id: Optional[str] = None) -> SweepReport:
        """Penalize or warn offline players in every Active game (or those of `player_id`)."""
        report = SweepReport()
        game_ids = await self.store.list_game_ids(status=GameStatus.ACTIVE, player_id=player_id)
        for game_id in game_ids:
            try:
                await self._sweep_game(game_id, report)
            except StoreError as exc:
                logger.error(f"[INACTIVITY] Sweep of {game_id} failed: {exc!r}", exc_info=True)
                report.errors.append(f"{game_id}: {exc.__class__.__name__}")
            report.games_scanned += 1
        if report.penalized or report.warned:
            logger.info(f"[INACTIVITY] Sweep: {len(report.penalized)} penalized, {len(report.warned)} warned")
        return report

    async def _sweep_game(self, game_id: str, report: SweepReport) -> None:
        game = await self.store.get_game(game_id)
        if game.status is not GameStatus.ACTIVE:
            return
        now = self.clock()
        locations = await self.store.get_locations(game.active_player_ids)

        for pid in game.active_player_ids:
            record = locations.get(pid)
            if record is None:
                continue
            gap = now - record.uploaded_at

            if gap >= PENALTY_AFTER:
                strikes = await self.store.deduct_strike(
                    game_id, pid, at=now, penalty_marker_before=record.uploaded_at
                )
                if strikes is None:
                    continue
                report.penalized.append((game_id, pid, strikes))
                logger.info(f"[INACTIVITY] {pid} offline {gap} in {game_id}: {strikes} strikes left")
                self._announce_penalty(game, pid, strikes)
                await self.store.complete_game_if_over(game_id, at=now)
            elif gap >= WARNING_AFTER:
                if await self.store.mark_warning_sent(game_id, pid, at=now, offline_since=record.uploaded_at):
                    report.warned.append((game_id, pid))
                    self.notifier.offline_warning(pid, game_id=game_id, game_title=game.title)

    def _announce_penalty(self, game: Game, player_id: str, strikes: int) -> None:
        name = game.players[player_id].display_name
        self.notifier.offline_strike(game.players.keys(), game_id=game.id, player_name=name, strikes=strikes)
        if strikes == 0:
            others = [pid for pid in game.players if pid != player_id]
            self.notifier.eliminated(others, game_id=game.id, player_name=name)

    # -------------------------------------------------
    # Uploads
    # -------------------------------------------------

    async def record_upload(
        self,
        player_id: str,
        location: Coordinate,
        *,
        accuracy: Optional[float] = None,
    ) -> Optional[datetime]:
        """Store a location upload and announce a return from a long absence."""
        now = self.clock()
        previous = await self.store.record_location(player_id, location, at=now, accuracy=accuracy)
        await self.on_location_upload(player_id, previous, now)
        return previous

    async def on_location_upload(
        self,
        player_id: str,
        previous_uploaded_at: Optional[datetime],
        now: Optional[datetime] = None,
    ) -> list[str]:
        """Tell co-players the player is back if the upload gap crossed the penalty threshold."""
        now = now or self.clock()
        if previous_uploaded_at is None or now - previous_uploaded_at < PENALTY_AFTER:
            return []

        notified = []
        for game_id in await self.store.list_game_ids(status=GameStatus.ACTIVE, player_id=player_id):
            game = await self.store.get_game(game_id)
            player = game.players.get(player_id)
            if player is None or not player.is_active:
                continue
            others = [pid for pid in game.active_player_ids if pid != player_id]
            self.notifier.player_returned(others, game_id=game_id, player_name=player.display_name)
            notified.append(game_id)
        return notified

    # -------------------------------------------------
    # Nudges
    # -------------------------------------------------

    async def issue_nudge(self, game_id: str, nudger_id: str) -> datetime:
        """Give the other players a deadline to open the app; returns the deadline.

        Raises:
            GameNotFound, PlayerNotFound
            InvalidState: Game not Active, nudger eliminated, or a nudge is outstanding.
        """
        game = await self.store.get_game(game_id)
        nudger = game.players.get(nudger_id)
        if nudger is None:
            raise PlayerNotFound(f"Player {nudger_id} not in game {game_id}")
        if game.status is not GameStatus.ACTIVE or not nudger.is_active:
            raise InvalidState(f"Cannot nudge in game {game_id}")

        issued_at = self.clock()
        deadline = issued_at + NUDGE_WINDOW
        if not await self.store.set_nudge(game_id, issued_at=issued_at, deadline_at=deadline):
            raise InvalidState(f"A nudge is already outstanding in {game_id}")

        others = [pid for pid in game.active_player_ids if pid != nudger_id]
        self.notifier.nudge(others, game_id=game_id, game_title=game.title, nudged_by=nudger.display_name)
        logger.info(f"[INACTIVITY] {nudger_id} nudged {game_id}; deadline {deadline.isoformat()}")
        return deadline

    async def enforce_nudge_deadlines(self, now: Optional[datetime] = None) -> list[tuple[str, str, int]]:
        """Strike every active player who has not uploaded since an expired nudge."""
        now = now or self.clock()
        penalized = []
        for game_id, issued_at in await self.store.claim_expired_nudges(now):
            game = await self.store.get_game(game_id)
            locations = await self.store.get_locations(game.active_player_ids)
            for pid in game.active_player_ids:
                record = locations.get(pid)
                if record is not None and record.uploaded_at >= issued_at:
                    continue
                strikes = await self.store.deduct_strike(game_id, pid, at=now)
                if strikes is None:
                    continue
                penalized.append((game_id, pid, strikes))
                logger.info(f"[INACTIVITY] {pid} ignored nudge in {game_id}: {strikes} strikes left")
                self._announce_penalty(game, pid, strikes)
            await self.store.complete_game_if_over(game_id, at=now)
        return penalized
