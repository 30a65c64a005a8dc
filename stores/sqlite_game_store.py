import asyncio
import functools
import json
import logging
import sqlite3
from datetime import date, datetime
from typing import Iterable, Optional

import aiosqlite

import config
from db import init_db
from models.domain_models import (
    ArsenalInventory,
    ArsenalItem,
    Game,
    GameStatus,
    LocationRecord,
    PlayerState,
    SafeZone,
    SafeZoneKind,
    Tripwire,
)
from utils.geo import Coordinate
from utils.time import local_date, parse_iso, to_utc_iso

from .exceptions import (
    GameNotFound,
    PlayerNotFound,
    GameAlreadyExists,
    GameFull,
    PlayerAlreadyJoinedGame,
    InvalidState,
    StoreUnavailable,
    UnexpectedResult,
)
from .game_store import GameStore

logger = logging.getLogger(__name__)

_ITEM_COLUMNS = {
    ArsenalItem.BASIC_TAG: "purchased_basic_tags",
    ArsenalItem.WIDE_RADIUS_TAG: "purchased_wide_tags",
    ArsenalItem.RADAR: "purchased_radars",
    ArsenalItem.TRIPWIRE: "purchased_tripwires",
}

_GAME_IS_ACTIVE = "EXISTS (SELECT 1 FROM games g WHERE g.game_id = game_players.game_id AND g.status = 'active')"


def _ts(value: Optional[datetime]) -> Optional[str]:
    return to_utc_iso(value) if value is not None else None


def _store_call(func):
    """Run a store method under the connection lock with a timeout and retries.

    Transient sqlite failures (locked database, busy timeout) and timeouts are
    retried up to `retry_attempts` times, then surface as StoreUnavailable.
    Any other exception propagates unchanged. An open transaction is always
    rolled back on failure, including cancellation.
    """
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        last_exc: Optional[BaseException] = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                return await asyncio.wait_for(
                    self._serialized(func, *args, **kwargs),
                    timeout=self.timeout,
                )
            except (sqlite3.OperationalError, asyncio.TimeoutError) as exc:
                last_exc = exc
                logger.warning(
                    f"[STORE] {func.__name__} attempt {attempt}/{self.retry_attempts} failed: {exc!r}"
                )
                await asyncio.sleep(0.05 * attempt)
        raise StoreUnavailable(
            f"{func.__name__} failed after {self.retry_attempts} attempts"
        ) from last_exc

    return wrapper


class SqliteGameStore(GameStore):
    """SQLite-based implementation of GameStore with atomic conditional updates."""

    def __init__(
        self,
        db_path: str,
        *,
        timeout: float = config.STORE_TIMEOUT_SEC,
        retry_attempts: int = config.STORE_RETRY_ATTEMPTS,
    ):
        self.db_path = db_path
        self.timeout = timeout
        self.retry_attempts = max(1, retry_attempts)
        self.db: aiosqlite.Connection = None
        self._lock = asyncio.Lock()
        logger.info(f"[STORE] SqliteGameStore initialized with db_path: {db_path}")

    async def init(self):
        """Apply the schema and open the connection. Call this after construction."""
        await init_db(self.db_path)
        self.db = await aiosqlite.connect(
            self.db_path,
            check_same_thread=False,
            timeout=30.0,
            isolation_level=None  # Disable implicit transactions, manage explicitly
        )
        # DELETE journal mode: WAL misbehaves on Docker volume mounts shared by workers
        await self.db.execute("PRAGMA journal_mode=DELETE")
        await self.db.execute("PRAGMA foreign_keys=ON")
        self.db.row_factory = aiosqlite.Row
        logger.info(f"[STORE] Database connection established to {self.db_path}")

    async def close(self):
        """Close database connection."""
        if self.db:
            await self.db.close()
            self.db = None

    async def _serialized(self, func, *args, **kwargs):
        async with self._lock:
            try:
                return await func(self, *args, **kwargs)
            except BaseException:
                if self.db is not None and self.db.in_transaction:
                    await self.db.rollback()
                raise

    # -------------------------------------------------
    # Row mapping
    # -------------------------------------------------

    @staticmethod
    def _zone_from_row(r) -> SafeZone:
        return SafeZone(
            id=r["zone_id"],
            owner_id=r["owner_player_id"],
            location=Coordinate(r["latitude"], r["longitude"]),
            kind=SafeZoneKind(r["kind"]),
            radius=r["radius"],
            created_at=parse_iso(r["created_at"]),
            expires_at=parse_iso(r["expires_at"]),
            tagger_id=r["tagger_player_id"],
        )

    @staticmethod
    def _tripwire_from_row(r) -> Tripwire:
        return Tripwire(
            id=r["tripwire_id"],
            owner_id=r["owner_player_id"],
            path=[Coordinate(lat, lon) for lat, lon in json.loads(r["path"])],
            placed_at=parse_iso(r["placed_at"]),
        )

    async def _insert_zone(self, game_id: str, zone: SafeZone) -> None:
        await self.db.execute(
            """
            INSERT INTO safe_zones (
                zone_id, game_id, owner_player_id, kind, latitude, longitude,
                radius, created_at, expires_at, tagger_player_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                zone.id,
                game_id,
                zone.owner_id,
                zone.kind.value,
                zone.location.latitude,
                zone.location.longitude,
                zone.radius,
                _ts(zone.created_at),
                _ts(zone.expires_at),
                zone.tagger_id,
            ),
        )

    async def _require_membership(self, game_id: str, player_id: str) -> aiosqlite.Row:
        cur = await self.db.execute(
            "SELECT status FROM games WHERE game_id = ?",
            (game_id,),
        )
        game_row = await cur.fetchone()
        if game_row is None:
            raise GameNotFound(game_id)
        cur = await self.db.execute(
            "SELECT 1 FROM game_players WHERE game_id = ? AND player_id = ?",
            (game_id, player_id),
        )
        if await cur.fetchone() is None:
            raise PlayerNotFound(f"Player {player_id} not in game {game_id}")
        return game_row

    async def _fetch_game(self, game_id: str) -> Game:
        cur = await self.db.execute("SELECT * FROM games WHERE game_id = ?", (game_id,))
        row = await cur.fetchone()
        if row is None:
            raise GameNotFound(game_id)

        game = Game(
            id=row["game_id"],
            title=row["title"],
            join_code=row["join_code"],
            creator_id=row["creator_player_id"],
            status=GameStatus(row["status"]),
            timezone=row["timezone"],
            created_at=parse_iso(row["created_at"]),
            started_at=parse_iso(row["started_at"]),
            ended_at=parse_iso(row["ended_at"]),
            nudge_issued_at=parse_iso(row["nudge_issued_at"]),
            nudge_deadline_at=parse_iso(row["nudge_deadline_at"]),
        )

        cur = await self.db.execute(
            """
            SELECT gp.*, COALESCE(p.display_name, 'Player') AS display_name
            FROM game_players gp
            LEFT JOIN players p ON p.player_id = gp.player_id
            WHERE gp.game_id = ?
            ORDER BY gp.player_id
            """,
            (game_id,),
        )
        for r in await cur.fetchall():
            reset_date = r["last_daily_reset_date"]
            game.players[r["player_id"]] = PlayerState(
                player_id=r["player_id"],
                display_name=r["display_name"],
                strikes=r["strikes"],
                is_active=bool(r["is_active"]),
                last_daily_reset_date=date.fromisoformat(reset_date) if reset_date else None,
                inventory=ArsenalInventory(
                    daily_tags_remaining=r["daily_tags_remaining"],
                    basic_tags=r["purchased_basic_tags"],
                    wide_radius_tags=r["purchased_wide_tags"],
                    radars=r["purchased_radars"],
                    tripwires=r["purchased_tripwires"],
                ),
                joined_at=parse_iso(r["joined_at"]),
                last_penalty_applied_at=parse_iso(r["last_penalty_applied_at"]),
                last_warning_sent_at=parse_iso(r["last_warning_sent_at"]),
            )

        cur = await self.db.execute(
            "SELECT * FROM safe_zones WHERE game_id = ? ORDER BY created_at, zone_id",
            (game_id,),
        )
        for r in await cur.fetchall():
            owner = game.players.get(r["owner_player_id"])
            if owner is not None:
                owner.safe_zones.append(self._zone_from_row(r))

        cur = await self.db.execute(
            "SELECT * FROM tripwires WHERE game_id = ? ORDER BY placed_at, tripwire_id",
            (game_id,),
        )
        for r in await cur.fetchall():
            owner = game.players.get(r["owner_player_id"])
            if owner is not None:
                owner.tripwires.append(self._tripwire_from_row(r))

        return game

    # -------------------------------------------------
    # Players
    # -------------------------------------------------

    @_store_call
    async def register_player(self, player_id: str, display_name: str, *, at: datetime) -> None:
        await self.db.execute("BEGIN IMMEDIATE")
        await self.db.execute(
            """
            INSERT INTO players (player_id, display_name, date_created) VALUES (?, ?, ?)
            ON CONFLICT (player_id) DO UPDATE SET display_name = excluded.display_name
            """,
            (player_id, display_name, _ts(at)),
        )
        await self.db.commit()

    @_store_call
    async def get_display_names(self, player_ids: Iterable[str]) -> dict[str, str]:
        ids = sorted(set(player_ids))
        names = {pid: "Player" for pid in ids}
        if not ids:
            return names
        placeholders = ",".join("?" for _ in ids)
        cur = await self.db.execute(
            f"SELECT player_id, display_name FROM players WHERE player_id IN ({placeholders})",
            tuple(ids),
        )
        for r in await cur.fetchall():
            names[r[0]] = r[1]
        return names

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    @_store_call
    async def create_game(
        self,
        game_id: str,
        *,
        title: str,
        join_code: str,
        creator_id: str,
        player_ids: list[str],
        timezone: str,
        at: datetime,
    ) -> Game:
        # Raises: GameAlreadyExists, GameFull
        logger.info(f"[STORE] Creating game: {game_id} ({join_code})")
        members = list(dict.fromkeys([creator_id, *player_ids]))
        if len(members) > config.MAX_PLAYERS:
            raise GameFull(f"Game {game_id} would have {len(members)} players")

        await self.db.execute("BEGIN IMMEDIATE")
        cur = await self.db.execute(
            "SELECT 1 FROM games WHERE game_id = ? OR join_code = ?",
            (game_id, join_code),
        )
        if await cur.fetchone():
            await self.db.rollback()
            raise GameAlreadyExists(f"Game {game_id} or code {join_code} already exists")

        today = local_date(at, timezone).isoformat()
        try:
            await self.db.execute(
                """
                INSERT INTO games (game_id, title, join_code, creator_player_id, status, timezone, created_at)
                VALUES (?, ?, ?, ?, 'waiting', ?, ?)
                """,
                (game_id, title, join_code, creator_id, timezone, _ts(at)),
            )
            for pid in members:
                await self.db.execute(
                    """
                    INSERT INTO game_players (
                        game_id, player_id, joined_at, strikes, daily_tags_remaining, last_daily_reset_date
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (game_id, pid, _ts(at), config.STARTING_STRIKES, config.DAILY_TAG_LIMIT, today),
                )
            await self.db.commit()
        except sqlite3.IntegrityError as exc:
            await self.db.rollback()
            raise UnexpectedResult("Unexpected integrity error during game creation") from exc

        return await self._fetch_game(game_id)

    @_store_call
    async def get_game(self, game_id: str) -> Game:
        # Raises: GameNotFound
        return await self._fetch_game(game_id)

    @_store_call
    async def get_game_id_by_join_code(self, join_code: str) -> str:
        # Raises: GameNotFound
        cur = await self.db.execute(
            "SELECT game_id FROM games WHERE join_code = ?",
            (join_code,),
        )
        row = await cur.fetchone()
        if row is None:
            raise GameNotFound(f"No game with code {join_code}")
        return row[0]

    @_store_call
    async def list_game_ids(
        self,
        *,
        status: Optional[GameStatus] = None,
        player_id: Optional[str] = None,
    ) -> list[str]:
        clauses = []
        params: list = []
        if status is not None:
            clauses.append("g.status = ?")
            params.append(GameStatus(status).value)
        if player_id is not None:
            clauses.append(
                "EXISTS (SELECT 1 FROM game_players gp WHERE gp.game_id = g.game_id AND gp.player_id = ?)"
            )
            params.append(player_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        cur = await self.db.execute(
            f"SELECT g.game_id FROM games g {where} ORDER BY g.created_at, g.game_id",
            tuple(params),
        )
        return [r[0] for r in await cur.fetchall()]

    @_store_call
    async def add_player_to_game(self, game_id: str, player_id: str, *, at: datetime) -> None:
        # Raises: GameNotFound, PlayerAlreadyJoinedGame, InvalidState, GameFull
        await self.db.execute("BEGIN IMMEDIATE")
        cur = await self.db.execute(
            "SELECT status, timezone FROM games WHERE game_id = ?",
            (game_id,),
        )
        game_row = await cur.fetchone()
        if game_row is None:
            await self.db.rollback()
            raise GameNotFound(game_id)

        cur = await self.db.execute(
            "SELECT 1 FROM game_players WHERE game_id = ? AND player_id = ?",
            (game_id, player_id),
        )
        if await cur.fetchone():
            await self.db.rollback()
            raise PlayerAlreadyJoinedGame(f"Player {player_id} already in game {game_id}")

        if game_row["status"] != GameStatus.WAITING.value:
            await self.db.rollback()
            raise InvalidState(f"Game {game_id} is {game_row['status']}, not accepting players")

        cur = await self.db.execute(
            "SELECT COUNT(*) FROM game_players WHERE game_id = ?",
            (game_id,),
        )
        if (await cur.fetchone())[0] >= config.MAX_PLAYERS:
            await self.db.rollback()
            raise GameFull(f"Game {game_id} is full")

        await self.db.execute(
            """
            INSERT INTO game_players (
                game_id, player_id, joined_at, strikes, daily_tags_remaining, last_daily_reset_date
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                game_id,
                player_id,
                _ts(at),
                config.STARTING_STRIKES,
                config.DAILY_TAG_LIMIT,
                local_date(at, game_row["timezone"]).isoformat(),
            ),
        )
        await self.db.commit()

    @_store_call
    async def leave_game(self, game_id: str, player_id: str, *, at: datetime) -> bool:
        # Raises: GameNotFound, PlayerNotFound
        await self.db.execute("BEGIN IMMEDIATE")
        await self._require_membership(game_id, player_id)
        cursor = await self.db.execute(
            """
            UPDATE game_players SET is_active = 0, strikes = 0
            WHERE game_id = ? AND player_id = ? AND is_active = 1
            """,
            (game_id, player_id),
        )
        changed = cursor.rowcount == 1
        await self.db.commit()
        return changed

    @_store_call
    async def activate_game_if_ready(self, game_id: str, *, at: datetime) -> bool:
        await self.db.execute("BEGIN IMMEDIATE")
        cursor = await self.db.execute(
            """
            UPDATE games SET status = 'active', started_at = ?
            WHERE game_id = ? AND status = 'waiting'
              AND (SELECT COUNT(*) FROM game_players gp
                   WHERE gp.game_id = games.game_id AND gp.is_active = 1) >= ?
              AND NOT EXISTS (
                SELECT 1 FROM game_players gp
                WHERE gp.game_id = games.game_id AND gp.is_active = 1
                  AND (SELECT COUNT(*) FROM safe_zones z
                       WHERE z.game_id = gp.game_id
                         AND z.owner_player_id = gp.player_id
                         AND z.kind = 'home_base') < ?
              )
            """,
            (_ts(at), game_id, config.MIN_PLAYERS, config.HOME_BASES_PER_PLAYER),
        )
        activated = cursor.rowcount == 1
        await self.db.commit()
        if activated:
            logger.info(f"[STORE] Game {game_id} activated")
        return activated

    @_store_call
    async def complete_game_if_over(self, game_id: str, *, at: datetime) -> bool:
        await self.db.execute("BEGIN IMMEDIATE")
        cursor = await self.db.execute(
            """
            UPDATE games SET status = 'completed', ended_at = ?
            WHERE game_id = ?
              AND (
                (status = 'active' AND (SELECT COUNT(*) FROM game_players gp
                    WHERE gp.game_id = games.game_id AND gp.is_active = 1) <= 1)
                OR
                (status = 'waiting' AND (SELECT COUNT(*) FROM game_players gp
                    WHERE gp.game_id = games.game_id AND gp.is_active = 1) = 0)
              )
            """,
            (_ts(at), game_id),
        )
        completed = cursor.rowcount == 1
        await self.db.commit()
        if completed:
            logger.info(f"[STORE] Game {game_id} completed")
        return completed

    # -------------------------------------------------
    # Zones
    # -------------------------------------------------

    @_store_call
    async def add_home_base(self, game_id: str, zone: SafeZone) -> int:
        # Raises: GameNotFound, PlayerNotFound, InvalidState
        await self.db.execute("BEGIN IMMEDIATE")
        game_row = await self._require_membership(game_id, zone.owner_id)
        if game_row["status"] != GameStatus.WAITING.value:
            await self.db.rollback()
            raise InvalidState(f"Home bases can only be placed while game {game_id} is waiting")
        cur = await self.db.execute(
            "SELECT is_active FROM game_players WHERE game_id = ? AND player_id = ?",
            (game_id, zone.owner_id),
        )
        if not (await cur.fetchone())["is_active"]:
            await self.db.rollback()
            raise InvalidState(f"Player {zone.owner_id} has left game {game_id}")

        cur = await self.db.execute(
            """
            SELECT COUNT(*) FROM safe_zones
            WHERE game_id = ? AND owner_player_id = ? AND kind = 'home_base'
            """,
            (game_id, zone.owner_id),
        )
        count = (await cur.fetchone())[0]
        if count >= config.HOME_BASES_PER_PLAYER:
            await self.db.rollback()
            raise InvalidState(f"Player {zone.owner_id} already placed {count} home bases")

        await self._insert_zone(game_id, zone)
        await self.db.commit()
        return count + 1

    @_store_call
    async def add_safe_zone(self, game_id: str, zone: SafeZone) -> None:
        await self.db.execute("BEGIN IMMEDIATE")
        try:
            await self._insert_zone(game_id, zone)
        except sqlite3.IntegrityError as exc:
            await self.db.rollback()
            raise UnexpectedResult(f"Could not store zone {zone.id} for game {game_id}") from exc
        await self.db.commit()

    async def _prune(self, game_id: str, at: datetime, player_id: Optional[str]) -> int:
        if player_id is None:
            cursor = await self.db.execute(
                "DELETE FROM safe_zones WHERE game_id = ? AND expires_at IS NOT NULL AND expires_at <= ?",
                (game_id, _ts(at)),
            )
        else:
            cursor = await self.db.execute(
                """
                DELETE FROM safe_zones
                WHERE game_id = ? AND owner_player_id = ? AND expires_at IS NOT NULL AND expires_at <= ?
                """,
                (game_id, player_id, _ts(at)),
            )
        return cursor.rowcount

    # -------------------------------------------------
    # Strikes & inventory
    # -------------------------------------------------

    @_store_call
    async def deduct_strike(
        self,
        game_id: str,
        player_id: str,
        *,
        at: datetime,
        hit_zone: Optional[SafeZone] = None,
        penalty_marker_before: Optional[datetime] = None,
    ) -> Optional[int]:
        await self.db.execute("BEGIN IMMEDIATE")
        strikes = await self._deduct(game_id, player_id, at, penalty_marker_before)
        if strikes is None:
            await self.db.rollback()
            return None
        if hit_zone is not None:
            await self._insert_zone(game_id, hit_zone)
        await self.db.commit()
        logger.info(f"[STORE] Strike on {player_id} in {game_id}: {strikes} remaining")
        return strikes

    async def _deduct(
        self,
        game_id: str,
        player_id: str,
        at: datetime,
        penalty_marker_before: Optional[datetime],
    ) -> Optional[int]:
        # SET expressions see the pre-update row, so `strikes <= 1` means "reaches zero"
        set_marker = ""
        debounce = ""
        params: tuple = (game_id, player_id)
        if penalty_marker_before is not None:
            set_marker = ", last_penalty_applied_at = ?"
            debounce = "AND (last_penalty_applied_at IS NULL OR last_penalty_applied_at < ?)"
            params = (_ts(at), game_id, player_id, _ts(penalty_marker_before))
        cursor = await self.db.execute(
            f"""
            UPDATE game_players
            SET strikes = strikes - 1,
                is_active = CASE WHEN strikes <= 1 THEN 0 ELSE 1 END{set_marker}
            WHERE game_id = ? AND player_id = ? AND is_active = 1 AND strikes > 0
              AND {_GAME_IS_ACTIVE}
              {debounce}
            """,
            params,
        )
        if cursor.rowcount != 1:
            return None
        cur = await self.db.execute(
            "SELECT strikes FROM game_players WHERE game_id = ? AND player_id = ?",
            (game_id, player_id),
        )
        return (await cur.fetchone())[0]

    @_store_call
    async def reset_daily_allowance_if_due(
        self,
        game_id: str,
        player_id: str,
        *,
        today: date,
        at: datetime,
    ) -> bool:
        await self.db.execute("BEGIN IMMEDIATE")
        cursor = await self.db.execute(
            """
            UPDATE game_players SET daily_tags_remaining = ?, last_daily_reset_date = ?
            WHERE game_id = ? AND player_id = ?
              AND (last_daily_reset_date IS NULL OR last_daily_reset_date < ?)
            """,
            (config.DAILY_TAG_LIMIT, today.isoformat(), game_id, player_id, today.isoformat()),
        )
        reset = cursor.rowcount == 1
        pruned = await self._prune(game_id, at, player_id)
        await self.db.commit()
        if reset:
            logger.debug(f"[STORE] Daily tags reset for {player_id} in {game_id} ({pruned} zones pruned)")
        return reset

    @_store_call
    async def consume_item(self, game_id: str, player_id: str, item: ArsenalItem) -> bool:
        await self.db.execute("BEGIN IMMEDIATE")
        changed = 0
        if item is ArsenalItem.BASIC_TAG:
            cursor = await self.db.execute(
                """
                UPDATE game_players SET daily_tags_remaining = daily_tags_remaining - 1
                WHERE game_id = ? AND player_id = ? AND is_active = 1 AND daily_tags_remaining > 0
                """,
                (game_id, player_id),
            )
            changed = cursor.rowcount
        if not changed:
            column = _ITEM_COLUMNS[item]
            cursor = await self.db.execute(
                f"""
                UPDATE game_players SET {column} = {column} - 1
                WHERE game_id = ? AND player_id = ? AND is_active = 1 AND {column} > 0
                """,
                (game_id, player_id),
            )
            changed = cursor.rowcount
        await self.db.commit()
        return changed == 1

    @_store_call
    async def credit_item(
        self,
        player_id: str,
        item: ArsenalItem,
        quantity: int,
        *,
        game_ids: Optional[Iterable[str]] = None,
    ) -> list[str]:
        column = _ITEM_COLUMNS[item]
        await self.db.execute("BEGIN IMMEDIATE")
        cur = await self.db.execute(
            """
            SELECT gp.game_id FROM game_players gp
            JOIN games g ON g.game_id = gp.game_id
            WHERE gp.player_id = ? AND g.status != 'completed'
            ORDER BY gp.game_id
            """,
            (player_id,),
        )
        targets = [r[0] for r in await cur.fetchall()]
        if game_ids is not None:
            allowed = set(game_ids)
            targets = [gid for gid in targets if gid in allowed]
        for gid in targets:
            await self.db.execute(
                f"UPDATE game_players SET {column} = {column} + ? WHERE game_id = ? AND player_id = ?",
                (quantity, gid, player_id),
            )
        await self.db.commit()
        return targets

    # -------------------------------------------------
    # Tripwires
    # -------------------------------------------------

    @_store_call
    async def place_tripwire(self, game_id: str, tripwire: Tripwire) -> bool:
        # Raises: GameNotFound, PlayerNotFound, InvalidState
        await self.db.execute("BEGIN IMMEDIATE")
        game_row = await self._require_membership(game_id, tripwire.owner_id)
        if game_row["status"] != GameStatus.ACTIVE.value:
            await self.db.rollback()
            raise InvalidState(f"Game {game_id} is not active")

        cursor = await self.db.execute(
            """
            UPDATE game_players SET purchased_tripwires = purchased_tripwires - 1
            WHERE game_id = ? AND player_id = ? AND is_active = 1 AND purchased_tripwires > 0
            """,
            (game_id, tripwire.owner_id),
        )
        if cursor.rowcount != 1:
            await self.db.rollback()
            return False

        await self.db.execute(
            """
            INSERT INTO tripwires (tripwire_id, game_id, owner_player_id, path, placed_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                tripwire.id,
                game_id,
                tripwire.owner_id,
                json.dumps([[c.latitude, c.longitude] for c in tripwire.path]),
                _ts(tripwire.placed_at),
            ),
        )
        await self.db.commit()
        return True

    @_store_call
    async def find_tripwire(self, tripwire_id: str) -> Optional[tuple[str, Tripwire]]:
        cur = await self.db.execute(
            "SELECT * FROM tripwires WHERE tripwire_id = ?",
            (tripwire_id,),
        )
        row = await cur.fetchone()
        if row is None:
            return None
        return row["game_id"], self._tripwire_from_row(row)

    @_store_call
    async def trigger_tripwire(
        self,
        game_id: str,
        tripwire_id: str,
        player_id: str,
        *,
        at: datetime,
        hit_zone: SafeZone,
    ) -> Optional[int]:
        await self.db.execute("BEGIN IMMEDIATE")
        cursor = await self.db.execute(
            "DELETE FROM tripwires WHERE tripwire_id = ? AND game_id = ? AND owner_player_id != ?",
            (tripwire_id, game_id, player_id),
        )
        if cursor.rowcount != 1:
            await self.db.rollback()
            return None

        strikes = await self._deduct(game_id, player_id, at, None)
        if strikes is None:
            # entrant cannot be struck; keep the tripwire armed
            await self.db.rollback()
            return None

        await self._insert_zone(game_id, hit_zone)
        await self.db.commit()
        logger.info(f"[STORE] Tripwire {tripwire_id} consumed by {player_id}: {strikes} strikes left")
        return strikes

    # -------------------------------------------------
    # Locations
    # -------------------------------------------------

    @_store_call
    async def record_location(
        self,
        player_id: str,
        location: Coordinate,
        *,
        at: datetime,
        accuracy: Optional[float] = None,
    ) -> Optional[datetime]:
        await self.db.execute("BEGIN IMMEDIATE")
        cur = await self.db.execute(
            "SELECT uploaded_at FROM locations WHERE player_id = ?",
            (player_id,),
        )
        row = await cur.fetchone()
        previous = parse_iso(row[0]) if row else None
        await self.db.execute(
            """
            INSERT INTO locations (player_id, latitude, longitude, accuracy, uploaded_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (player_id) DO UPDATE SET
                latitude = excluded.latitude,
                longitude = excluded.longitude,
                accuracy = excluded.accuracy,
                uploaded_at = excluded.uploaded_at
            """,
            (player_id, location.latitude, location.longitude, accuracy, _ts(at)),
        )
        await self.db.commit()
        return previous

    @_store_call
    async def get_locations(self, player_ids: Iterable[str]) -> dict[str, LocationRecord]:
        ids = sorted(set(player_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" for _ in ids)
        cur = await self.db.execute(
            f"SELECT * FROM locations WHERE player_id IN ({placeholders})",
            tuple(ids),
        )
        return {
            r["player_id"]: LocationRecord(
                player_id=r["player_id"],
                location=Coordinate(r["latitude"], r["longitude"]),
                uploaded_at=parse_iso(r["uploaded_at"]),
                accuracy=r["accuracy"],
            )
            for r in await cur.fetchall()
        }

    # -------------------------------------------------
    # Inactivity & nudges
    # -------------------------------------------------

    @_store_call
    async def mark_warning_sent(
        self,
        game_id: str,
        player_id: str,
        *,
        at: datetime,
        offline_since: datetime,
    ) -> bool:
        await self.db.execute("BEGIN IMMEDIATE")
        cursor = await self.db.execute(
            """
            UPDATE game_players SET last_warning_sent_at = ?
            WHERE game_id = ? AND player_id = ? AND is_active = 1
              AND (last_warning_sent_at IS NULL OR last_warning_sent_at < ?)
            """,
            (_ts(at), game_id, player_id, _ts(offline_since)),
        )
        marked = cursor.rowcount == 1
        await self.db.commit()
        return marked

    @_store_call
    async def set_nudge(self, game_id: str, *, issued_at: datetime, deadline_at: datetime) -> bool:
        # Raises: GameNotFound
        await self.db.execute("BEGIN IMMEDIATE")
        cur = await self.db.execute("SELECT 1 FROM games WHERE game_id = ?", (game_id,))
        if await cur.fetchone() is None:
            await self.db.rollback()
            raise GameNotFound(game_id)
        cursor = await self.db.execute(
            """
            UPDATE games SET nudge_issued_at = ?, nudge_deadline_at = ?
            WHERE game_id = ? AND status = 'active' AND nudge_deadline_at IS NULL
            """,
            (_ts(issued_at), _ts(deadline_at), game_id),
        )
        issued = cursor.rowcount == 1
        await self.db.commit()
        return issued

    @_store_call
    async def claim_expired_nudges(self, now: datetime) -> list[tuple[str, datetime]]:
        await self.db.execute("BEGIN IMMEDIATE")
        cur = await self.db.execute(
            """
            SELECT game_id, nudge_issued_at FROM games
            WHERE status = 'active' AND nudge_deadline_at IS NOT NULL AND nudge_deadline_at <= ?
            ORDER BY game_id
            """,
            (_ts(now),),
        )
        claimed = [(r[0], parse_iso(r[1])) for r in await cur.fetchall()]
        for game_id, _ in claimed:
            await self.db.execute(
                "UPDATE games SET nudge_issued_at = NULL, nudge_deadline_at = NULL WHERE game_id = ?",
                (game_id,),
            )
        await self.db.commit()
        return claimed
