"""Player profiles and game membership: create, join by code, leave."""
import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

import config
from models.domain_models import Game
from stores.exceptions import (
    GameAlreadyExists,
    GameFull,
    GameNotFound,
    InvalidState,
    PlayerAlreadyJoinedGame,
    UnexpectedResult,
)
from stores.game_store import GameStore
from utils.time import get_zone, now_utc
from utils.validation import generate_join_code, is_valid_name, is_valid_title, normalize_join_code

from .notifications import Notifier

logger = logging.getLogger(__name__)


class GameLobby:
    # join code collisions tolerated before giving up
    MAX_CODE_ATTEMPTS = 5

    def __init__(self, store: GameStore, notifier: Notifier, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.notifier = notifier
        self.clock = clock

    async def register_player(self, player_id: str, display_name: str) -> None:
        """
        Raises:
            InvalidState: If the display name is not acceptable.
        """
        if not is_valid_name(display_name, max_length=40):
            raise InvalidState(f"Invalid display name: {display_name!r}")
        await self.store.register_player(player_id, display_name.strip(), at=self.clock())

    async def create_game(
        self,
        creator_id: str,
        title: str,
        invitee_ids: list[str],
        timezone: Optional[str] = None,
    ) -> Game:
        """
        Raises:
            InvalidState: Bad title or timezone.
            GameFull: Creator plus invitees exceed the player limit.
        """
        if not is_valid_title(title):
            raise InvalidState(f"Invalid game title: {title!r}")
        timezone = timezone or config.GAME_TIMEZONE
        if getattr(get_zone(timezone), "key", None) != timezone:
            raise InvalidState(f"Unknown timezone: {timezone}")
        invitees = [pid for pid in dict.fromkeys(invitee_ids) if pid != creator_id]
        if 1 + len(invitees) > config.MAX_PLAYERS:
            raise GameFull(f"At most {config.MAX_PLAYERS} players per game")

        at = self.clock()
        for _ in range(self.MAX_CODE_ATTEMPTS):
            try:
                game = await self.store.create_game(
                    uuid.uuid4().hex,
                    title=title.strip(),
                    join_code=generate_join_code(),
                    creator_id=creator_id,
                    player_ids=invitees,
                    timezone=timezone,
                    at=at,
                )
                break
            except GameAlreadyExists:
                logger.info("[LOBBY] Join code collision; retrying")
        else:
            raise UnexpectedResult("Could not allocate a unique join code")

        logger.info(f"[LOBBY] {creator_id} created {game.id} ({game.join_code}) with {invitees}")
        if invitees:
            names = await self.store.get_display_names([creator_id])
            self.notifier.game_invite(invitees, game_id=game.id, game_title=game.title, invited_by=names[creator_id])
        return game

    async def join_by_code(self, code: str, player_id: str) -> Game:
        """Join a Waiting game. Joining a game you are already in just returns it.

        Raises:
            GameNotFound: Unknown or malformed code.
            InvalidState: The game has already started.
            GameFull: The game has the maximum number of players.
        """
        normalized = normalize_join_code(code)
        if normalized is None:
            raise GameNotFound(f"No game with code {code!r}")
        game_id = await self.store.get_game_id_by_join_code(normalized)
        try:
            await self.store.add_player_to_game(game_id, player_id, at=self.clock())
            logger.info(f"[LOBBY] {player_id} joined {game_id}")
        except PlayerAlreadyJoinedGame:
            logger.debug(f"[LOBBY] {player_id} already in {game_id}")
        return await self.store.get_game(game_id)

    async def leave_game(self, game_id: str, player_id: str) -> Game:
        """Forfeit: the player becomes inactive and the game may complete, or start if everyone left is ready."""
        at = self.clock()
        if await self.store.leave_game(game_id, player_id, at=at):
            logger.info(f"[LOBBY] {player_id} left {game_id}")
            if not await self.store.complete_game_if_over(game_id, at=at):
                # the leaver may have been the last one without home bases
                if await self.store.activate_game_if_ready(game_id, at=at):
                    game = await self.store.get_game(game_id)
                    self.notifier.game_started(
                        [pid for pid, p in game.players.items() if p.is_active],
                        game_id=game_id,
                        game_title=game.title,
                    )
                    return game
        return await self.store.get_game(game_id)
