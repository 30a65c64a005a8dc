from typing import Optional, Iterable
from datetime import date, datetime
from abc import ABC, abstractmethod

from models.domain_models import (
    ArsenalItem,
    Game,
    GameStatus,
    LocationRecord,
    SafeZone,
    Tripwire,
)
from utils.geo import Coordinate


# =========================
# GameStore Interface
# =========================

class GameStore(ABC):
    """
    The GameStore is the sole authority over game state.

    Invariants:
    - Every mutation is one short transaction over the rows it touches
    - Strike, inventory and status transitions are conditional updates;
      the return value says whether the transition happened
    - Activation and completion checks are idempotent
    - All concurrency control lives here
    """

    async def init(self) -> None:
        """Open connections / apply schema. Called once before use."""

    async def close(self) -> None:
        """Release backend resources."""

    # -------------------------------------------------
    # Players
    # -------------------------------------------------

    @abstractmethod
    async def register_player(self, player_id: str, display_name: str, *, at: datetime) -> None:
        """Create or rename a player profile."""

    @abstractmethod
    async def get_display_names(self, player_ids: Iterable[str]) -> dict[str, str]:
        """Map player ids to display names; unknown ids map to "Player"."""

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    @abstractmethod
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
        """Create a Waiting game with the creator and invitees as players.

        Raises:
            GameAlreadyExists: If the id or the join code is taken.
            GameFull: If more than the maximum number of players is given.
        """

    @abstractmethod
    async def get_game(self, game_id: str) -> Game:
        """Full snapshot of a game: players, zones, tripwires, inventory.

        Raises:
            GameNotFound: If the game does not exist.
        """

    @abstractmethod
    async def get_game_id_by_join_code(self, join_code: str) -> str:
        """
        Raises:
            GameNotFound: If no game uses the code.
        """

    @abstractmethod
    async def list_game_ids(
        self,
        *,
        status: Optional[GameStatus] = None,
        player_id: Optional[str] = None,
    ) -> list[str]:
        """Game ids filtered by status and/or participant."""

    @abstractmethod
    async def add_player_to_game(self, game_id: str, player_id: str, *, at: datetime) -> None:
        """
        Raises:
            GameNotFound: If the game does not exist.
            PlayerAlreadyJoinedGame: If the player is already in the game.
            InvalidState: If the game is no longer Waiting.
            GameFull: If the game has reached the player limit.
        """

    @abstractmethod
    async def leave_game(self, game_id: str, player_id: str, *, at: datetime) -> bool:
        """Mark the player inactive with zero strikes. False if already inactive.

        Raises:
            GameNotFound, PlayerNotFound
        """

    @abstractmethod
    async def activate_game_if_ready(self, game_id: str, *, at: datetime) -> bool:
        """Waiting -> Active when >= 2 active players all have two home bases.

        Returns True only for the call that performed the transition.
        """

    @abstractmethod
    async def complete_game_if_over(self, game_id: str, *, at: datetime) -> bool:
        """Active -> Completed when at most one active player remains.

        A Waiting game that every player has left is completed as well.
        Returns True only for the call that performed the transition.
        """

    # -------------------------------------------------
    # Zones
    # -------------------------------------------------

    @abstractmethod
    async def add_home_base(self, game_id: str, zone: SafeZone) -> int:
        """Store a home base; returns the owner's home base count.

        Raises:
            GameNotFound, PlayerNotFound
            InvalidState: Game not Waiting, or the owner already has two.
        """

    @abstractmethod
    async def add_safe_zone(self, game_id: str, zone: SafeZone) -> None:
        """Store a hit or miss zone."""

    # -------------------------------------------------
    # Strikes & inventory
    # -------------------------------------------------

    @abstractmethod
    async def deduct_strike(
        self,
        game_id: str,
        player_id: str,
        *,
        at: datetime,
        hit_zone: Optional[SafeZone] = None,
        penalty_marker_before: Optional[datetime] = None,
    ) -> Optional[int]:
        """Remove one strike from an active player of an Active game.

        At zero the player becomes inactive. `hit_zone` is stored in the same
        transaction. With `penalty_marker_before`, the update only applies if
        the player's last penalty marker is unset or older than it, and the
        marker is then set to `at`.

        Returns the remaining strikes, or None if nothing changed.
        """

    @abstractmethod
    async def reset_daily_allowance_if_due(
        self,
        game_id: str,
        player_id: str,
        *,
        today: date,
        at: datetime,
    ) -> bool:
        """Reset free daily tags to the cap if the last reset is before `today`.

        Expired zones of the player are pruned in the same transaction.
        """

    @abstractmethod
    async def consume_item(self, game_id: str, player_id: str, item: ArsenalItem) -> bool:
        """Atomically use one unit; basic tags draw the free allowance first."""

    @abstractmethod
    async def credit_item(
        self,
        player_id: str,
        item: ArsenalItem,
        quantity: int,
        *,
        game_ids: Optional[Iterable[str]] = None,
    ) -> list[str]:
        """Add purchased units in every non-completed game of the player."""

    # -------------------------------------------------
    # Tripwires
    # -------------------------------------------------

    @abstractmethod
    async def place_tripwire(self, game_id: str, tripwire: Tripwire) -> bool:
        """Consume a tripwire unit and store the tripwire. False if none left.

        Raises:
            GameNotFound
            InvalidState: Game not Active.
        """

    @abstractmethod
    async def find_tripwire(self, tripwire_id: str) -> Optional[tuple[str, Tripwire]]:
        """(game_id, tripwire) if the tripwire is still armed."""

    @abstractmethod
    async def trigger_tripwire(
        self,
        game_id: str,
        tripwire_id: str,
        player_id: str,
        *,
        at: datetime,
        hit_zone: SafeZone,
    ) -> Optional[int]:
        """Delete the tripwire and strike the entrant in one transaction.

        Returns remaining strikes, or None if the tripwire was already gone or
        the strike could not be applied (in which case nothing changes).
        """

    # -------------------------------------------------
    # Locations
    # -------------------------------------------------

    @abstractmethod
    async def record_location(
        self,
        player_id: str,
        location: Coordinate,
        *,
        at: datetime,
        accuracy: Optional[float] = None,
    ) -> Optional[datetime]:
        """Upsert the player's location; returns the previous upload time."""

    @abstractmethod
    async def get_locations(self, player_ids: Iterable[str]) -> dict[str, LocationRecord]:
        """Last known locations; players who never uploaded are absent."""

    # -------------------------------------------------
    # Inactivity & nudges
    # -------------------------------------------------

    @abstractmethod
    async def mark_warning_sent(
        self,
        game_id: str,
        player_id: str,
        *,
        at: datetime,
        offline_since: datetime,
    ) -> bool:
        """Set the warning marker unless already set for this offline period."""

    @abstractmethod
    async def set_nudge(self, game_id: str, *, issued_at: datetime, deadline_at: datetime) -> bool:
        """Record a nudge on an Active game without an outstanding one.

        Raises:
            GameNotFound
        """

    @abstractmethod
    async def claim_expired_nudges(self, now: datetime) -> list[tuple[str, datetime]]:
        """Clear and return (game_id, issued_at) for nudges past their deadline."""
