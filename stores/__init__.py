# Abstractions
from .game_store import GameStore

# Exceptions
from .exceptions import (
    StoreError,
    GameStoreError,
    GameNotFound,
    PlayerNotFound,
    GameFull,
    PlayerAlreadyJoinedGame,
    InvalidState,
    GameAlreadyExists,
    UnexpectedResult,
    StoreUnavailable,
    EngineError,
    LocationUnavailable,
    GeofenceLimitExceeded,
    RadarUnavailable,
)

from .sqlite_game_store import SqliteGameStore

__all__ = [
    # Abstractions
    "GameStore",
    "SqliteGameStore",
    # Exceptions
    "StoreError",
    "GameStoreError",
    "GameNotFound",
    "PlayerNotFound",
    "GameFull",
    "PlayerAlreadyJoinedGame",
    "InvalidState",
    "GameAlreadyExists",
    "UnexpectedResult",
    "StoreUnavailable",
    "EngineError",
    "LocationUnavailable",
    "GeofenceLimitExceeded",
    "RadarUnavailable",
]


async def open_game_store(db_path: str) -> GameStore:
    """Create and initialize a store for this process (or test)."""
    store = SqliteGameStore(db_path)
    await store.init()
    return store
