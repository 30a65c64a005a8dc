"""
Shared exception definitions for the store and the engine services.

Hierarchy:
- StoreError (base for all store exceptions)
  - GameStoreError (game-specific errors)
  - StoreUnavailable (transient backend failure, retryable)
  - EngineError (rule-level failures raised by services)
"""


# =========================
# Base exception
# =========================

class StoreError(Exception):
    """Base exception for all store-related errors."""
    retryable: bool = True


class GameNotFound(StoreError):
    retryable = False


class PlayerNotFound(StoreError):
    retryable = False


class UnexpectedResult(StoreError):
    retryable = True
    # aka the "how did this happen" exception: a state that can only occur by breaking ACID


class StoreUnavailable(StoreError):
    """Backend timed out or was locked beyond the retry budget."""
    retryable = True


# =========================
# GameStore exceptions
# =========================

class GameStoreError(StoreError):
    """Base exception for game store errors."""
    retryable = True


class GameFull(GameStoreError):
    retryable = False


class GameAlreadyExists(GameStoreError):
    retryable = False


class PlayerAlreadyJoinedGame(GameStoreError):
    retryable = False


class InvalidState(GameStoreError):
    retryable = False


# =========================
# Engine exceptions
# =========================

class EngineError(StoreError):
    """Base exception for rule-level failures."""
    retryable = False


class LocationUnavailable(EngineError):
    """No usable recorded location for the requested player(s)."""


class GeofenceLimitExceeded(EngineError):
    """The device geofence monitor has no free region slots."""


class RadarUnavailable(EngineError):
    """Requester cannot use a radar (inactive or no radar units)."""
