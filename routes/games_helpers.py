"""Shared helpers for the game routes: engine dependency, error mapping, serialization."""
from fastapi import HTTPException, Request
import logging

from models.domain_models import Game, PlayerState, SafeZone, SafeZoneKind
from services.engine import GameEngine
from stores import (
	StoreError,
	GameNotFound,
	PlayerNotFound,
	GameFull,
	PlayerAlreadyJoinedGame,
	InvalidState,
	StoreUnavailable,
	LocationUnavailable,
	RadarUnavailable,
)
from utils.geo import Coordinate

logger = logging.getLogger(__name__)


def get_engine(request: Request) -> GameEngine:
	engine = getattr(request.app.state, "engine", None)
	if engine is None:
		raise HTTPException(status_code=503, detail="Engine not ready")
	return engine


def http_error(exc: StoreError) -> HTTPException:
	"""Translate engine/store exceptions to HTTP errors."""
	if isinstance(exc, (GameNotFound, PlayerNotFound)):
		return HTTPException(status_code=404, detail=str(exc) or exc.__class__.__name__)
	if isinstance(exc, (InvalidState, GameFull, PlayerAlreadyJoinedGame, RadarUnavailable, LocationUnavailable)):
		return HTTPException(status_code=409, detail=f"{exc.__class__.__name__}: {exc}")
	if isinstance(exc, StoreUnavailable):
		logger.warning(f"Store unavailable: {exc}")
		return HTTPException(status_code=503, detail="Game state temporarily unavailable")
	logger.error(f"Unexpected engine error: {exc.__class__.__name__}: {exc}", exc_info=exc)
	return HTTPException(status_code=500, detail="Unexpected error")


def to_coordinate(c) -> Coordinate:
	return Coordinate(c.latitude, c.longitude)


def zone_to_dict(zone: SafeZone) -> dict:
	return {
		"id": zone.id,
		"kind": zone.kind.value,
		"location": zone.location.to_dict(),
		"radius": zone.radius,
		"created_at": zone.created_at.isoformat(),
		"expires_at": zone.expires_at.isoformat() if zone.expires_at else None,
	}


def player_to_dict(player: PlayerState, *, viewer_id: str | None = None) -> dict:
	"""Public view of a player; home bases, inventory and tripwires only for the player themself."""
	is_self = viewer_id == player.player_id
	out = {
		"display_name": player.display_name,
		"strikes": player.strikes,
		"is_active": player.is_active,
		"safe_zones": [
			zone_to_dict(z) for z in player.safe_zones
			if is_self or z.kind is not SafeZoneKind.HOME_BASE
		],
	}
	if is_self:
		inv = player.inventory
		out["inventory"] = {
			"daily_tags_remaining": inv.daily_tags_remaining,
			"basic_tags": inv.basic_tags,
			"wide_radius_tags": inv.wide_radius_tags,
			"radars": inv.radars,
			"tripwires": inv.tripwires,
		}
		out["tripwires"] = [
			{"id": t.id, "path": [c.to_dict() for c in t.path], "placed_at": t.placed_at.isoformat()}
			for t in player.tripwires
		]
	return out


def game_to_dict(game: Game, *, viewer_id: str | None = None) -> dict:
	return {
		"game_id": game.id,
		"title": game.title,
		"join_code": game.join_code,
		"status": game.status.value,
		"timezone": game.timezone,
		"created_at": game.created_at,
		"started_at": game.started_at,
		"ended_at": game.ended_at,
		"players": {pid: player_to_dict(p, viewer_id=viewer_id) for pid, p in game.players.items()},
	}
