from fastapi import APIRouter, HTTPException, Depends
from fastapi.responses import JSONResponse
import logging

from models import (
	CreateGameRequest,
	JoinGameRequest,
	BaseModelPlus,
	SubmitTagRequest,
	PlaceHomeBaseRequest,
	PlaceTripwireRequest,
	GeofenceEntryRequest,
	TagResultResponse,
	GameSummaryResponse,
)
from services.engine import GameEngine
from stores import StoreError
from .games_helpers import get_engine, http_error, to_coordinate, zone_to_dict, game_to_dict

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_game_id(req: BaseModelPlus) -> str:
	if not req.game_id:
		raise HTTPException(status_code=400, detail="game_id is required")
	return req.game_id


# --- Lobby ---

@router.get("/api/game", response_model=GameSummaryResponse)
async def get_game(game_id: str, player_id: str | None = None, engine: GameEngine = Depends(get_engine)):
	try:
		game = await engine.store.get_game(game_id)
	except StoreError as exc:
		raise http_error(exc)
	return game_to_dict(game, viewer_id=player_id)


@router.get("/api/games")
async def list_games(player_id: str, engine: GameEngine = Depends(get_engine)):
	try:
		game_ids = await engine.store.list_game_ids(player_id=player_id)
		games = [await engine.store.get_game(gid) for gid in game_ids]
	except StoreError as exc:
		raise http_error(exc)
	return {
		"games": [
			{"game_id": g.id, "title": g.title, "status": g.status.value, "join_code": g.join_code}
			for g in games
		]
	}


@router.post("/api/create_game", response_model=GameSummaryResponse, status_code=201)
async def create_game(req: CreateGameRequest, engine: GameEngine = Depends(get_engine)):
	try:
		game = await engine.lobby.create_game(req.creator_id, req.title, req.invitee_ids, req.timezone)
	except StoreError as exc:
		raise http_error(exc)
	logger.info(f"Game {game.id} created by {req.creator_id}")
	return game_to_dict(game, viewer_id=req.creator_id)


@router.post("/api/join_game", response_model=GameSummaryResponse)
async def join_game(req: JoinGameRequest, engine: GameEngine = Depends(get_engine)):
	try:
		game = await engine.lobby.join_by_code(req.join_code, req.player_id)
	except StoreError as exc:
		raise http_error(exc)
	return game_to_dict(game, viewer_id=req.player_id)


@router.post("/api/leave_game", response_model=GameSummaryResponse)
async def leave_game(req: BaseModelPlus, engine: GameEngine = Depends(get_engine)):
	game_id = _require_game_id(req)
	try:
		game = await engine.lobby.leave_game(game_id, req.player_id)
	except StoreError as exc:
		raise http_error(exc)
	return game_to_dict(game, viewer_id=req.player_id)


# --- Gameplay ---

@router.post("/api/home_base", status_code=201)
async def place_home_base(req: PlaceHomeBaseRequest, engine: GameEngine = Depends(get_engine)):
	game_id = _require_game_id(req)
	try:
		zone = await engine.zones.place_home_base(game_id, req.player_id, to_coordinate(req.location))
		game = await engine.store.get_game(game_id)
	except StoreError as exc:
		raise http_error(exc)
	return JSONResponse(
		status_code=201,
		content={"zone": zone_to_dict(zone), "game_status": game.status.value},
	)


@router.post("/api/tag", response_model=TagResultResponse)
async def submit_tag(req: SubmitTagRequest, engine: GameEngine = Depends(get_engine)):
	game_id = _require_game_id(req)
	try:
		result = await engine.tags.submit_tag(game_id, req.player_id, to_coordinate(req.guess), req.tag_kind)
	except StoreError as exc:
		# a failed submission is an error, never a miss
		raise http_error(exc)
	return result.to_dict()


@router.post("/api/radar")
async def use_radar(req: BaseModelPlus, engine: GameEngine = Depends(get_engine)):
	game_id = _require_game_id(req)
	try:
		reveal = await engine.radar.reveal(game_id, req.player_id)
	except StoreError as exc:
		raise http_error(exc)
	return reveal.to_dict()


@router.post("/api/tripwire", status_code=201)
async def place_tripwire(req: PlaceTripwireRequest, engine: GameEngine = Depends(get_engine)):
	game_id = _require_game_id(req)
	try:
		tripwire = await engine.tripwires.place_tripwire(
			game_id, req.player_id, [to_coordinate(c) for c in req.path]
		)
	except StoreError as exc:
		raise http_error(exc)
	if tripwire is None:
		raise HTTPException(status_code=409, detail="No tripwires left")
	return JSONResponse(
		status_code=201,
		content={"tripwire_id": tripwire.id, "anchor": tripwire.anchor.to_dict()},
	)


@router.post("/api/geofence_entry")
async def geofence_entry(req: GeofenceEntryRequest, engine: GameEngine = Depends(get_engine)):
	try:
		hit = await engine.tripwires.on_geofence_entry(req.tripwire_id, req.player_id)
	except StoreError as exc:
		raise http_error(exc)
	if hit is None:
		return {"triggered": False}
	return {"triggered": True, "hit": hit.to_dict()}


@router.post("/api/nudge")
async def nudge(req: BaseModelPlus, engine: GameEngine = Depends(get_engine)):
	game_id = _require_game_id(req)
	try:
		deadline = await engine.inactivity.issue_nudge(game_id, req.player_id)
	except StoreError as exc:
		raise http_error(exc)
	return {"game_id": game_id, "deadline": deadline.isoformat()}
