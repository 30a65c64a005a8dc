from fastapi import APIRouter, HTTPException, Depends
import logging

from models import (
	RegisterPlayerRequest,
	LocationUploadRequest,
	PurchaseRequest,
	CreditRequest,
)
from services.engine import GameEngine
from stores import StoreError
from .games_helpers import get_engine, http_error, to_coordinate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/api/register_player")
async def register_player(req: RegisterPlayerRequest, engine: GameEngine = Depends(get_engine)):
	try:
		await engine.lobby.register_player(req.player_id, req.display_name)
	except StoreError as exc:
		raise http_error(exc)
	return {"player_id": req.player_id, "display_name": req.display_name.strip()}


@router.post("/api/location")
async def upload_location(req: LocationUploadRequest, engine: GameEngine = Depends(get_engine)):
	"""Location upload endpoint; also the trigger for 'player returned' notices."""
	try:
		previous = await engine.inactivity.record_upload(
			req.player_id, to_coordinate(req.location), accuracy=req.accuracy
		)
	except StoreError as exc:
		raise http_error(exc)
	return {
		"player_id": req.player_id,
		"previous_uploaded_at": previous.isoformat() if previous else None,
	}


@router.post("/api/purchase")
async def purchase(req: PurchaseRequest, engine: GameEngine = Depends(get_engine)):
	try:
		credited = await engine.ledger.purchase(req.player_id, req.product_id)
	except StoreError as exc:
		raise http_error(exc)
	logger.info(f"Purchase {req.product_id} by {req.player_id} credited to {len(credited)} games")
	return {"product_id": req.product_id, "credited_games": credited}


@router.post("/api/credit")
async def credit(req: CreditRequest, engine: GameEngine = Depends(get_engine)):
	try:
		credited = await engine.ledger.credit(req.player_id, req.item, req.quantity, req.game_ids)
	except StoreError as exc:
		raise http_error(exc)
	except ValueError as exc:
		raise HTTPException(status_code=400, detail=str(exc))
	return {"item": req.item.value, "quantity": req.quantity, "credited_games": credited}
