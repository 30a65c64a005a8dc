"""Pydantic request/response models for the FastAPI endpoints.

Keep transport concerns (validation, docs) here and keep business/domain
types in `models.domain_models`.
"""
from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Any
from datetime import datetime

from .domain_models import TagKind, ArsenalItem


class CoordinateIn(BaseModel):
	latitude: float = Field(ge=-90, le=90)
	longitude: float = Field(ge=-180, le=180)


class RegisterPlayerRequest(BaseModel):
	player_id: str
	display_name: str


class CreateGameRequest(BaseModel):
	creator_id: str
	title: str
	invitee_ids: list[str] = []
	timezone: str | None = None


class JoinGameRequest(BaseModel):
	player_id: str
	join_code: str


# --- Common base model for in-game actions ---
class BaseModelPlus(BaseModel):
	player_id: str
	game_id: str | None = None


class SubmitTagRequest(BaseModelPlus):
	guess: CoordinateIn
	tag_kind: TagKind = TagKind.BASIC


class PlaceHomeBaseRequest(BaseModelPlus):
	location: CoordinateIn


class PlaceTripwireRequest(BaseModelPlus):
	path: list[CoordinateIn] = Field(min_length=1)


class GeofenceEntryRequest(BaseModelPlus):
	tripwire_id: str


class LocationUploadRequest(BaseModel):
	player_id: str
	location: CoordinateIn
	accuracy: float | None = None


class PurchaseRequest(BaseModel):
	player_id: str
	product_id: str


class CreditRequest(BaseModel):
	player_id: str
	item: ArsenalItem
	quantity: int = Field(gt=0)
	game_ids: list[str] | None = None


class TagResultResponse(BaseModel):
	outcome: str
	actual_location: dict[str, float] | None = None
	distance: float | None = None
	target_id: str | None = None
	target_name: str | None = None
	strikes_remaining: int | None = None
	eliminated: bool | None = None
	source: str | None = None
	nearest_distance: float | None = None
	reason: str | None = None


class GameSummaryResponse(BaseModel):
	game_id: str
	title: str
	join_code: str
	status: str
	timezone: str
	created_at: datetime
	started_at: datetime | None = None
	ended_at: datetime | None = None
	players: dict[str, Any]


__all__ = [
	"CoordinateIn",
	"RegisterPlayerRequest",
	"CreateGameRequest",
	"JoinGameRequest",
	"BaseModelPlus",
	"SubmitTagRequest",
	"PlaceHomeBaseRequest",
	"PlaceTripwireRequest",
	"GeofenceEntryRequest",
	"LocationUploadRequest",
	"PurchaseRequest",
	"CreditRequest",
	"TagResultResponse",
	"GameSummaryResponse",
]
