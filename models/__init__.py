"""Data models used by the application.

Split into:
- `api_models`: Pydantic models used for request/response validation
- `domain_models`: internal domain dataclasses used in business logic

Import submodules to make them available as `models.api_models`.
"""

from . import api_models, domain_models

# Re-export selected API models (Pydantic models used for request/response)
from .api_models import (
	CoordinateIn,
	RegisterPlayerRequest,
	CreateGameRequest,
	JoinGameRequest,
	BaseModelPlus,
	SubmitTagRequest,
	PlaceHomeBaseRequest,
	PlaceTripwireRequest,
	GeofenceEntryRequest,
	LocationUploadRequest,
	PurchaseRequest,
	CreditRequest,
	TagResultResponse,
	GameSummaryResponse,
)

from .domain_models import (
	GameStatus,
	SafeZoneKind,
	ArsenalItem,
	TagKind,
	BlockReason,
	SafeZone,
	Tripwire,
	ArsenalInventory,
	PlayerState,
	Game,
	LocationRecord,
	Hit,
	Miss,
	Blocked,
	TagResult,
	RadarReveal,
	TripwireTriggered,
	GeofenceRegion,
)

__all__ = [
	# submodules
	"api_models",
	"domain_models",
	# api models
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
	# domain models
	"GameStatus",
	"SafeZoneKind",
	"ArsenalItem",
	"TagKind",
	"BlockReason",
	"SafeZone",
	"Tripwire",
	"ArsenalInventory",
	"PlayerState",
	"Game",
	"LocationRecord",
	"Hit",
	"Miss",
	"Blocked",
	"TagResult",
	"RadarReveal",
	"TripwireTriggered",
	"GeofenceRegion",
]
