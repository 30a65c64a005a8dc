"""Domain-level models used by services and stores.

Plain dataclasses mirroring the rows the store persists. Stores build these
as read snapshots; services never mutate them to change game state, they go
through the store's conditional updates instead.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Iterable, Optional, Union

import config
from utils.geo import Coordinate, distance_m


class GameStatus(str, Enum):
	WAITING = "waiting"
	ACTIVE = "active"
	COMPLETED = "completed"


class SafeZoneKind(str, Enum):
	HOME_BASE = "home_base"
	HIT_ZONE = "hit_zone"
	MISS_ZONE = "miss_zone"


class ArsenalItem(str, Enum):
	BASIC_TAG = "basic_tag"
	WIDE_RADIUS_TAG = "wide_radius_tag"
	RADAR = "radar"
	TRIPWIRE = "tripwire"


class TagKind(str, Enum):
	BASIC = "basic"
	WIDE_RADIUS = "wide_radius"

	@property
	def radius(self) -> float:
		if self is TagKind.WIDE_RADIUS:
			return config.WIDE_TAG_RADIUS
		return config.BASIC_TAG_RADIUS

	@property
	def item(self) -> ArsenalItem:
		if self is TagKind.WIDE_RADIUS:
			return ArsenalItem.WIDE_RADIUS_TAG
		return ArsenalItem.BASIC_TAG


class BlockReason(str, Enum):
	HOME_BASE = "home_base"
	SAFE_BASE = "safe_base"
	OUT_OF_TAGS = "out_of_tags"
	PLAYER_ELIMINATED = "player_eliminated"


# -------------------------------------------------
# Zones & tripwires
# -------------------------------------------------

@dataclass
class SafeZone:
	id: str
	owner_id: str
	location: Coordinate
	kind: SafeZoneKind
	radius: float
	created_at: datetime
	expires_at: Optional[datetime] = None
	tagger_id: Optional[str] = None

	def is_active(self, at: datetime) -> bool:
		return self.expires_at is None or at < self.expires_at

	def contains(self, point: Coordinate) -> bool:
		return distance_m(self.location, point) <= self.radius


@dataclass
class Tripwire:
	id: str
	owner_id: str
	path: list[Coordinate]
	placed_at: datetime
	triggered_by: Optional[str] = None
	triggered_at: Optional[datetime] = None

	@property
	def anchor(self) -> Coordinate:
		"""The point whose geofence triggers the tripwire."""
		return self.path[0]


@dataclass
class ArsenalInventory:
	daily_tags_remaining: int = config.DAILY_TAG_LIMIT
	basic_tags: int = 0
	wide_radius_tags: int = 0
	radars: int = 0
	tripwires: int = 0

	def available(self, item: ArsenalItem) -> int:
		if item is ArsenalItem.BASIC_TAG:
			return self.daily_tags_remaining + self.basic_tags
		if item is ArsenalItem.WIDE_RADIUS_TAG:
			return self.wide_radius_tags
		if item is ArsenalItem.RADAR:
			return self.radars
		return self.tripwires


# -------------------------------------------------
# Players & games
# -------------------------------------------------

@dataclass
class PlayerState:
	player_id: str
	display_name: str = "Player"
	strikes: int = config.STARTING_STRIKES
	is_active: bool = True
	last_daily_reset_date: Optional[date] = None
	safe_zones: list[SafeZone] = field(default_factory=list)
	tripwires: list[Tripwire] = field(default_factory=list)
	inventory: ArsenalInventory = field(default_factory=ArsenalInventory)
	joined_at: Optional[datetime] = None
	last_penalty_applied_at: Optional[datetime] = None
	last_warning_sent_at: Optional[datetime] = None

	@property
	def home_bases(self) -> list[SafeZone]:
		"""HomeBase zones in placement order."""
		bases = [z for z in self.safe_zones if z.kind is SafeZoneKind.HOME_BASE]
		return sorted(bases, key=lambda z: z.created_at)

	@property
	def home_base_1(self) -> Optional[Coordinate]:
		bases = self.home_bases
		return bases[0].location if bases else None

	@property
	def home_base_2(self) -> Optional[Coordinate]:
		bases = self.home_bases
		return bases[1].location if len(bases) > 1 else None

	@property
	def is_ready(self) -> bool:
		return len(self.home_bases) >= config.HOME_BASES_PER_PLAYER


@dataclass
class Game:
	id: str
	title: str
	join_code: str
	creator_id: str
	status: GameStatus
	timezone: str
	created_at: datetime
	started_at: Optional[datetime] = None
	ended_at: Optional[datetime] = None
	nudge_issued_at: Optional[datetime] = None
	nudge_deadline_at: Optional[datetime] = None
	players: dict[str, PlayerState] = field(default_factory=dict)

	@property
	def active_player_ids(self) -> list[str]:
		return sorted(pid for pid, p in self.players.items() if p.is_active)

	def opponents_of(self, player_id: str) -> list[PlayerState]:
		"""Active players other than `player_id`, ordered by id."""
		return [
			self.players[pid]
			for pid in self.active_player_ids
			if pid != player_id
		]


@dataclass
class LocationRecord:
	player_id: str
	location: Coordinate
	uploaded_at: datetime
	accuracy: Optional[float] = None


# -------------------------------------------------
# Outcomes
# -------------------------------------------------

@dataclass
class Hit:
	actual_location: Coordinate
	distance: float
	target_id: str
	target_name: str = "Player"
	strikes_remaining: int = 0
	eliminated: bool = False
	source: str = "tag"

	outcome = "hit"

	def to_dict(self) -> dict:
		return {
			"outcome": self.outcome,
			"actual_location": self.actual_location.to_dict(),
			"distance": self.distance,
			"target_id": self.target_id,
			"target_name": self.target_name,
			"strikes_remaining": self.strikes_remaining,
			"eliminated": self.eliminated,
			"source": self.source,
		}


@dataclass
class Miss:
	nearest_distance: float

	outcome = "miss"

	def to_dict(self) -> dict:
		return {"outcome": self.outcome, "nearest_distance": self.nearest_distance}


@dataclass
class Blocked:
	reason: BlockReason

	outcome = "blocked"

	def to_dict(self) -> dict:
		return {"outcome": self.outcome, "reason": self.reason.value}


TagResult = Union[Hit, Miss, Blocked]


@dataclass
class RadarReveal:
	"""Ephemeral two-point disclosure; one point is real, the other a decoy."""
	locations: list[Coordinate]
	radius: float
	target_id: str
	target_name: str
	created_at: datetime
	dismissed: bool = False

	@property
	def expires_at(self) -> datetime:
		return self.created_at + timedelta(seconds=config.RADAR_DURATION_SEC)

	def is_visible(self, at: datetime) -> bool:
		return not self.dismissed and at < self.expires_at

	def dismiss(self) -> None:
		self.dismissed = True

	def to_dict(self) -> dict:
		return {
			"locations": [c.to_dict() for c in self.locations],
			"radius": self.radius,
			"target_id": self.target_id,
			"target_name": self.target_name,
			"created_at": self.created_at.isoformat(),
			"expires_at": self.expires_at.isoformat(),
		}


@dataclass(frozen=True)
class TripwireTriggered:
	tripwire_id: str
	player_id: str
	at: datetime


@dataclass(frozen=True)
class GeofenceRegion:
	identifier: str
	center: Coordinate
	radius: float


# -------------------------------------------------
# Pure predicates
# -------------------------------------------------

def protecting_zone(zones: Iterable[SafeZone], point: Coordinate, at: datetime) -> Optional[SafeZone]:
	"""First active zone containing `point`, HomeBase zones checked first."""
	active = [z for z in zones if z.is_active(at) and z.contains(point)]
	if not active:
		return None
	active.sort(key=lambda z: (z.kind is not SafeZoneKind.HOME_BASE, z.created_at))
	return active[0]


def is_protected(player: PlayerState, point: Coordinate, at: datetime) -> bool:
	return protecting_zone(player.safe_zones, point, at) is not None


def prune_expired(player: PlayerState, at: datetime) -> list[SafeZone]:
	"""Drop expired zones from `player` in place and return the ones removed."""
	expired = [z for z in player.safe_zones if not z.is_active(at)]
	if expired:
		player.safe_zones = [z for z in player.safe_zones if z.is_active(at)]
	return expired


__all__ = [
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
	"protecting_zone",
	"is_protected",
	"prune_expired",
]
