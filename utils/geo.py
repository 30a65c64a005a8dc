"""Spherical-earth geometry used for tag resolution and radar decoys."""
from __future__ import annotations

import math
from typing import NamedTuple

import config


class Coordinate(NamedTuple):
	latitude: float
	longitude: float

	def to_dict(self) -> dict:
		return {"latitude": self.latitude, "longitude": self.longitude}


def distance_m(a: Coordinate, b: Coordinate) -> float:
	"""Great-circle (haversine) distance in meters."""
	lat1 = math.radians(a.latitude)
	lat2 = math.radians(b.latitude)
	dlat = lat2 - lat1
	dlon = math.radians(b.longitude - a.longitude)
	h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
	return 2 * config.EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))


def offset(origin: Coordinate, distance: float, bearing_deg: float) -> Coordinate:
	"""Destination point `distance` meters from `origin` along `bearing_deg`."""
	lat1 = math.radians(origin.latitude)
	lon1 = math.radians(origin.longitude)
	bearing = math.radians(bearing_deg)
	angular = distance / config.EARTH_RADIUS_M

	lat2 = math.asin(
		math.sin(lat1) * math.cos(angular)
		+ math.cos(lat1) * math.sin(angular) * math.cos(bearing)
	)
	lon2 = lon1 + math.atan2(
		math.sin(bearing) * math.sin(angular) * math.cos(lat1),
		math.cos(angular) - math.sin(lat1) * math.sin(lat2),
	)
	# normalize longitude to [-180, 180)
	lon_deg = (math.degrees(lon2) + 540.0) % 360.0 - 180.0
	return Coordinate(math.degrees(lat2), lon_deg)
