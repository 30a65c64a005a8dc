"""Utility helpers used across the project.

Make commonly used helpers available at the package level for convenience.

Exports:
- time helpers: `now_utc`, `to_utc_iso`, `parse_iso`,
  `local_date`, `next_local_midnight`
- geo helpers: `Coordinate`, `distance_m`, `offset`
- validation helpers: `is_valid_name`, `is_valid_title`, `generate_join_code`,
  `normalize_join_code`, `sanitize_json`, `VALID_NAME_RE`
"""

from .time import now_utc, to_utc_iso, parse_iso, local_date, next_local_midnight
from .geo import Coordinate, distance_m, offset
from .validation import (
	is_valid_name,
	is_valid_title,
	generate_join_code,
	normalize_join_code,
	sanitize_json,
	VALID_NAME_RE,
)

__all__ = [
	"now_utc",
	"to_utc_iso",
	"parse_iso",
	"local_date",
	"next_local_midnight",
	"Coordinate",
	"distance_m",
	"offset",
	"is_valid_name",
	"is_valid_title",
	"generate_join_code",
	"normalize_join_code",
	"sanitize_json",
	"VALID_NAME_RE",
]
