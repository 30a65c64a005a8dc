"""Time utilities: timezone-aware helpers and ISO formatting/parsing.

These helpers keep code that deals with timestamps consistent across modules.
All timestamps persisted by the store go through `to_utc_iso` so that string
comparison in SQL matches chronological order.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
import zoneinfo


def now_utc() -> datetime:
	"""Return current UTC datetime with tzinfo set."""
	return datetime.now(timezone.utc)


def get_zone(tz_name: str) -> zoneinfo.ZoneInfo | timezone:
	"""Resolve an IANA zone name, falling back to UTC for unknown names."""
	try:
		return zoneinfo.ZoneInfo(tz_name)
	except (zoneinfo.ZoneInfoNotFoundError, ValueError):
		return timezone.utc


def to_utc_iso(dt: datetime) -> str:
	"""Serialize an aware datetime as a fixed-width UTC ISO8601 string."""
	return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_iso(s: str) -> Optional[datetime]:
	"""Parse an ISO8601 string into a timezone-aware datetime when possible.

	Returns None on obvious parse failures.
	"""
	if not s:
		return None
	try:
		# Python's fromisoformat handles most variants; tolerate trailing Z.
		if s.endswith("Z"):
			s = s[:-1] + "+00:00"
		parsed = datetime.fromisoformat(s)
	except ValueError:
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


def local_date(at: datetime, tz_name: str) -> date:
	"""Calendar date of `at` as seen in `tz_name`."""
	return at.astimezone(get_zone(tz_name)).date()


def next_local_midnight(at: datetime, tz_name: str) -> datetime:
	"""First local midnight strictly after `at` in `tz_name`, returned in UTC."""
	zone = get_zone(tz_name)
	tomorrow = at.astimezone(zone).date() + timedelta(days=1)
	return datetime.combine(tomorrow, time.min, tzinfo=zone).astimezone(timezone.utc)
