from datetime import datetime, timezone

import pytest

import config
from utils.geo import Coordinate, distance_m, offset
from utils.time import local_date, next_local_midnight, parse_iso, to_utc_iso
from utils.validation import generate_join_code, is_valid_name, is_valid_title, normalize_join_code, sanitize_json


def test_distance_and_offset_agree():
    origin = Coordinate(43.6532, -79.3832)
    for meters, bearing in [(50, 0), (300, 90), (2500, 225)]:
        assert distance_m(origin, offset(origin, meters, bearing)) == pytest.approx(meters, rel=1e-6)


def test_offset_wraps_longitude():
    east = offset(Coordinate(0.0, 179.9999), 1000, 90)
    assert -180 <= east.longitude < 180


def test_next_local_midnight_uses_game_timezone():
    at = datetime(2026, 6, 15, 16, 0, tzinfo=timezone.utc)
    assert next_local_midnight(at, "America/Toronto") == datetime(2026, 6, 16, 4, 0, tzinfo=timezone.utc)
    assert next_local_midnight(at, "Asia/Tokyo") == datetime(2026, 6, 16, 15, 0, tzinfo=timezone.utc)


def test_next_local_midnight_across_dst_change():
    # clocks go back in Toronto early on Nov 1 2026
    at = datetime(2026, 11, 1, 12, 0, tzinfo=timezone.utc)
    assert next_local_midnight(at, "America/Toronto") == datetime(2026, 11, 2, 5, 0, tzinfo=timezone.utc)


def test_local_date_and_unknown_zone():
    at = datetime(2026, 6, 16, 3, 59, tzinfo=timezone.utc)
    assert local_date(at, "America/Toronto").isoformat() == "2026-06-15"
    assert local_date(at, "Not/AZone").isoformat() == "2026-06-16"


def test_iso_helpers():
    at = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)
    assert to_utc_iso(at) == "2026-06-15T12:00:00.000000+00:00"
    assert parse_iso("2026-06-15T12:00:00Z") == at
    assert parse_iso("") is None
    assert parse_iso("yesterday") is None


def test_titles_and_names():
    assert is_valid_title("Fri Tag")
    assert not is_valid_title("Way too long")
    assert is_valid_name("Zoë O'Neil")
    assert not is_valid_name("system")
    assert not is_valid_name("<script>")


def test_join_codes():
    code = generate_join_code()
    assert len(code) == config.JOIN_CODE_LENGTH
    assert normalize_join_code(code.lower()) == code
    assert normalize_join_code(" ab12cd ") == "AB12CD"
    assert normalize_join_code("AB12") is None
    assert normalize_join_code("AB-12C") is None


def test_sanitize_json_drops_operator_keys():
    assert sanitize_json({"$where": 1, "a..b": 2, "ok": [1, "x", None]}) == {"ok": [1, "x", None]}
    with pytest.raises(ValueError):
        sanitize_json({"bad": object()})
