"""Validation and sanitization helpers.

This module provides lightweight input validation used by route handlers
and the lobby service.
"""
from typing import Any
import secrets
import string
import regex as re

import config


# Allow: any Unicode letter/mark/number, spaces, plus a small, explicit set of name punctuation
VALID_NAME_RE = re.compile(r"^[\p{L}\p{M}\p{N} .'\-`’·]+$", flags=re.UNICODE)

JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits
JOIN_CODE_RE = re.compile(r"^[A-Z0-9]+$")


def is_valid_name(s: str, *, max_length: int = 200) -> bool:
	"""Return True if `s` is a reasonable display name or game title.

	- Strips and enforces a maximum length.
	- Uses Unicode-aware character class matching.
	"""
	if not s:
		return False
	if (s.isspace() or s == "system"):
		return False
	s = s.strip()
	if len(s) == 0 or len(s) > max_length:
		return False
	return bool(VALID_NAME_RE.match(s))


def is_valid_title(s: str) -> bool:
	return is_valid_name(s, max_length=config.GAME_TITLE_MAX_LENGTH)


def generate_join_code(length: int = config.JOIN_CODE_LENGTH) -> str:
	return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(length))


def normalize_join_code(code: str) -> str | None:
	"""Uppercase and validate a user-typed join code; None if malformed."""
	if not code:
		return None
	code = code.strip().upper()
	if len(code) != config.JOIN_CODE_LENGTH or not JOIN_CODE_RE.match(code):
		return None
	return code


def sanitize_json(obj: Any, *, _depth: int = 0, _max_depth: int = 10) -> Any:
	"""Recursively sanitize an input JSON-like structure.

	- Rejects keys that start with '$' or contain '..'.
	- Enforces max depth to avoid excessive recursion.
	- Returns a cleaned structure containing only dict/list/primitives.
	"""
	if _depth > _max_depth:
		raise ValueError("Input too deeply nested")

	if isinstance(obj, dict):
		clean = {}
		for k, v in obj.items():
			if not isinstance(k, str):
				continue
			if k.startswith("$") or ".." in k:
				continue
			clean[k] = sanitize_json(v, _depth=_depth + 1, _max_depth=_max_depth)
		return clean
	elif isinstance(obj, (list, tuple)):
		return [sanitize_json(v, _depth=_depth + 1, _max_depth=_max_depth) for v in obj]
	elif isinstance(obj, (str, int, float, bool)) or obj is None:
		return obj
	else:
		raise ValueError("Unsupported JSON value type")
