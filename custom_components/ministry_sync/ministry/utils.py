"""Helpers shared by the ministry client modules."""

from datetime import date, datetime
from typing import Any, Optional

# Some deployments nest the payload under this key (ASP.NET JSON services).
ENVELOPE_KEY = "d"

FAILURE_MARKERS = ("error", "fail")


def unwrap_envelope(body: Any) -> Any:
	"""Return the enveloped value when present, otherwise the body itself."""
	if isinstance(body, dict) and ENVELOPE_KEY in body:
		return body[ENVELOPE_KEY]
	return body


def has_failure_marker(value: Any) -> bool:
	"""True for strings that read like a remote failure message."""
	if not isinstance(value, str):
		return False
	lowered = value.lower()
	return any(marker in lowered for marker in FAILURE_MARKERS)


def normalise_base_url(base_url: str) -> str:
	"""Strip whitespace and trailing separators from a base URL."""
	return (base_url or "").strip().rstrip("/")


def normalise_path(path: str) -> str:
	"""Ensure an operation path starts with a single separator."""
	path = (path or "").strip()
	return "/" + path.lstrip("/")


def build_url(base_url: str, path: str) -> str:
	return f"{normalise_base_url(base_url)}{normalise_path(path)}"


def format_date(value: Optional[date]) -> str:
	"""Format a date as YYYY-MM-DD, defaulting to today."""
	if value is None:
		value = date.today()
	if isinstance(value, datetime):
		value = value.date()
	return value.isoformat()
