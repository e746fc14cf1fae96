"""Time utilities: timezone-aware helpers and ISO formatting/parsing.

Stored timestamps are UTC ISO8601 strings with a fixed microsecond
precision so that they sort lexicographically in SQL.
"""
from datetime import datetime, timezone
from typing import Optional
import time


def now_utc() -> datetime:
	"""Return current UTC datetime with tzinfo set."""
	return datetime.now(timezone.utc)


def now_ms() -> float:
	"""Return the current wall-clock time in epoch milliseconds."""
	return time.time() * 1000.0


def to_iso(dt: datetime) -> str:
	"""Serialize a datetime to a UTC ISO8601 string with microseconds."""
	if dt.tzinfo is None:
		dt = dt.replace(tzinfo=timezone.utc)
	return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def ms_to_iso(ms: float) -> str:
	"""Serialize epoch milliseconds to an ISO8601 string."""
	return to_iso(datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc))


def parse_iso(s: str) -> Optional[datetime]:
	"""Parse an ISO8601 string into a timezone-aware datetime when possible.

	Returns None on obvious parse failures.
	"""
	if not s:
		return None
	try:
		if s.endswith("Z"):
			s = s[:-1] + "+00:00"
		dt = datetime.fromisoformat(s)
	except ValueError:
		return None
	if dt.tzinfo is None:
		dt = dt.replace(tzinfo=timezone.utc)
	return dt
