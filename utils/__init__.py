"""Utility helpers used across the project.

Exports:
- time helpers: `now_utc`, `now_ms`, `to_iso`, `ms_to_iso`, `parse_iso`
- validation helpers: `is_valid_color`, `is_valid_actor_id`, `is_in_grid`
"""

from .time import now_utc, now_ms, to_iso, ms_to_iso, parse_iso
from .validation import is_valid_color, is_valid_actor_id, is_in_grid, HEX_COLOR_RE

__all__ = [
	"now_utc",
	"now_ms",
	"to_iso",
	"ms_to_iso",
	"parse_iso",
	"is_valid_color",
	"is_valid_actor_id",
	"is_in_grid",
	"HEX_COLOR_RE",
]
