"""Validation helpers for request input.

Colors are `#RRGGBB` hex strings. Actor identifiers are opaque (wallet
addresses, agent ids) but restricted to a conservative character set.
"""
import regex as re


HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")

# Letters, digits and a few separators used by wallet/agent identifiers
ACTOR_ID_RE = re.compile(r"^[\p{L}\p{N}_\-:.]+$", flags=re.UNICODE)


def is_valid_color(s) -> bool:
	"""Return True if `s` is a `#RRGGBB` hex color."""
	if not isinstance(s, str):
		return False
	return bool(HEX_COLOR_RE.fullmatch(s))


def is_valid_actor_id(s) -> bool:
	"""Return True if `s` is usable as an actor identity.

	- Must be a non-blank string of at most 128 characters.
	- `system` is reserved for internally triggered work.
	"""
	if not isinstance(s, str) or not s or s.isspace():
		return False
	if s == "system" or len(s) > 128:
		return False
	return bool(ACTOR_ID_RE.fullmatch(s))


def is_in_grid(x, y, width: int, height: int) -> bool:
	"""Return True if (x, y) are integers inside `[0, width) x [0, height)`."""
	if isinstance(x, bool) or isinstance(y, bool):
		return False
	if not isinstance(x, int) or not isinstance(y, int):
		return False
	return 0 <= x < width and 0 <= y < height
