from __future__ import annotations

from utils.validation import is_in_grid, is_valid_actor_id, is_valid_color


def test_colors() -> None:
    assert is_valid_color("#FF00aa")
    assert not is_valid_color("FF00AA")
    assert not is_valid_color("#FFF")
    assert not is_valid_color("#GG0000")
    assert not is_valid_color(None)
    assert not is_valid_color("#FF0000\n")
    assert not is_valid_color(" #FF0000")


def test_actor_ids() -> None:
    assert is_valid_actor_id("7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU")
    assert is_valid_actor_id("agent:alpha-1")
    assert not is_valid_actor_id("")
    assert not is_valid_actor_id("   ")
    assert not is_valid_actor_id("system")
    assert not is_valid_actor_id("a" * 129)
    assert not is_valid_actor_id("drop table;")
    assert not is_valid_actor_id("alice\n")


def test_grid_bounds() -> None:
    assert is_in_grid(0, 0, 100, 100)
    assert is_in_grid(99, 99, 100, 100)
    assert not is_in_grid(100, 0, 100, 100)
    assert not is_in_grid(-1, 5, 100, 100)
    assert not is_in_grid(1.5, 2, 100, 100)
    assert not is_in_grid(True, 2, 100, 100)
