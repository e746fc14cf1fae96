from __future__ import annotations

import pytest

from services import pricing


@pytest.mark.parametrize("current", [0.01, 0.012, 1.0, 37.5, 10_000.0])
def test_next_price_escalates_by_twenty_percent(current: float) -> None:
    assert pricing.next_price(current) == pytest.approx(current * 1.2)
    assert pricing.next_price(current) > current


def test_payout_and_tax_split_the_next_price() -> None:
    current = 0.5
    assert pricing.seller_payout(current) + pricing.platform_tax(current) == pytest.approx(pricing.next_price(current))


def test_price_after_conquests_and_total_cost() -> None:
    assert pricing.price_after_conquests(0.01, 0) == pytest.approx(0.01)
    assert pricing.price_after_conquests(0.01, 2) == pytest.approx(0.0144)
    assert pricing.total_cost(0.01, 3) == pytest.approx(0.01 + 0.012 + 0.0144)
    assert pricing.total_cost(0.01, 0) == 0.0


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0.005, "0.0050"),
        (0.012, "0.012"),
        (12.5, "12.50"),
        (1500.0, "1.50K"),
        (2_500_000.0, "2.50M"),
    ],
)
def test_format_amount(value: float, expected: str) -> None:
    assert pricing.format_amount(value) == expected


def test_format_balance_appends_unit() -> None:
    assert pricing.format_balance(1.0, "USDC") == "1.00 USDC"
