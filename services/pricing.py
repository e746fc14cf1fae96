"""Price computation for cell conquests.

Pure functions, no I/O. The store is the authority on a cell's final
price; values computed here are estimates and display helpers.
"""
import config

PRICE_INCREASE_MULTIPLIER = 1.2  # 20% escalation per conquest
SELLER_PROFIT_RATE = 1.1
PLATFORM_TAX_RATE = 0.1


def next_price(current: float) -> float:
    """Price of a cell after one successful conquest at `current`."""
    return current * PRICE_INCREASE_MULTIPLIER


def seller_payout(current: float) -> float:
    """Informational previous-owner share of the post-conquest price.

    Not settled on-ledger: payment only moves funds to the treasury.
    """
    return current * SELLER_PROFIT_RATE


def platform_tax(current: float) -> float:
    """Informational platform share of the post-conquest price."""
    return current * PLATFORM_TAX_RATE


def price_after_conquests(initial: float, conquests: int) -> float:
    return initial * PRICE_INCREASE_MULTIPLIER ** conquests


def total_cost(initial: float, conquests: int) -> float:
    """Total paid by conquering a cell `conquests` times in a row from `initial`."""
    total = 0.0
    price = initial
    for _ in range(conquests):
        total += price
        price = next_price(price)
    return total


def format_amount(value: float) -> str:
    """Render an amount for display, abbreviating thousands and millions."""
    if value < 0.01:
        return f"{value:.4f}"
    if value < 1:
        return f"{value:.3f}"
    if value < 1000:
        return f"{value:.2f}"
    if value < 1_000_000:
        return f"{value / 1000:.2f}K"
    return f"{value / 1_000_000:.2f}M"


def format_balance(value: float, unit: str | None = None) -> str:
    return f"{format_amount(value)} {unit or config.CURRENCY_UNIT}"
