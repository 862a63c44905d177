"""Safe P&L calculation and formatting helpers.

Shared by trade reconstruction, the daily summary recalculator and the
CLI so every layer rounds and signs money the same way.
"""

from collections.abc import Iterable


def weighted_average_price(legs: Iterable[tuple[float, int]]) -> float | None:
    """Quantity-weighted mean price of (price, quantity) legs.

    Returns:
        The average, or None when total quantity is zero.
    """
    total_qty = 0
    notional = 0.0
    for price, qty in legs:
        total_qty += qty
        notional += price * qty
    if total_qty == 0:
        return None
    return notional / total_qty


def calc_gross_pnl(side: str, avg_entry: float, avg_exit: float, qty: int, multiplier: float) -> float:
    """Gross P&L of a closed position.

    Args:
        side: LONG or SHORT
        avg_entry: Average entry price
        avg_exit: Average exit price
        qty: Contracts closed
        multiplier: Money per point per contract

    Returns:
        Profit/loss in account currency, rounded to cents
    """
    diff = avg_exit - avg_entry if side == "LONG" else avg_entry - avg_exit
    return round(diff * qty * multiplier, 2)


def classify_outcome(net_pnl: float) -> str:
    """WIN / LOSS / BREAKEVEN by the sign of net P&L."""
    if net_pnl > 0:
        return "WIN"
    if net_pnl < 0:
        return "LOSS"
    return "BREAKEVEN"


def calc_profit_factor(sum_wins: float, sum_losses: float, cap: float) -> float | None:
    """Profit factor with the edge cases pinned.

    ``cap`` is returned when there are wins and no losses; None when there
    are neither.
    """
    if sum_losses < 0:
        return abs(sum_wins) / abs(sum_losses)
    if sum_wins > 0:
        return cap
    return None


def fmt_money(val, decimals=2) -> str:
    """Format a money value, None-safe.

    Args:
        val: Value to format (may be None). -12.5 → "-12.50"
        decimals: Number of decimal places

    Returns:
        Formatted string, or "N/A" if val is None
    """
    if val is None:
        return "N/A"
    return f"{val:,.{decimals}f}"
