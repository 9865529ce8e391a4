"""
Formatting utilities.
"""

from typing import Optional


def format_price(amount: Optional[float], currency: str = "IDR") -> str:
    """
    Format a price for display in result lists.

    IDR amounts are abbreviated (Rp 1.5B, Rp 750M); other currencies are
    shown in full with a symbol.

    Args:
        amount: The price in whole units, or None when unpriced.
        currency: Currency code (default IDR).

    Returns:
        Formatted price string.
    """
    if amount is None:
        return "Price on request"
    if currency == "IDR":
        if amount >= 1_000_000_000:
            return f"Rp {amount / 1_000_000_000:.1f}B"
        if amount >= 1_000_000:
            return f"Rp {amount / 1_000_000:.0f}M"
        return f"Rp {amount:,.0f}"

    symbols = {
        "USD": "$",
        "EUR": "€",
        "GBP": "£",
    }
    symbol = symbols.get(currency, currency + " ")
    return f"{symbol}{amount:,.0f}"


def format_percent(value: float, decimals: int = 0) -> str:
    """
    Format a number as a percentage.

    Args:
        value: The percentage value.
        decimals: Number of decimal places.

    Returns:
        Formatted percentage string.
    """
    return f"{value:.{decimals}f}%"


def format_response_time(ms: Optional[float]) -> str:
    """'cached' for hits, else milliseconds or seconds."""
    if ms is None:
        return ""
    if ms < 1:
        return "cached"
    if ms < 1000:
        return f"{ms:.0f}ms"
    return f"{ms / 1000:.1f}s"
