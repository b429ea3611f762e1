import math


def is_valid_amount(value) -> bool:
    """True for a finite, non-negative int or float (bool excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 0


def format_currency(amount: float, symbol: str = "€") -> str:
    """Format a float as currency string, e.g. '€1,234.56' or '-€12.00'."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def format_signed(amount: float, symbol: str = "€") -> str:
    """Format with +/- sign."""
    sign = "+" if amount >= 0 else "-"
    return f"{sign}{symbol}{abs(amount):,.2f}"
