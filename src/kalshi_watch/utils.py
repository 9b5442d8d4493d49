"""Shared utilities for price handling and formatting."""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation

PRICE_DECIMALS = 4


def parse_timestamp(ts: float | None) -> datetime:
    """Convert optional Unix timestamp (seconds) to an aware datetime; fallback to now."""
    if ts is None:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def feed_price(cents: float | None, dollars: str | None = None) -> float | None:
    """Convert a Kalshi quote to dollars.

    The unit comes from the field, never from the value: ``*_dollars`` fields
    are dollar strings ("0.0100") and win when present; the plain
    ``*_price`` fields are always cents (1-99). Absent and non-positive
    prices become None.
    """
    if dollars is not None:
        try:
            price = Decimal(dollars)
        except InvalidOperation:
            price = None
    elif cents is not None:
        price = to_decimal(cents) / 100
    else:
        price = None
    if price is None or not price.is_finite() or price <= 0:
        return None
    return float(price)


def to_decimal(value: float | Decimal) -> Decimal:
    """Exact decimal for a float as written (0.55 -> Decimal('0.55'))."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_price(value: float | Decimal | None) -> str:
    """Format a dollar price as ``$0.4400``; ``n/a`` when missing."""
    if value is None:
        return "n/a"
    return f"${float(value):.{PRICE_DECIMALS}f}"


def format_percent(value: float | Decimal, *, signed: bool = True) -> str:
    """Format a percentage with two decimals, e.g. ``+10.00%``."""
    return f"{float(value):+.2f}%" if signed else f"{float(value):.2f}%"


def format_quantity(value: float | int | None) -> str:
    """Format a contract count without a trailing ``.0``."""
    if value is None:
        return "n/a"
    if float(value).is_integer():
        return str(int(value))
    return str(value)
