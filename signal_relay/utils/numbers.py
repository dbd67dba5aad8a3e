"""Numeric formatting helpers."""

from typing import Optional


def format_price(value: Optional[float], missing: str = "") -> str:
    """
    Render a price without losing precision.

    Whole numbers drop the trailing ``.0``; everything else keeps the shortest
    representation that round-trips, so ``21234.25`` stays ``21234.25``.
    """
    if value is None:
        return missing
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def format_points(value: float) -> str:
    """Signed point total, e.g. ``+9.5`` or ``-4.75``."""
    text = format_price(value)
    return text if text.startswith("-") else f"+{text}"
