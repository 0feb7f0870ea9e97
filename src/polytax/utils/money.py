"""Money helpers for deterministic rounding and display."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP


CENT = Decimal("0.01")


def to_decimal(value: float | int | str | Decimal | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: float | int | str | Decimal | None) -> float:
    return float(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def format_fixed(value: float | int | str | Decimal | None) -> str:
    """Render an amount with exactly two decimals, e.g. ``-12.3`` -> ``"-12.30"``."""
    quantized = to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    if quantized == 0:
        quantized = abs(quantized)
    return f"{quantized:.2f}"


def format_quantity(value: float) -> str:
    quantity = float(value)
    if quantity.is_integer():
        return str(int(quantity))
    return f"{quantity:.8f}".rstrip("0").rstrip(".")
