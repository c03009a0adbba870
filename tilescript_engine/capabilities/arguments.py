"""Argument coercion shared by capability executors."""

from __future__ import annotations

from typing import Any, Optional


def as_number(value: Any) -> Optional[float]:
    """Numeric value of an argument, or None if it is not a number.

    Numeric strings ("3", "2.5") are accepted since scripts often pass raw
    text through variables.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def as_int(value: Any) -> Optional[int]:
    """Integral value of an argument, or None if it is not a whole number."""
    number = as_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)
