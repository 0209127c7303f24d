"""
Numeric guards shared by every forecasting component.
Zero denominators, NaN, and infinities are replaced at the point of computation so they never propagate.
"""

from __future__ import annotations

import math
from typing import Any

EPSILON = 1e-9


def finite_or(value: Any, default: float = 0.0) -> float:
    """Return `value` as float, or `default` when it is missing, non-numeric, NaN, or infinite."""

    if value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    denominator = finite_or(denominator)
    if abs(denominator) < EPSILON:
        return default
    return finite_or(finite_or(numerator) / denominator, default)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
