"""Permitted story point scale and helpers."""

import math
from typing import Any, Optional, Tuple

# Ordered smallest to largest; order decides exact ties in normalize_point.
POINT_SCALE: Tuple[float, ...] = (0.5, 1, 2, 3, 5, 8, 13)

DEFAULT_POINT = 1
SPLIT_THRESHOLD = POINT_SCALE[-1]


def to_number(value: Any) -> Optional[float]:
    """Best-effort numeric conversion for model-provided values.

    Booleans are rejected even though they are ints in Python; numeric
    strings such as ``"3"`` or ``" 2.5 "`` are accepted. NaN is rejected.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number):
        return None
    return number


def is_valid_point(value: Any) -> bool:
    """Check whether value is exactly one of the permitted points."""
    number = to_number(value)
    return number is not None and number in POINT_SCALE


def normalize_point(value: Any) -> float:
    """Snap value to the nearest permitted point.

    Exact ties resolve to the first candidate in scale order, so 4 becomes 3
    and 0.75 becomes 0.5. Values that are not numbers fall back to 1.
    """
    number = to_number(value)
    if number is None:
        return DEFAULT_POINT

    # Clamp first so infinities still land on the ends of the scale
    number = min(max(number, POINT_SCALE[0]), POINT_SCALE[-1])

    closest = POINT_SCALE[0]
    min_diff = abs(number - closest)
    for point in POINT_SCALE[1:]:
        diff = abs(number - point)
        if diff < min_diff:
            min_diff = diff
            closest = point
    return closest


def should_suggest_split(point: float) -> bool:
    """Points at the top of the scale always warrant a split suggestion."""
    return point >= SPLIT_THRESHOLD
