"""
Common utility functions for the portal backend.

This module provides helpers shared by the scoring and analytics code:
timestamp handling, identifier generation and the single rounding policy
used for every percentage the portal reports.
"""

import datetime
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

Number = Union[int, float, Decimal]

_ONE_DECIMAL = Decimal("0.1")


def utc_now() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def ensure_utc(value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    """
    Normalize a datetime to aware UTC.

    Naive values are assumed to already be UTC, which is how the SQL store
    hands them back on backends without timezone support.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def generate_id() -> str:
    """Generate a new entity identifier."""
    return str(uuid.uuid4())


def round_half_up(value: Number, places: int = 1) -> float:
    """
    Round a number half-up (away from zero on ties) to a fixed number of places.

    Args:
        value: Number to round
        places: Decimal places to keep

    Returns:
        Rounded value as float
    """
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    quantum = _ONE_DECIMAL if places == 1 else Decimal(1).scaleb(-places)
    return float(value.quantize(quantum, rounding=ROUND_HALF_UP))


def percentage_of(score: int, total_points: int) -> float:
    """
    Compute score / total_points * 100 rounded half-up to one decimal.

    The division is done in Decimal so that a percentage recomputed later
    from the same score and total always matches exactly.

    Args:
        score: Points earned
        total_points: Points available

    Returns:
        Percentage, or 0.0 when total_points is not positive
    """
    if total_points <= 0:
        return 0.0
    ratio = Decimal(score) * 100 / Decimal(total_points)
    return float(ratio.quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def mean(values: Iterable[Number]) -> float:
    """Arithmetic mean computed in Decimal; 0.0 for an empty input."""
    items = [v if isinstance(v, Decimal) else Decimal(str(v)) for v in values]
    if not items:
        return 0.0
    return float(sum(items) / len(items))
