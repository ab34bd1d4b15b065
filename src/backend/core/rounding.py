"""Rounding helpers shared by tallies and statistics.

Python's built-in round() rounds half to even; percentages shown to users
(and compared against the invariants on stored tallies) round half up.
"""

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: float, digits: int = 0) -> float:
    """Round to `digits` decimal places, halves away from zero."""
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(part: int, total: int) -> int:
    """Integer percentage of part in total, 0 when total is 0."""
    if total <= 0:
        return 0
    return int(round_half_up(part * 100 / total))
