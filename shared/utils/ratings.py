"""
shared/utils/ratings.py
Vehicle rating aggregate: mean of review ratings and their count.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple

RATING_PRECISION = Decimal("0.0001")


def aggregate_ratings(ratings: Iterable[int]) -> Tuple[Decimal, int]:
    """
    Returns (mean, count). The mean is quantized to the precision of the
    ``vehicles.rating`` column; both are zero when there are no ratings.
    """
    values = list(ratings)
    if not values:
        return Decimal("0"), 0
    mean = Decimal(sum(values)) / Decimal(len(values))
    return mean.quantize(RATING_PRECISION, rounding=ROUND_HALF_UP), len(values)
