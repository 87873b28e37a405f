"""Descriptive statistics over a population of prices."""

from __future__ import annotations

import math
from typing import Iterable

from carecost.search.models import PriceStatistics


def round_half_up(value: float) -> int:
    # Currency rounding: 12.5 -> 13, unlike round()'s banker's rounding
    return int(math.floor(value + 0.5))


def median(sorted_values: list[float]) -> float:
    count = len(sorted_values)
    if count == 0:
        return 0
    mid = count // 2
    if count % 2:
        return sorted_values[mid]
    return (sorted_values[mid - 1] + sorted_values[mid]) / 2


def aggregate(prices: Iterable[float]) -> PriceStatistics:
    """Return count, min, max, whole-unit average and median of `prices`.

    An empty population yields all zeros. The input order is irrelevant: a
    sorted copy is taken here. The rounded average is clamped into
    [min, max] so it can never leave the observed range when every price
    sits inside the same rounding interval.
    """
    values = sorted(float(p) for p in prices)
    if not values:
        return PriceStatistics()

    lowest, highest = values[0], values[-1]
    average: float = round_half_up(sum(values) / len(values))
    if average < lowest:
        average = lowest
    elif average > highest:
        average = highest

    return PriceStatistics(
        count=len(values),
        min=lowest,
        max=highest,
        average=average,
        median=median(values),
    )
