"""
Per-region statistics and gradient coloring for fetched expression values.

The ordering rules here reproduce the eFP browser's output exactly: raw values
are sorted on their textual form before numeric filtering, and the region
minimum fed into the global extrema is the second numeric entry of that
sorted sequence.
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

from tissue_efp.expression.gradient import clamp_percentage, percentage_to_colour
from tissue_efp.models import AggregationSummary, FetchResult, RegionStatistics


def _float_text(value: float) -> str:
    """Format a float the way the browser stringifies numbers (1e-7, 1e+21, 100)."""

    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    if value < 0:
        return "-" + _float_text(-value)

    # Shortest round-tripping digits, trailing zeros removed.
    _sign, digit_tuple, exponent = Decimal(repr(value)).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    k = len(digits)
    n = exponent + k

    if k <= n <= 21:
        return digits + "0" * (n - k)
    if 0 < n <= 21:
        return digits[:n] + "." + digits[n:]
    if -6 < n <= 0:
        return "0." + "0" * -n + digits
    mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
    return f"{mantissa}e{'+' if n > 0 else '-'}{abs(n - 1)}"


def _text_form(value: Any) -> str:
    if isinstance(value, float):
        return _float_text(value)
    return str(value)


def _sort_key(value: Any) -> Tuple[int, str]:
    # Missing values sort after everything else.
    if value is None:
        return (1, "")
    return (0, _text_form(value))


def _as_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def collect_raw_values(fetch_result: FetchResult, region: str, locus: str) -> List[Any]:
    """Raw values of every sample attributed to `region`, in insertion order."""

    table = fetch_result.region_values.get(region, {})
    return [loci.get(locus) for loci in table.values()]


def sorted_numeric(raw_values: Iterable[Any]) -> Tuple[List[Any], List[float]]:
    ordered = sorted(raw_values, key=_sort_key)
    numbers = [n for n in (_as_number(v) for v in ordered) if n is not None]
    return ordered, numbers


def _replace_if(running: Optional[float], candidate: Optional[float], greater: bool) -> Optional[float]:
    if running is None:
        return candidate
    if candidate is None:
        return running
    if greater:
        return candidate if candidate > running else running
    return candidate if candidate < running else running


def normalize(average: float, summary: AggregationSummary) -> Tuple[float, float]:
    """
    Return `(numerator, percentage)` for a region average.

    The numerator is the distance above the minimum average, floored at zero.
    A zero-width range maps every region to 0%.
    """

    min_average = summary.global_min_average
    max_average = summary.global_max_average
    if min_average is None or max_average is None:
        return float("nan"), 0.0

    numerator = average - min_average
    if numerator < 0:
        numerator = 0.0

    denominator = max_average - min_average
    if denominator == 0 or not math.isfinite(denominator):
        return numerator, 0.0
    return numerator, clamp_percentage(numerator / denominator * 100)


def aggregate(
    fetch_result: FetchResult,
    region_names: Iterable[str],
    locus: str,
) -> Tuple[Dict[str, RegionStatistics], AggregationSummary]:
    summary = AggregationSummary()
    regions: Dict[str, RegionStatistics] = {}

    for region in region_names:
        ordered, numbers = sorted_numeric(collect_raw_values(fetch_result, region, locus))
        average = sum(numbers) / len(numbers) if numbers else float("nan")

        region_max = numbers[-1] if numbers else None
        region_min = numbers[1] if len(numbers) > 1 else None
        summary.global_max = _replace_if(summary.global_max, region_max, greater=True)
        summary.global_min = _replace_if(summary.global_min, region_min, greater=False)

        if summary.global_max_average is None or average > summary.global_max_average:
            summary.global_max_average = average
            summary.global_max_average_region = region
        if summary.global_min_average is None or average < summary.global_min_average:
            summary.global_min_average = average
            summary.global_min_average_region = region

        regions[region] = RegionStatistics(
            region=region,
            raw_values=ordered,
            average=average,
            sample_size=len(ordered),
        )

    for stats in regions.values():
        numerator, percentage = normalize(stats.average, summary)
        stats.percentage = percentage
        stats.expression_level = f"{numerator + summary.global_min_average:.3f}"
        stats.color_hex = percentage_to_colour(percentage)

    return regions, summary


__all__ = [
    "aggregate",
    "collect_raw_values",
    "normalize",
    "sorted_numeric",
]
