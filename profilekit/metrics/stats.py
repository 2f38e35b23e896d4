"""Statistics helpers for build and startup metrics.

Stateless arithmetic over small in-memory series: percentiles, summaries
and a least-squares trend.
"""

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Sequence


class TrendDirection(str, Enum):
    """Direction of a metric over time."""

    IMPROVING = "improving"
    DEGRADING = "degrading"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient_data"


@dataclass
class MetricSummary:
    """Descriptive statistics of a series."""

    count: int = 0
    minimum: float = 0.0
    maximum: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0
    stdev: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TrendResult:
    """Fitted trend of a series."""

    direction: TrendDirection
    slope: float = 0.0
    change_percent: float = 0.0
    points: int = 0

    def to_dict(self) -> dict:
        return {
            "direction": self.direction.value,
            "slope": self.slope,
            "change_percent": self.change_percent,
            "points": self.points,
        }


def percentile(values: Sequence[float], pct: float) -> float:
    """Percentile with linear interpolation between closest ranks.

    Args:
        values: Non-empty series, any order
        pct: Percentile between 0 and 100

    Raises:
        ValueError: Empty series or pct out of range.
    """
    if not values:
        raise ValueError("percentile of an empty series")
    if not 0 <= pct <= 100:
        raise ValueError(f"percentile must be between 0 and 100, got {pct}")

    ordered = sorted(values)
    if len(ordered) == 1:
        return float(ordered[0])

    rank = (len(ordered) - 1) * pct / 100.0
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return float(ordered[lower])
    fraction = rank - lower
    return ordered[lower] + (ordered[upper] - ordered[lower]) * fraction


def summarize(values: Sequence[float]) -> MetricSummary:
    """Summary statistics; an empty series yields an all-zero summary."""
    if not values:
        return MetricSummary()

    count = len(values)
    mean = sum(values) / count
    variance = sum((v - mean) ** 2 for v in values) / count

    return MetricSummary(
        count=count,
        minimum=float(min(values)),
        maximum=float(max(values)),
        mean=mean,
        median=percentile(values, 50),
        p90=percentile(values, 90),
        p95=percentile(values, 95),
        p99=percentile(values, 99),
        stdev=math.sqrt(variance),
    )


def linear_slope(values: Sequence[float]) -> float:
    """Least-squares slope of values against their index."""
    n = len(values)
    if n < 2:
        return 0.0
    mean_x = (n - 1) / 2.0
    mean_y = sum(values) / n
    numerator = sum((i - mean_x) * (y - mean_y) for i, y in enumerate(values))
    denominator = sum((i - mean_x) ** 2 for i in range(n))
    return numerator / denominator


def detect_trend(
    values: Sequence[float],
    threshold: float = 5.0,
    lower_is_better: bool = True,
    min_points: int = 3,
) -> TrendResult:
    """Classify a series as improving, degrading or stable.

    The fitted change over the whole series is expressed as a percentage of
    the series mean; changes within ``threshold`` percent count as stable.

    Args:
        values: Oldest first
        threshold: Percent change treated as noise
        lower_is_better: True for timings, False for coverage
        min_points: Fewer points give INSUFFICIENT_DATA
    """
    n = len(values)
    if n < min_points:
        return TrendResult(TrendDirection.INSUFFICIENT_DATA, points=n)

    slope = linear_slope(values)
    mean = sum(values) / n
    if mean == 0:
        change = 0.0 if slope == 0 else math.copysign(100.0, slope)
    else:
        change = slope * (n - 1) / abs(mean) * 100.0

    if abs(change) < threshold:
        direction = TrendDirection.STABLE
    elif (change < 0) == lower_is_better:
        direction = TrendDirection.IMPROVING
    else:
        direction = TrendDirection.DEGRADING

    return TrendResult(direction, slope=slope, change_percent=change, points=n)
