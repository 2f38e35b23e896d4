"""Build and startup metrics: statistics, collection and benchmarking."""

from .stats import (
    MetricSummary,
    TrendDirection,
    TrendResult,
    detect_trend,
    percentile,
    summarize,
)
from .collector import (
    BenchmarkResult,
    benchmark_startup,
    collect_code_metrics,
    compare_to_baseline,
    load_baseline,
    save_baseline,
)
from .export import EXPORT_FORMATS, export_snapshots

__all__ = [
    # Stats
    "MetricSummary",
    "TrendDirection",
    "TrendResult",
    "detect_trend",
    "percentile",
    "summarize",
    # Collection
    "BenchmarkResult",
    "benchmark_startup",
    "collect_code_metrics",
    "compare_to_baseline",
    "load_baseline",
    "save_baseline",
    # Export
    "EXPORT_FORMATS",
    "export_snapshots",
]
