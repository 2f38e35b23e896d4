"""Code metrics collection and startup benchmarking."""

import json
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from profilekit.config import ProfileConfig
from profilekit.metrics.stats import MetricSummary, summarize
from profilekit.session import ProfileSession


logger = logging.getLogger(__name__)


def collect_code_metrics(session: ProfileSession) -> dict:
    """Count fragments, commands, aliases and tools of a loaded session.

    Returns:
        Flat dict of metric name to count, ready for a snapshot
    """
    fragments = session.load()
    commands = session.commands()
    tools = session.tools_in_use()

    metrics = {
        "fragments": len(fragments),
        "commands": len(commands),
        "aliases": len(session.aliases()),
        "tools": len(tools),
        "undocumented_commands": sum(1 for c in commands if not c.description),
    }

    for tier, count in Counter(f.tier.value for f in fragments).items():
        metrics[f"tier.{tier}"] = count
    for category, count in Counter(t.category.value for t in tools).items():
        metrics[f"category.{category}"] = count

    return metrics


@dataclass
class BenchmarkResult:
    """Timings of repeated session loads, in milliseconds."""

    samples: list[float] = field(default_factory=list)
    fragment_times: dict[str, float] = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def summary(self) -> MetricSummary:
        return summarize(self.samples)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "samples": list(self.samples),
            "fragment_times": dict(self.fragment_times),
            "summary": self.summary.to_dict(),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BenchmarkResult":
        """Create from dictionary."""
        return cls(
            samples=[float(s) for s in data.get("samples", [])],
            fragment_times={k: float(v) for k, v in data.get("fragment_times", {}).items()},
            created_at=data.get("created_at", datetime.now().isoformat()),
        )


def benchmark_startup(
    config: Optional[ProfileConfig] = None,
    iterations: int = 5,
    session_factory: Optional[Callable[[], ProfileSession]] = None,
) -> BenchmarkResult:
    """Time fresh session loads.

    Args:
        config: Configuration for the sessions
        iterations: Number of loads
        session_factory: Builds a fresh session per iteration

    Returns:
        BenchmarkResult with per-iteration totals and mean per-fragment times
    """
    if iterations < 1:
        raise ValueError("iterations must be at least 1")

    config = config or ProfileConfig()
    if session_factory is None:
        def session_factory() -> ProfileSession:
            return ProfileSession(config)

    result = BenchmarkResult()
    fragment_totals: Counter = Counter()

    for i in range(iterations):
        session = session_factory()
        started = time.perf_counter()
        session.load()
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        result.samples.append(elapsed_ms)
        for name, seconds in session.load_times.items():
            fragment_totals[name] += seconds * 1000.0
        logger.debug(f"Benchmark iteration {i + 1}: {elapsed_ms:.2f}ms")

    result.fragment_times = {
        name: total / iterations for name, total in fragment_totals.items()
    }
    return result


def load_baseline(path: Path) -> Optional[BenchmarkResult]:
    """Read a saved baseline, None when there is none."""
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return BenchmarkResult.from_dict(json.load(f))


def save_baseline(result: BenchmarkResult, path: Path) -> Path:
    """Write a benchmark result as the new baseline."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2)
    logger.info(f"Saved benchmark baseline to {path}")
    return path


def compare_to_baseline(
    result: BenchmarkResult,
    baseline: BenchmarkResult,
    threshold: float = 0.2,
) -> tuple[bool, float]:
    """Compare mean load times.

    Returns:
        (regressed, ratio) where ratio is current mean over baseline mean
    """
    baseline_mean = baseline.summary.mean
    if baseline_mean <= 0:
        return False, 1.0
    ratio = result.summary.mean / baseline_mean
    return ratio > 1.0 + threshold, ratio
