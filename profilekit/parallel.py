"""Generic parallel task runner.

Starts up to ``throttle_limit`` tasks on a thread pool and polls for their
completion, optionally giving up after an overall timeout.
"""

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional


logger = logging.getLogger(__name__)


@dataclass
class ParallelResult:
    """Outcome of one item."""

    index: int
    item: Any
    value: Any = None
    error: Optional[BaseException] = None
    duration: float = 0.0
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.error is None and not self.timed_out

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "index": self.index,
            "item": repr(self.item),
            "value": repr(self.value),
            "error": str(self.error) if self.error else None,
            "duration": self.duration,
            "timed_out": self.timed_out,
            "success": self.success,
        }


def invoke_parallel(
    func: Callable[[Any], Any],
    items: Iterable[Any],
    throttle_limit: int = 5,
    timeout: Optional[float] = None,
    poll_interval: float = 0.05,
) -> list[ParallelResult]:
    """Run ``func`` over ``items`` concurrently.

    Args:
        func: Called once per item
        items: Inputs
        throttle_limit: Maximum concurrent workers
        timeout: Overall seconds to wait; unfinished items are marked timed out
        poll_interval: Seconds between completion checks

    Returns:
        One ParallelResult per item, in input order

    Raises:
        ValueError: throttle_limit is below 1
    """
    if throttle_limit < 1:
        raise ValueError("throttle_limit must be at least 1")

    items = list(items)
    if not items:
        return []

    results = [ParallelResult(index=i, item=item) for i, item in enumerate(items)]
    started_at: dict[int, float] = {}
    ended_at: dict[int, float] = {}

    def run(index: int, item: Any) -> Any:
        started_at[index] = time.perf_counter()
        try:
            return func(item)
        finally:
            ended_at[index] = time.perf_counter()

    deadline = time.monotonic() + timeout if timeout is not None else None
    pool = ThreadPoolExecutor(
        max_workers=min(throttle_limit, len(items)),
        thread_name_prefix="profilekit-parallel",
    )
    futures: dict[Future, int] = {
        pool.submit(run, index, item): index for index, item in enumerate(items)
    }
    pending = set(futures)

    try:
        while pending:
            wait_for = poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                wait_for = min(poll_interval, remaining)

            done, pending = wait(pending, timeout=wait_for, return_when=FIRST_COMPLETED)
            for future in done:
                result = results[futures[future]]
                try:
                    result.value = future.result()
                except Exception as e:
                    result.error = e
                    logger.debug(f"Item {result.index} failed: {e}")
                result.duration = ended_at[result.index] - started_at[result.index]
    finally:
        for future in pending:
            future.cancel()
            result = results[futures[future]]
            result.timed_out = True
            started = started_at.get(result.index)
            if started is not None:
                result.duration = time.perf_counter() - started
        # Running items cannot be interrupted; do not block on them
        pool.shutdown(wait=not pending, cancel_futures=True)

    if pending:
        logger.warning(f"{len(pending)} of {len(items)} items timed out")
    return results
