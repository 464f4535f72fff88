"""
Bounded fan-out and rate-limit backoff for batch operations.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from docstore.config import Settings
from docstore.errors import BackendError, DocStoreError, RateLimitError

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 4
    min_wait: float = 1.0
    max_wait: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            attempts=settings.retry_attempts,
            min_wait=settings.retry_min_wait,
            max_wait=settings.retry_max_wait,
        )

    def _wait(self) -> Callable[[RetryCallState], float]:
        exponential = wait_exponential(multiplier=self.min_wait, min=self.min_wait, max=self.max_wait)

        def wait(retry_state: RetryCallState) -> float:
            delay = exponential(retry_state)
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            retry_after = getattr(exc, "retry_after", None)
            if retry_after:
                delay = max(delay, min(retry_after, self.max_wait))
            return delay

        return wait

    def call(self, fn: Callable[[], R]) -> R:
        """Run ``fn``, retrying only on rate-limit signals."""
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=self._wait(),
            retry=retry_if_exception_type(RateLimitError),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                f"Rate limited, retrying in {retry_state.next_action.sleep:.1f}s "
                f"(attempt {retry_state.attempt_number}/{self.attempts})"
            ),
        )
        return retrying(fn)


@dataclass
class ItemOutcome(Generic[R]):
    index: int
    value: Optional[R] = None
    error: Optional[DocStoreError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_batch(items: Sequence[T], worker: Callable[[T], R], max_workers: int) -> List[ItemOutcome[R]]:
    """Apply ``worker`` to every item on a bounded pool.

    One item's failure never aborts the others; outcomes come back in input order.
    """
    if not items:
        return []

    outcomes: List[Any] = [None] * len(items)
    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(items)))) as pool:
        futures = {pool.submit(worker, item): idx for idx, item in enumerate(items)}
        for future in as_completed(futures):
            idx = futures[future]
            try:
                outcomes[idx] = ItemOutcome(index=idx, value=future.result())
            except DocStoreError as exc:
                outcomes[idx] = ItemOutcome(index=idx, error=exc)
            except Exception as exc:
                logger.exception("Unexpected error in batch item", extra={"index": idx})
                outcomes[idx] = ItemOutcome(index=idx, error=BackendError(str(exc), retryable=False))
    return outcomes


__all__ = ["RetryPolicy", "ItemOutcome", "run_batch"]
