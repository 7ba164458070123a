"""Sequential, rate-limited execution of provider calls.

Semantic Scholar's recommendation endpoint answers HTTP 429 to bursts, so
per-source-paper requests are run one at a time with a fixed pause between
them, and only a capped number of source papers is consulted.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence, TypeVar

from paperscout.errors import ProviderResult, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DELAY = 1.0  # seconds between consecutive operations
DEFAULT_MAX_SOURCES = 3
DEFAULT_DEADLINE = 120.0  # seconds for one whole schedule

Operation = Callable[[], ProviderResult]


@dataclass
class ScheduleOutcome:
    """Concatenated items from all operations, plus per-operation failures.

    ``failures`` maps the index of each failed operation to its error.
    """

    items: list = field(default_factory=list)
    failures: dict[int, Exception] = field(default_factory=dict)
    attempted: int = 0

    @property
    def succeeded(self) -> int:
        return self.attempted - len(self.failures)

    @property
    def all_failed(self) -> bool:
        return self.attempted > 0 and len(self.failures) == self.attempted


class RateLimitedScheduler:
    """Run operations strictly in sequence with a fixed inter-request delay."""

    def __init__(
        self,
        delay: float = DEFAULT_DELAY,
        max_sources: int = DEFAULT_MAX_SOURCES,
        sleep: Callable[[float], None] = time.sleep,
        deadline: Optional[float] = DEFAULT_DEADLINE,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize scheduler.

        Args:
            delay: Seconds to wait before every operation after the first
            max_sources: Hard cap applied by :meth:`cap`
            sleep: Sleep function (injectable for tests)
            deadline: Seconds after which remaining operations are skipped
                and reported as failed; None for no limit
            clock: Monotonic clock (injectable for tests)
        """
        if delay < 0:
            raise ValueError("delay must be non-negative")
        if max_sources < 1:
            raise ValueError("max_sources must be at least 1")
        if deadline is not None and deadline <= 0:
            raise ValueError("deadline must be positive")
        self.delay = delay
        self.max_sources = max_sources
        self._sleep = sleep
        self.deadline = deadline
        self._clock = clock

    def cap(self, ids: Sequence[T]) -> list[T]:
        """First ``max_sources`` entries of ``ids``, in order."""
        return list(ids[: self.max_sources])

    def schedule(self, operations: Sequence[Operation]) -> ScheduleOutcome:
        """Execute ``operations`` one after another.

        Each operation returns a ProviderResult wrapping a list. A failed
        result, or an exception escaping the operation, contributes no items
        and does not stop the remaining operations. Operations not started
        before the deadline are recorded as failed without being called.
        """
        outcome = ScheduleOutcome()
        started = self._clock()

        for i, operation in enumerate(operations):
            outcome.attempted += 1
            if self.deadline is not None and self._clock() - started >= self.deadline:
                logger.warning("Deadline of %.0fs reached; skipping operation %d", self.deadline, i)
                outcome.failures[i] = TransportError("Request deadline exceeded")
                continue

            if i > 0 and self.delay > 0:
                self._sleep(self.delay)

            try:
                result = operation()
            except Exception as e:  # noqa: BLE001
                logger.warning("Scheduled operation %d raised: %s", i, e, exc_info=True)
                outcome.failures[i] = e
                continue

            if not result.ok:
                outcome.failures[i] = result.error
                continue
            outcome.items.extend(result.value or [])

        if outcome.failures:
            logger.info(
                "Scheduler finished: %d/%d operations failed",
                len(outcome.failures),
                outcome.attempted,
            )
        return outcome
