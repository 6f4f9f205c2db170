"""
Concurrency-bounded, rate-limit aware scheduler.

Items are processed in rounds. Within a round at most ``max_concurrency``
workers are in flight. Workers that fail with RateLimitedError are collected
and re-driven in the next round after a cooldown taken from the server's
Retry-After hint. Any other failure is logged and the item is dropped.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
import math
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from ..utils.logging import log_event
from .errors import RateLimitedError

T = TypeVar("T")

Worker = Callable[[T, int, int], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[Any]]

DEFAULT_RETRY_AFTER_MS = 60000
DEFAULT_MAX_ROUNDS = 10


def parse_retry_after(value: str | None, default_ms: int = DEFAULT_RETRY_AFTER_MS) -> int:
    """Convert a Retry-After header (seconds) into milliseconds.

    Absent, negative or unparseable values fall back to ``default_ms``.
    """
    if value is None:
        return default_ms
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return default_ms
    if math.isnan(seconds) or math.isinf(seconds) or seconds < 0:
        return default_ms
    return int(seconds * 1000)


@dataclass
class SchedulerResult(Generic[T]):
    """Outcome of a scheduler run.

    Attributes:
        completed: Number of worker calls that returned normally
        failed: Items dropped after a non-rate-limit error
        permanently_failed: Items still rate-limited when the round cap was hit
        rounds: Number of rounds started
        cooldowns: Seconds slept between rounds
    """

    completed: int = 0
    failed: list[T] = field(default_factory=list)
    permanently_failed: list[T] = field(default_factory=list)
    rounds: int = 0
    cooldowns: list[float] = field(default_factory=list)


class RetryScheduler:
    """Drives a worker over items with bounded concurrency and batch retries."""

    def __init__(
        self,
        max_concurrency: int = 5,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        default_retry_after_ms: int = DEFAULT_RETRY_AFTER_MS,
        logger: logging.Logger | None = None,
        sleep: Sleep = asyncio.sleep,
        describe: Callable[[Any], str] = str,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        self.max_concurrency = max_concurrency
        self.max_rounds = max_rounds
        self.default_retry_after_ms = default_retry_after_ms
        self._logger = logger or logging.getLogger("curriculum_export")
        self._sleep = sleep
        self._describe = describe

    async def run(self, items: Sequence[T], worker: Worker) -> SchedulerResult[T]:
        result: SchedulerResult[T] = SchedulerResult()
        total = len(items)
        remaining = list(enumerate(items))

        while remaining and result.rounds < self.max_rounds:
            result.rounds += 1
            rate_limited, hints = await self._run_round(remaining, total, worker, result)
            if not rate_limited:
                remaining = []
                break

            remaining = rate_limited
            if result.rounds >= self.max_rounds:
                break

            cooldown_ms = max(parse_retry_after(h, self.default_retry_after_ms) for h in hints)
            cooldown = cooldown_ms / 1000
            log_event(
                self._logger,
                f"Rate limited. Waiting {math.ceil(cooldown)} seconds before retrying "
                f"{len(remaining)} items...",
                level=logging.WARNING,
                event="rate_limit_cooldown",
                cooldown_seconds=cooldown,
                items=len(remaining),
                round=result.rounds,
            )
            await self._sleep(cooldown)
            result.cooldowns.append(cooldown)
            log_event(
                self._logger,
                f"Retrying {len(remaining)} items (attempt {result.rounds + 1})...",
                event="rate_limit_retry",
                items=len(remaining),
                round=result.rounds + 1,
            )

        if remaining:
            result.permanently_failed = [item for _, item in remaining]
            log_event(
                self._logger,
                f"Some items failed after {self.max_rounds} retry attempts.",
                level=logging.WARNING,
                event="rate_limit_exhausted",
                items=[self._describe(item) for item in result.permanently_failed],
            )
        return result

    async def _run_round(
        self,
        batch: list[tuple[int, T]],
        total: int,
        worker: Worker,
        result: SchedulerResult[T],
    ) -> tuple[list[tuple[int, T]], list[str | None]]:
        rate_limited: list[tuple[int, T]] = []
        hints: list[str | None] = []
        in_flight: dict[asyncio.Task, tuple[int, T]] = {}

        def _collect(done: set[asyncio.Task]) -> None:
            for task in done:
                index, item = in_flight.pop(task)
                exc = task.exception()
                if exc is None:
                    result.completed += 1
                elif isinstance(exc, RateLimitedError):
                    rate_limited.append((index, item))
                    hints.append(exc.retry_after)
                    log_event(
                        self._logger,
                        f"Rate limited for item {index + 1} - {self._describe(item)}",
                        level=logging.WARNING,
                        event="item_rate_limited",
                        index=index,
                        retry_after=exc.retry_after,
                    )
                else:
                    result.failed.append(item)
                    log_event(
                        self._logger,
                        f"Error processing item {index + 1} - {self._describe(item)}: {exc}",
                        level=logging.ERROR,
                        event="item_failed",
                        index=index,
                        error=f"{type(exc).__name__}: {exc}",
                    )

        for index, item in batch:
            task = asyncio.create_task(worker(item, index, total))
            in_flight[task] = (index, item)
            if len(in_flight) >= self.max_concurrency:
                done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                _collect(done)

        if in_flight:
            done, _ = await asyncio.wait(in_flight)
            _collect(done)

        # Next round keeps the original item order.
        rate_limited.sort(key=lambda pair: pair[0])
        return rate_limited, hints
