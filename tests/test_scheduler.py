"""Tests for the retry-aware scheduler."""

from __future__ import annotations

import asyncio
import logging

import pytest

from curriculum_export.core.errors import RateLimitedError
from curriculum_export.core.scheduler import RetryScheduler, parse_retry_after


def _scheduler(sleep, **kwargs) -> RetryScheduler:
    return RetryScheduler(logger=logging.getLogger("test_scheduler"), sleep=sleep, **kwargs)


def test_parse_retry_after_seconds_and_defaults():
    assert parse_retry_after("2") == 2000
    assert parse_retry_after("1.5") == 1500
    assert parse_retry_after(None) == 60000
    assert parse_retry_after("soon") == 60000
    assert parse_retry_after("-3") == 60000
    assert parse_retry_after("garbage", default_ms=500) == 500


def test_concurrency_bound_is_never_exceeded(sleep_recorder):
    in_flight = 0
    peak = 0
    seen: list[int] = []

    async def worker(item, index, total):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.001 * (item % 3))
        in_flight -= 1
        seen.append(item)

    scheduler = _scheduler(sleep_recorder, max_concurrency=3)
    result = asyncio.run(scheduler.run(list(range(10)), worker))

    assert peak == 3
    assert sorted(seen) == list(range(10))
    assert result.completed == 10
    assert result.rounds == 1
    assert sleep_recorder.calls == []


def test_rate_limited_item_is_requeued_after_hinted_cooldown(sleep_recorder):
    attempts: dict[str, int] = {}
    calls: list[tuple[str, int, int]] = []

    async def worker(item, index, total):
        attempts[item] = attempts.get(item, 0) + 1
        calls.append((item, index, total))
        if item == "c" and attempts[item] == 1:
            raise RateLimitedError(retry_after="2")

    scheduler = _scheduler(sleep_recorder, max_concurrency=2)
    result = asyncio.run(scheduler.run(["a", "b", "c", "d"], worker))

    assert attempts == {"a": 1, "b": 1, "c": 2, "d": 1}
    assert sleep_recorder.calls == [2.0]
    assert result.cooldowns == [2.0]
    assert result.rounds == 2
    assert result.completed == 4
    assert result.permanently_failed == []
    # Retries keep the item's original index and the overall total.
    assert calls[-1] == ("c", 2, 4)


def test_missing_hint_uses_default_cooldown(sleep_recorder):
    failed_once: set[int] = set()

    async def worker(item, index, total):
        if item not in failed_once:
            failed_once.add(item)
            raise RateLimitedError(retry_after=None)

    scheduler = _scheduler(sleep_recorder, default_retry_after_ms=60000)
    asyncio.run(scheduler.run([1], worker))

    assert sleep_recorder.calls == [60.0]


def test_largest_hint_in_round_wins(sleep_recorder):
    hints = {"a": "1", "b": "5", "c": "bogus-but-short"}
    failed_once: set[str] = set()

    async def worker(item, index, total):
        if item not in failed_once:
            failed_once.add(item)
            raise RateLimitedError(retry_after=hints[item])

    scheduler = _scheduler(sleep_recorder, default_retry_after_ms=3000)
    asyncio.run(scheduler.run(["a", "b", "c"], worker))

    assert sleep_recorder.calls == [5.0]


def test_hard_failures_are_dropped_not_retried(sleep_recorder):
    attempts: dict[str, int] = {}

    async def worker(item, index, total):
        attempts[item] = attempts.get(item, 0) + 1
        if item == "bad":
            raise ValueError("broken item")

    scheduler = _scheduler(sleep_recorder)
    result = asyncio.run(scheduler.run(["ok", "bad", "fine"], worker))

    assert attempts["bad"] == 1
    assert result.failed == ["bad"]
    assert result.completed == 2
    assert result.rounds == 1
    assert sleep_recorder.calls == []


def test_round_cap_reports_permanent_failures_without_raising(sleep_recorder):
    attempts = 0

    async def worker(item, index, total):
        nonlocal attempts
        if item == "stuck":
            attempts += 1
            raise RateLimitedError(retry_after="1")

    scheduler = _scheduler(sleep_recorder, max_rounds=3)
    result = asyncio.run(scheduler.run(["stuck", "free"], worker))

    assert attempts == 3
    assert result.rounds == 3
    assert result.permanently_failed == ["stuck"]
    assert result.completed == 1
    # No cooldown after the final round.
    assert sleep_recorder.calls == [1.0, 1.0]


def test_empty_input_runs_no_rounds(sleep_recorder):
    async def worker(item, index, total):
        raise AssertionError("should not be called")

    result = asyncio.run(_scheduler(sleep_recorder).run([], worker))

    assert result.rounds == 0
    assert result.completed == 0


def test_invalid_bounds_are_rejected():
    with pytest.raises(ValueError):
        RetryScheduler(max_concurrency=0)
    with pytest.raises(ValueError):
        RetryScheduler(max_rounds=0)
