"""Tests for the sequential rate-limited scheduler."""

import pytest

from paperscout.errors import ProviderResult, RateLimitError, TransportError
from paperscout.scheduler import RateLimitedScheduler


def _ok(items, calls=None, tag=None):
    def op():
        if calls is not None:
            calls.append(tag)
        return ProviderResult.success(items)

    return op


class TestConstruction:
    def test_rejects_negative_delay(self):
        with pytest.raises(ValueError):
            RateLimitedScheduler(delay=-1)

    def test_rejects_zero_max_sources(self):
        with pytest.raises(ValueError):
            RateLimitedScheduler(max_sources=0)


class TestCap:
    def test_keeps_first_entries_in_order(self, scheduler):
        assert scheduler.cap(["a", "b", "c", "d", "e"]) == ["a", "b", "c"]

    def test_short_input_unchanged(self, scheduler):
        assert scheduler.cap(["a"]) == ["a"]


class TestSchedule:
    def test_runs_in_order_and_concatenates(self, scheduler):
        calls = []
        outcome = scheduler.schedule(
            [_ok([1, 2], calls, "first"), _ok([3], calls, "second"), _ok([], calls, "third")]
        )

        assert calls == ["first", "second", "third"]
        assert outcome.items == [1, 2, 3]
        assert outcome.attempted == 3
        assert outcome.failures == {}

    def test_sleeps_between_operations_only(self, scheduler, sleeps):
        scheduler.schedule([_ok([1]), _ok([2])])
        assert sleeps == [1.0]

    def test_single_operation_does_not_sleep(self, scheduler, sleeps):
        scheduler.schedule([_ok([1])])
        assert sleeps == []

    def test_zero_delay_never_sleeps(self, sleeps):
        scheduler = RateLimitedScheduler(delay=0, sleep=sleeps.append)
        scheduler.schedule([_ok([1]), _ok([2]), _ok([3])])
        assert sleeps == []

    def test_exception_is_isolated(self, scheduler, sleeps):
        def boom():
            raise RuntimeError("network down")

        outcome = scheduler.schedule([boom, _ok(["x", "y", "z", "w"])])

        assert outcome.items == ["x", "y", "z", "w"]
        assert list(outcome.failures) == [0]
        assert isinstance(outcome.failures[0], RuntimeError)
        assert outcome.succeeded == 1
        assert not outcome.all_failed
        assert sleeps == [1.0]

    def test_failed_result_is_recorded(self, scheduler):
        error = RateLimitError("429", provider="semantic_scholar", status_code=429)
        outcome = scheduler.schedule([_ok(["a"]), lambda: ProviderResult.failure(error)])

        assert outcome.items == ["a"]
        assert outcome.failures == {1: error}

    def test_all_failed(self, scheduler):
        error = RateLimitError("429", provider="semantic_scholar")
        outcome = scheduler.schedule([lambda: ProviderResult.failure(error)] * 2)
        assert outcome.all_failed
        assert outcome.items == []

    def test_empty_schedule(self, scheduler, sleeps):
        outcome = scheduler.schedule([])
        assert outcome.items == []
        assert not outcome.all_failed
        assert sleeps == []


class TestDeadline:
    def test_rejects_non_positive_deadline(self):
        with pytest.raises(ValueError):
            RateLimitedScheduler(deadline=0)

    def test_operations_after_deadline_are_skipped(self, sleeps):
        ticks = iter([0.0, 0.0, 5.0, 200.0])
        scheduler = RateLimitedScheduler(
            delay=1.0, sleep=sleeps.append, deadline=120.0, clock=lambda: next(ticks)
        )
        calls = []

        outcome = scheduler.schedule(
            [_ok(["a"], calls, 0), _ok(["b"], calls, 1), _ok(["c"], calls, 2)]
        )

        assert calls == [0, 1]
        assert outcome.items == ["a", "b"]
        assert list(outcome.failures) == [2]
        assert isinstance(outcome.failures[2], TransportError)
        assert outcome.attempted == 3
        assert sleeps == [1.0]

    def test_no_deadline(self, sleeps):
        scheduler = RateLimitedScheduler(delay=0, deadline=None, clock=lambda: 1e9)
        assert scheduler.schedule([_ok([1]), _ok([2])]).items == [1, 2]
