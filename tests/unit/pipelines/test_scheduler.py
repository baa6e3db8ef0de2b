from __future__ import annotations

import pytest

from shipment_dashboard.pipelines.scheduler import RefreshScheduler


class FakeClock:
    def __init__(self, t: float = 0.0):
        self.t = t

    def __call__(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


def _scheduler(clock, results=None, errors=None, fetch=None, interval=30.0):
    calls = []

    def default_fetch(key):
        calls.append((key, clock()))
        return f"result:{key}:{len(calls)}"

    s = RefreshScheduler(
        fetch or default_fetch,
        interval=interval,
        clock=clock,
        on_result=(lambda k, r: results.append((k, r))) if results is not None else None,
        on_error=(lambda k, e: errors.append((k, e))) if errors is not None else None,
    )
    return s, calls


def test_start_fetches_immediately_then_on_interval():
    clock = FakeClock()
    s, calls = _scheduler(clock)

    s.start("orders")
    assert len(calls) == 1

    clock.advance(29)
    assert s.tick() is False
    clock.advance(1)
    assert s.tick() is True
    assert [t for _, t in calls] == [0, 30]


def test_start_without_immediate_waits_one_interval():
    clock = FakeClock()
    s, calls = _scheduler(clock)
    s.start("orders", immediate=False)
    assert calls == []
    clock.advance(30)
    s.tick()
    assert len(calls) == 1


def test_manual_trigger_resets_timer():
    clock = FakeClock()
    s, calls = _scheduler(clock)
    s.start("orders")

    clock.advance(20)
    assert s.trigger() is True
    assert s.next_due == 50

    clock.advance(10)       # t=30, would have fired without the manual refresh
    assert s.tick() is False
    clock.advance(20)       # t=50
    assert s.tick() is True
    assert len(calls) == 3


def test_refresh_suppressed_while_in_flight():
    clock = FakeClock()
    nested = []

    def fetch(key):
        # a re-entrant trigger while this key is still loading is a no-op
        nested.append(s.trigger())
        return "ok"

    s, _ = _scheduler(clock, fetch=fetch)
    s.start("orders")

    assert nested == [False]
    assert s.last_result == "ok"
    assert not s.in_flight("orders")


def test_begin_returns_none_for_key_in_flight():
    clock = FakeClock()
    s, _ = _scheduler(clock)
    s.start("orders", immediate=False)

    ticket = s.begin("orders")
    assert ticket is not None
    assert s.begin("orders") is None
    assert s.finish(ticket, "done") is True
    assert s.begin("orders") is not None


def test_last_request_wins_on_key_change():
    clock = FakeClock()
    results = []
    s, _ = _scheduler(clock, results=results)
    s.start("page-1", immediate=False)

    slow = s.begin("page-1")
    s.change_key("page-2")                  # fetches page-2 right away

    assert s.finish(slow, "stale page-1") is False
    assert s.last_result.startswith("result:page-2")
    assert [k for k, _ in results] == ["page-2"]


def test_stop_discards_late_results_and_stops_timer():
    clock = FakeClock()
    results = []
    s, calls = _scheduler(clock, results=results)
    s.start("orders", immediate=False)
    ticket = s.begin("orders")

    s.stop()

    assert s.finish(ticket, "late") is False
    assert results == []
    clock.advance(300)
    assert s.tick() is False
    assert s.trigger() is False
    assert s.next_due is None
    assert calls == []


def test_auto_refresh_toggle():
    clock = FakeClock()
    s, calls = _scheduler(clock)
    s.start("orders")

    s.set_auto_refresh(False)
    clock.advance(120)
    assert s.tick() is False
    assert s.trigger() is True          # manual refresh still allowed
    assert len(calls) == 2

    s.set_auto_refresh(True)
    clock.advance(30)
    assert s.tick() is True


def test_failure_keeps_previous_result():
    clock = FakeClock()
    errors = []
    outcomes = iter(["first", RuntimeError("api down")])

    def fetch(key):
        value = next(outcomes)
        if isinstance(value, Exception):
            raise value
        return value

    s, _ = _scheduler(clock, errors=errors, fetch=fetch)
    s.start("orders")
    clock.advance(30)
    s.tick()

    assert s.last_result == "first"
    assert isinstance(s.last_error, RuntimeError)
    assert [k for k, _ in errors] == ["orders"]


def test_run_forever_with_fake_sleep():
    clock = FakeClock()
    s, calls = _scheduler(clock, interval=5)
    s.start("orders")

    s.run_forever(sleep=clock.advance, until=lambda: len(calls) >= 3, poll=1.0)

    assert [t for _, t in calls] == [0, 5, 10]


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        RefreshScheduler(lambda k: None, interval=0)
