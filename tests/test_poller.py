"""Tests for the re-armed poll timer."""

from __future__ import annotations

from sqlr.poller import Poller


def test_poller_ticks_on_interval_until_stopped(scheduler) -> None:
    ticks: list[float] = []

    def _tick() -> bool:
        ticks.append(scheduler.now)
        return False

    poller = Poller(scheduler, 0.2, _tick)
    poller.start()
    scheduler.advance(0.0)
    scheduler.advance(0.2)
    scheduler.advance(0.2)

    assert len(ticks) == 3
    assert poller.running is True

    poller.stop()
    scheduler.advance(1.0)

    assert len(ticks) == 3
    assert poller.running is False
    assert scheduler.pending == 0


def test_poller_rearms_immediately_after_progress(scheduler) -> None:
    remaining = [True, True, False]
    ticks: list[float] = []

    def _tick() -> bool:
        ticks.append(scheduler.now)
        return remaining.pop(0) if remaining else False

    poller = Poller(scheduler, 0.2, _tick)
    poller.start()
    scheduler.advance(0.0)

    assert ticks == [0.0, 0.0, 0.0]
    poller.stop()


def test_tick_can_stop_its_own_poller(scheduler) -> None:
    calls: list[int] = []
    poller: Poller

    def _tick() -> bool:
        calls.append(1)
        poller.stop()
        return True

    poller = Poller(scheduler, 0.2, _tick)
    poller.start()
    scheduler.advance(1.0)

    assert calls == [1]
    assert scheduler.pending == 0


def test_start_is_idempotent(scheduler) -> None:
    calls: list[int] = []

    def _tick() -> bool:
        calls.append(1)
        return False

    poller = Poller(scheduler, 0.2, _tick)
    poller.start()
    poller.start()
    scheduler.advance(0.0)

    assert calls == [1]
    poller.stop()
