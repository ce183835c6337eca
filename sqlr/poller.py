"""Re-armed timer used to poll sockets without blocking the host loop."""

from __future__ import annotations

from typing import Any, Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Host event loop hook; ``asyncio.AbstractEventLoop`` satisfies it."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class Poller:
    """Invoke ``tick`` on a fixed interval until stopped.

    ``tick`` returns ``True`` when it made progress; the poller then runs again
    immediately instead of waiting a full interval. Each run performs a single
    ``tick``.
    """

    def __init__(self, scheduler: Scheduler, interval: float, tick: Callable[[], bool]) -> None:
        self._scheduler = scheduler
        self._interval = interval
        self._tick = tick
        self._handle: TimerHandle | None = None
        self._stopped = True

    @property
    def running(self) -> bool:
        return not self._stopped

    def start(self) -> None:
        if not self._stopped:
            return
        self._stopped = False
        self._arm(0)

    def stop(self) -> None:
        self._stopped = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _arm(self, delay: float) -> None:
        self._handle = self._scheduler.call_later(delay, self._run)

    def _run(self) -> None:
        self._handle = None
        if self._stopped:
            return
        progressed = self._tick()
        if not self._stopped:
            self._arm(0 if progressed else self._interval)


__all__ = ["Poller", "Scheduler", "TimerHandle"]
