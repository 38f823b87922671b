"""Cancellable scheduled callbacks used by quiz sessions for ticks and feedback dwell."""

from __future__ import annotations

from threading import Event, Thread, Timer
from typing import Callable, Protocol


class ScheduledTask(Protocol):
    """Handle for a scheduled callback."""

    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


class SessionScheduler(Protocol):
    """Schedules repeating and one-shot callbacks on behalf of a session."""

    def call_every(self, interval: float, callback: Callable[[], None]) -> ScheduledTask: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask: ...


class _TimerTask:
    """One-shot task backed by ``threading.Timer``."""

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self._cancelled = Event()
        self._timer = Timer(delay, self._run, args=(callback,))
        self._timer.daemon = True

    def start(self) -> None:
        self._timer.start()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()
        self._timer.cancel()

    def _run(self, callback: Callable[[], None]) -> None:
        if not self._cancelled.is_set():
            callback()


class _RepeatingTask:
    """Repeating task on a daemon thread; stops as soon as it is cancelled."""

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self._interval = interval
        self._callback = callback
        self._cancelled = Event()
        self._thread = Thread(target=self._run, name="QuestSessionTicker", daemon=True)

    def start(self) -> None:
        self._thread.start()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def _run(self) -> None:
        # Event.wait returns True once cancelled, ending the loop.
        while not self._cancelled.wait(self._interval):
            self._callback()


class ThreadingScheduler:
    """Default scheduler running callbacks on background daemon threads."""

    def call_every(self, interval: float, callback: Callable[[], None]) -> ScheduledTask:
        task = _RepeatingTask(interval, callback)
        task.start()
        return task

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledTask:
        task = _TimerTask(delay, callback)
        task.start()
        return task
