"""Shared fakes for driving time and speech capture by hand."""

from __future__ import annotations

import pytest


class _Timer:
    def __init__(self, when: float, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualClock:
    """Clock and scheduler in one; time only moves on advance()."""

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[_Timer] = []

    def __call__(self) -> float:
        return self.now

    def call_later(self, delay: float, callback) -> _Timer:
        timer = _Timer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._timers.remove(timer)
            self.now = max(self.now, timer.when)
            timer.callback()
        self.now = target

    def pending(self) -> int:
        return len([t for t in self._timers if not t.cancelled])


class FakeBackend:
    """Transcription host stub; stop() ends the session right away."""

    def __init__(self, available: bool = True, permission: bool = True) -> None:
        self.available = available
        self.permission = permission
        self.starts = 0
        self.stops = 0
        self.listener = None
        self.config = None

    def is_available(self) -> bool:
        return self.available

    async def request_permission(self) -> bool:
        return self.permission

    def start(self, config, listener) -> None:
        self.starts += 1
        self.config = config
        self.listener = listener

    def stop(self) -> None:
        self.stops += 1
        self.listener.on_end()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def backend():
    return FakeBackend()
