"""Shared fixtures: a manual scheduler, a fake clock and room factories."""

from __future__ import annotations

from typing import Callable, List, Optional

import pytest

from model.arena_config import ArenaSettings
from socketio_handlers.arena_room import ArenaRoom


class ManualTimer:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Stands in for threading.Timer; tests fire timers explicitly."""

    def __init__(self):
        self.timers: List[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_all(self) -> None:
        for timer in list(self.pending):
            timer.fired = True
            timer.callback()


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


class CollectingSink:
    def __init__(self):
        self.calls = []

    def __call__(self, room, events) -> None:
        self.calls.append((room, list(events)))

    @property
    def events(self):
        return [event for _, batch in self.calls for event in batch]


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return CollectingSink()


@pytest.fixture
def make_settings():
    def _make(**overrides) -> ArenaSettings:
        settings = ArenaSettings(start_delay=0.0)
        for key, value in overrides.items():
            setattr(settings, key, value)
        return settings
    return _make


@pytest.fixture
def make_room(scheduler, clock, sink, make_settings):
    def _make(code: str = 'ABC123', settings: Optional[ArenaSettings] = None, **overrides) -> ArenaRoom:
        return ArenaRoom(
            code,
            settings=settings or make_settings(**overrides),
            scheduler=scheduler,
            clock=clock,
            sink=sink,
        )
    return _make


@pytest.fixture
def active_room(make_room, clock):
    """Open field, players 200 units apart, match already running."""
    room = make_room(
        cover_layout=[],
        start_positions=[(400.0, 1000.0), (600.0, 1000.0)],
    )
    room.add_player('a', 'Alice', now=clock.now)
    room.add_player('b', 'Bob', now=clock.now)
    assert room.is_active
    return room
