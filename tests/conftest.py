"""Shared fixtures for the calendar alarm tests."""
import os
import sys
from datetime import datetime

import pytest
from loguru import logger

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from calendar_alarm.calendars import MemoryEventSource
from calendar_alarm.scheduler import AlarmEngine, AlarmState, MemoryStateStore


def ms(*args) -> int:
    """Local wall-clock time to a millisecond timestamp."""
    return int(datetime(*args).timestamp() * 1000)


class RecordingTriggers:
    """TriggerScheduler that records what is armed."""

    def __init__(self):
        self.repeating: dict[str, float] = {}
        self.at: dict[str, int] = {}
        self.calls: list[tuple] = []

    def schedule_repeating(self, interval_hours, handler_id):
        self.repeating[handler_id] = interval_hours
        self.calls.append(("repeating", handler_id, interval_hours))

    def schedule_at(self, at_ms, handler_id):
        self.at[handler_id] = at_ms
        self.calls.append(("at", handler_id, at_ms))

    def cancel(self, handler_id):
        self.repeating.pop(handler_id, None)
        self.at.pop(handler_id, None)
        self.calls.append(("cancel", handler_id))


class RecordingRinger:
    """AlarmRinger that records rings."""

    def __init__(self):
        self.rings: list[tuple[str, int]] = []

    def ring(self, title, event_time_ms):
        self.rings.append((title, event_time_ms))


@pytest.fixture
def source():
    return MemoryEventSource()


@pytest.fixture
def store():
    return MemoryStateStore(AlarmState(enabled=True, offset_minutes=90))


@pytest.fixture
def triggers():
    return RecordingTriggers()


@pytest.fixture
def ringer():
    return RecordingRinger()


@pytest.fixture
def engine(store, source, triggers, ringer):
    return AlarmEngine(store=store, source=source, triggers=triggers, ringer=ringer)


@pytest.fixture
def log_lines():
    """Loguru output as "LEVEL | message" lines."""
    lines: list[str] = []
    handler_id = logger.add(
        lambda message: lines.append(message.rstrip("\n")),
        level="DEBUG",
        format="{level} | {message}",
    )
    yield lines
    logger.remove(handler_id)
