"""In-memory event source"""
from dataclasses import dataclass
from datetime import datetime
from typing import List

from .base import EventSource
from ..scheduler.types import CalendarEvent


@dataclass
class MemoryEntry:
    """A stored event with its all-day flag"""
    event: CalendarEvent
    all_day: bool = False


class MemoryEventSource(EventSource):
    """List-backed event source for tests and embedding hosts"""

    def __init__(self):
        self._entries: List[MemoryEntry] = []

    @property
    def name(self) -> str:
        return "memory"

    def add(self, title: str, start: datetime, all_day: bool = False) -> CalendarEvent:
        """Add an event starting at ``start`` (naive datetimes are local time)"""
        event = CalendarEvent.from_datetime(title, start)
        self._entries.append(MemoryEntry(event=event, all_day=all_day))
        return event

    def remove(self, title: str) -> int:
        """Remove every event with this title, returning how many were removed"""
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.event.title != title]
        return before - len(self._entries)

    def clear(self):
        self._entries.clear()

    def find_events(self, window_start_ms: int, window_end_ms: int) -> List[CalendarEvent]:
        events = [
            entry.event for entry in self._entries
            if (not entry.all_day
                and window_start_ms <= entry.event.start_ms < window_end_ms)
        ]
        events.sort(key=lambda e: e.start_ms)
        return events
