"""iCalendar file event source"""
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

import recurring_ical_events
from icalendar import Calendar
from loguru import logger

from .base import EventSource
from ..scheduler.errors import SourceUnavailable
from ..scheduler.schedule import from_ms, to_ms
from ..scheduler.types import CalendarEvent

logger = logger.bind(module="calendars.ics")

# Slack added around the query so timezone-aware events are not missed
# by the expansion; results are filtered on exact timestamps afterwards.
_QUERY_MARGIN = timedelta(days=1)


def _event_start_ms(component) -> Optional[int]:
    """Get the start timestamp of a VEVENT, or None for all-day events"""
    prop = component.get("DTSTART")
    if prop is None:
        return None
    start = prop.dt
    # A DATE value (not DATE-TIME) marks an all-day event
    if not isinstance(start, datetime):
        return None
    # Floating times are local time
    return to_ms(start)


class IcsEventSource(EventSource):
    """Event source reading an .ics file

    The file is re-read on every query so edits and new events are picked
    up by the next search. Recurring events are expanded.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    @property
    def name(self) -> str:
        return f"ics:{self.path}"

    def _load_calendar(self) -> Calendar:
        try:
            return Calendar.from_ical(self.path.read_bytes())
        except OSError as e:
            raise SourceUnavailable(f"Cannot read calendar {self.path}: {e}") from e
        except ValueError as e:
            raise SourceUnavailable(f"Cannot parse calendar {self.path}: {e}") from e

    def find_events(self, window_start_ms: int, window_end_ms: int) -> List[CalendarEvent]:
        calendar = self._load_calendar()

        query_start = from_ms(window_start_ms) - _QUERY_MARGIN
        query_end = from_ms(window_end_ms) + _QUERY_MARGIN
        try:
            components = recurring_ical_events.of(calendar).between(query_start, query_end)
        except Exception as e:
            raise SourceUnavailable(f"Cannot expand calendar {self.path}: {e}") from e

        events = []
        for component in components:
            start_ms = _event_start_ms(component)
            if start_ms is None:
                continue
            if window_start_ms <= start_ms < window_end_ms:
                title = str(component.get("SUMMARY", ""))
                events.append(CalendarEvent(title=title, start_ms=start_ms))

        events.sort(key=lambda e: e.start_ms)
        logger.debug(f"{len(events)} events in {self.path} for window")
        return events
