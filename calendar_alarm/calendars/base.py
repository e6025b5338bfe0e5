"""Event source abstract base class"""
from abc import ABC, abstractmethod
from typing import Optional, List

from ..scheduler.types import CalendarEvent


class EventSource(ABC):
    """Event source abstract base class

    Implementations answer "which events start within [start, end)?"
    against a calendar provider. Queries are side-effect free and raise
    SourceUnavailable when the provider cannot be read.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name for logs"""
        pass

    @abstractmethod
    def find_events(self, window_start_ms: int, window_end_ms: int) -> List[CalendarEvent]:
        """List qualifying events in a window

        Args:
            window_start_ms: Window start, inclusive
            window_end_ms: Window end, exclusive

        Returns:
            Non-all-day events sorted by start time
        """
        pass

    def find_first_event(self, window_start_ms: int, window_end_ms: int) -> Optional[CalendarEvent]:
        """Get the earliest qualifying event in a window

        Args:
            window_start_ms: Window start, inclusive
            window_end_ms: Window end, exclusive

        Returns:
            The first event, or None if the window is empty
        """
        events = self.find_events(window_start_ms, window_end_ms)
        return events[0] if events else None
