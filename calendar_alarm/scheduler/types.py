"""Core type definitions for the alarm scheduler.

This module defines:
- Actions the engine reacts to (configuration_changed/search/run)
- Calendar events and the alarms derived from them
- Decision types returned by every engine operation
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from .errors import UnknownTrigger


# ============== Actions ==============

class Action(str, Enum):
    """Kind of trigger delivered to the engine."""
    CONFIGURATION_CHANGED = "configuration_changed"  # Settings toggled or boot
    SEARCH = "search"                                # Periodic calendar search
    RUN = "run"                                      # Armed alarm fired

    @classmethod
    def parse(cls, value: "Action | str") -> "Action":
        """Resolve an action name, raising UnknownTrigger if unrecognized."""
        try:
            return cls(value)
        except ValueError:
            raise UnknownTrigger(f"Unknown trigger action: {value}") from None


# Handler ids used for the two timers the engine arms
SEARCH_HANDLER = Action.SEARCH.value
ALARM_HANDLER = Action.RUN.value


# ============== Calendar Types ==============

@dataclass(frozen=True)
class CalendarEvent:
    """A non-all-day event read from the calendar."""
    title: str
    start_ms: int  # Unix timestamp in milliseconds

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "start_ms": self.start_ms}

    @classmethod
    def from_datetime(cls, title: str, start: datetime) -> "CalendarEvent":
        return cls(title=title, start_ms=int(start.timestamp() * 1000))


@dataclass(frozen=True)
class PendingAlarm:
    """An alarm derived from a calendar event and the configured offset."""
    title: str
    event_time_ms: int
    alarm_time_ms: int

    @classmethod
    def for_event(cls, event: CalendarEvent, offset_ms: int) -> "PendingAlarm":
        return cls(
            title=event.title,
            event_time_ms=event.start_ms,
            alarm_time_ms=event.start_ms - offset_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "event_time_ms": self.event_time_ms,
            "alarm_time_ms": self.alarm_time_ms,
        }


# ============== Decision Types ==============

class DecisionKind(str, Enum):
    """What the engine did with the alarm timer."""
    ARM = "arm"        # Alarm timer armed for Decision.alarm
    CANCEL = "cancel"  # Alarm timer cancelled, nothing armed


@dataclass
class Decision:
    """Result of one engine operation."""
    kind: DecisionKind
    search_enabled: bool
    alarm: PendingAlarm | None = None
    rang: PendingAlarm | None = None  # Set by on_alarm_fire when a ring was emitted

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "search_enabled": self.search_enabled,
            "alarm": self.alarm.to_dict() if self.alarm else None,
            "rang": self.rang.to_dict() if self.rang else None,
        }
