"""Data models for persisted alarm state."""
from dataclasses import dataclass, replace
from typing import Any

from .types import PendingAlarm

DEFAULT_OFFSET_MINUTES = 90


@dataclass
class AlarmState:
    """Durable alarm state.

    ``enabled`` and ``offset_minutes`` are user configuration; the other
    fields are runtime state owned by the engine. The next-alarm pair is
    only ever set or cleared together.
    """
    # Configuration
    enabled: bool = False
    offset_minutes: int = DEFAULT_OFFSET_MINUTES

    # Runtime state
    last_alarm_fired_at_ms: int = 0
    next_alarm_title: str | None = None
    next_alarm_time_ms: int | None = None

    @property
    def offset_ms(self) -> int:
        return self.offset_minutes * 60 * 1000

    @property
    def has_next_alarm(self) -> bool:
        return self.next_alarm_time_ms is not None

    def next_alarm(self) -> PendingAlarm | None:
        """Rebuild the armed alarm, recovering the event time from the offset."""
        if self.next_alarm_time_ms is None:
            return None
        return PendingAlarm(
            title=self.next_alarm_title or "",
            event_time_ms=self.next_alarm_time_ms + self.offset_ms,
            alarm_time_ms=self.next_alarm_time_ms,
        )

    def set_next_alarm(self, alarm: PendingAlarm) -> None:
        self.next_alarm_title = alarm.title
        self.next_alarm_time_ms = alarm.alarm_time_ms

    def clear_next_alarm(self) -> None:
        self.next_alarm_title = None
        self.next_alarm_time_ms = None

    def mark_fired(self, fired_at_ms: int) -> None:
        self.last_alarm_fired_at_ms = max(self.last_alarm_fired_at_ms, fired_at_ms)

    def already_rang(self, alarm: PendingAlarm) -> bool:
        return self.last_alarm_fired_at_ms >= alarm.alarm_time_ms

    def copy(self) -> "AlarmState":
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "enabled": self.enabled,
            "offset_minutes": self.offset_minutes,
            "last_alarm_fired_at_ms": self.last_alarm_fired_at_ms,
            "next_alarm_title": self.next_alarm_title,
            "next_alarm_time_ms": self.next_alarm_time_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlarmState":
        """Create from dictionary."""
        state = cls(
            enabled=bool(data.get("enabled", False)),
            offset_minutes=int(data.get("offset_minutes", DEFAULT_OFFSET_MINUTES)),
            last_alarm_fired_at_ms=int(data.get("last_alarm_fired_at_ms") or 0),
        )
        title = data.get("next_alarm_title")
        time_ms = data.get("next_alarm_time_ms")
        # Half a pair is treated as no armed alarm
        if title is not None and time_ms is not None:
            state.next_alarm_title = title
            state.next_alarm_time_ms = int(time_ms)
        return state
