"""Alarm scheduler.

- types.py: actions, calendar events, alarms and decisions
- models.py: persisted AlarmState
- schedule.py: day windows and time formatting
- engine.py: the decision engine
- triggers.py: APScheduler-backed timers
- ringer.py: alarm ring side effects
- service/store.py: YAML config + SQLite state persistence
"""
from .engine import AlarmEngine
from .errors import AlarmError, SourceUnavailable, StoreUnavailable, UnknownTrigger
from .models import AlarmState
from .ringer import AlarmRinger, CallbackRinger, LogRinger
from .service import AlarmStore, MemoryStateStore, StateStore
from .triggers import ApschedulerTriggers, TriggerScheduler
from .types import Action, CalendarEvent, Decision, DecisionKind, PendingAlarm

__all__ = [
    "Action",
    "AlarmEngine",
    "AlarmError",
    "AlarmRinger",
    "AlarmState",
    "AlarmStore",
    "ApschedulerTriggers",
    "CalendarEvent",
    "CallbackRinger",
    "Decision",
    "DecisionKind",
    "LogRinger",
    "MemoryStateStore",
    "PendingAlarm",
    "SourceUnavailable",
    "StateStore",
    "StoreUnavailable",
    "TriggerScheduler",
    "UnknownTrigger",
]
