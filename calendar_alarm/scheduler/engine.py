"""Alarm scheduling engine.

Decides whether, and when, the alarm rings before the first event of the
day. Every operation follows the same pass:

1. load the full AlarmState from the store
2. query the calendar and compute the new state
3. commit the state
4. only then ring and re-arm or cancel timers

Steps 1 to 3 run inside the store's transaction, which excludes other
engines sharing the store, including ones in other processes. A store
failure therefore aborts the operation with no partial state and no
timer changes. All memory between invocations lives in the store.
"""
import threading
from typing import TYPE_CHECKING, Callable

from loguru import logger

from .errors import SourceUnavailable, UnknownTrigger
from .models import AlarmState
from .ringer import AlarmRinger
from .schedule import day_windows, format_ms, now_ms
from .service.store import StateStore
from .triggers import TriggerScheduler
from .types import (
    ALARM_HANDLER,
    SEARCH_HANDLER,
    Action,
    CalendarEvent,
    Decision,
    DecisionKind,
    PendingAlarm,
)

if TYPE_CHECKING:
    from ..calendars.base import EventSource

logger = logger.bind(module="scheduler.engine")

DEFAULT_SEARCH_INTERVAL_HOURS = 1
# Day windows searched in order
_DAY_LABELS = ("today", "tomorrow")


class AlarmEngine:
    """Computes the next alarm from the calendar and persisted state.

    Operations are serialized with a lock and the store transaction, so
    triggers delivered from several threads or processes never interleave
    their read-modify-write passes.
    """

    def __init__(
        self,
        store: StateStore,
        source: "EventSource",
        triggers: TriggerScheduler,
        ringer: AlarmRinger,
        search_interval_hours: float = DEFAULT_SEARCH_INTERVAL_HOURS,
    ):
        """Initialize engine with its collaborators.

        Args:
            store: Persisted alarm state
            source: Calendar event source
            triggers: Timer facility for the search and alarm triggers
            ringer: Emits the ring when an alarm fires
            search_interval_hours: Period of the calendar search trigger
        """
        self.store = store
        self.source = source
        self.triggers = triggers
        self.ringer = ringer
        self.search_interval_hours = search_interval_hours
        self._lock = threading.Lock()
        self._handlers: dict[Action, Callable[[int | None], Decision]] = {
            Action.CONFIGURATION_CHANGED: self.on_configuration_changed,
            Action.SEARCH: self.on_search_tick,
            Action.RUN: self.on_alarm_fire,
        }

    # ============== Dispatch ==============

    def handle(self, action: Action | str, current_ms: int | None = None) -> Decision | None:
        """Dispatch a trigger action.

        Returns:
            The decision, or None if the action was not recognized
        """
        try:
            resolved = Action.parse(action)
        except UnknownTrigger as e:
            logger.warning(f"{e}, ignoring")
            return None
        return self._handlers[resolved](current_ms)

    # ============== Operations ==============

    def on_configuration_changed(self, current_ms: int | None = None) -> Decision:
        """Arm or disarm the periodic search after a settings change or boot."""
        if current_ms is None:
            current_ms = now_ms()

        with self._lock:
            logger.debug("Updating search schedule...")
            with self.store.transaction():
                state = self.store.load()
                alarm = self._recompute(state, current_ms)
                self.store.save(state)

            if state.enabled:
                logger.info(f"Search ON, every {self.search_interval_hours}h")
                self.triggers.schedule_repeating(self.search_interval_hours, SEARCH_HANDLER)
            else:
                logger.info("Search OFF")
                self.triggers.cancel(SEARCH_HANDLER)
            self._apply_alarm_timer(alarm)
            return self._decision(state, alarm)

    def on_search_tick(self, current_ms: int | None = None) -> Decision:
        """Re-derive the next alarm, picking up new or edited events."""
        if current_ms is None:
            current_ms = now_ms()

        with self._lock:
            with self.store.transaction():
                state = self.store.load()
                alarm = self._recompute(state, current_ms)
                self.store.save(state)
            self._apply_alarm_timer(alarm)
            return self._decision(state, alarm)

    def on_alarm_fire(self, current_ms: int | None = None) -> Decision:
        """Ring the armed alarm, record it, and arm the following one."""
        if current_ms is None:
            current_ms = now_ms()

        with self._lock:
            with self.store.transaction():
                state = self.store.load()
                rang = state.next_alarm()
                if rang is not None:
                    logger.info(f"ALARM! {rang.title} at {format_ms(rang.event_time_ms)}")
                    state.mark_fired(current_ms)
                    state.clear_next_alarm()
                else:
                    logger.warning("Alarm trigger fired but no alarm is armed")

                alarm = self._recompute(state, current_ms)
                self.store.save(state)

            if rang is not None:
                self.ringer.ring(rang.title, rang.event_time_ms)
            self._apply_alarm_timer(alarm)
            decision = self._decision(state, alarm)
            decision.rang = rang
            return decision

    def recompute_next_alarm(self, current_ms: int | None = None) -> Decision:
        """Alias of on_search_tick for hosts that recompute directly."""
        return self.on_search_tick(current_ms)

    # ============== Internals ==============

    def _recompute(self, state: AlarmState, current_ms: int) -> PendingAlarm | None:
        """Update the next-alarm fields of ``state`` in place."""
        logger.debug("Updating next alarm...")
        if not state.enabled:
            logger.debug("Alarm OFF (disabled)")
            state.clear_next_alarm()
            return None

        alarm = self._find_next_alarm(state, current_ms)
        if alarm is None:
            logger.debug("Alarm OFF (no event)")
            state.clear_next_alarm()
            return None

        logger.info(
            f"Alarm ON for '{alarm.title}' at {format_ms(alarm.alarm_time_ms)}, "
            f"{state.offset_minutes} minutes before"
        )
        state.set_next_alarm(alarm)
        return alarm

    def _find_next_alarm(self, state: AlarmState, current_ms: int) -> PendingAlarm | None:
        """Pick the first event of today, falling back to tomorrow.

        Today's first event is kept even if its ring time has passed, as
        long as the event has not started and its alarm has not rung.
        """
        windows = day_windows(current_ms, len(_DAY_LABELS))
        for label, (start_ms, end_ms) in zip(_DAY_LABELS, windows):
            event = self._query(start_ms, end_ms, label)
            if event is None:
                continue

            alarm = PendingAlarm.for_event(event, state.offset_ms)
            if event.start_ms < current_ms:
                logger.debug(f"Event '{event.title}' {label} already started")
                continue
            if state.already_rang(alarm):
                logger.debug(f"Alarm for '{event.title}' {label} already rang")
                continue
            return alarm
        return None

    def _query(self, start_ms: int, end_ms: int, label: str) -> CalendarEvent | None:
        try:
            event = self.source.find_first_event(start_ms, end_ms)
        except SourceUnavailable as e:
            logger.warning(f"Calendar unavailable for {label}: {e}")
            return None

        if event is None:
            logger.debug(f"No event in calendar {label}")
        else:
            logger.debug(f"Found event {label}: '{event.title}' at {format_ms(event.start_ms)}")
        return event

    def _apply_alarm_timer(self, alarm: PendingAlarm | None) -> None:
        if alarm is None:
            self.triggers.cancel(ALARM_HANDLER)
        else:
            self.triggers.schedule_at(alarm.alarm_time_ms, ALARM_HANDLER)

    @staticmethod
    def _decision(state: AlarmState, alarm: PendingAlarm | None) -> Decision:
        return Decision(
            kind=DecisionKind.ARM if alarm else DecisionKind.CANCEL,
            search_enabled=state.enabled,
            alarm=alarm,
        )
