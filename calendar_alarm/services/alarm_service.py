"""Alarm service - wires the engine to its store, calendar and timers"""
from typing import Optional

from loguru import logger

from ..calendars import EventSource, IcsEventSource, MemoryEventSource
from ..config import settings
from ..scheduler import (
    AlarmEngine,
    AlarmRinger,
    AlarmState,
    AlarmStore,
    ApschedulerTriggers,
    Decision,
    LogRinger,
    PendingAlarm,
    StateStore,
    TriggerScheduler,
)


def _default_source() -> EventSource:
    if settings.ics_path:
        return IcsEventSource(settings.ics_path)
    logger.warning("No calendar configured (CALENDAR_ALARM_ICS_PATH), alarms will never be armed")
    return MemoryEventSource()


class AlarmService:
    """Alarm service

    Exposes the configuration surface (enabled, offset) and the display
    surface (next alarm), and re-arms timers on startup.
    """

    def __init__(
        self,
        store: Optional[StateStore] = None,
        source: Optional[EventSource] = None,
        triggers: Optional[TriggerScheduler] = None,
        ringer: Optional[AlarmRinger] = None,
        search_interval_hours: Optional[float] = None,
    ):
        self.store = store or AlarmStore(settings.data_dir, settings.default_offset_minutes)
        self.source = source or _default_source()
        self.triggers = triggers or ApschedulerTriggers()
        self.ringer = ringer or LogRinger()
        self.engine = AlarmEngine(
            store=self.store,
            source=self.source,
            triggers=self.triggers,
            ringer=self.ringer,
            search_interval_hours=search_interval_hours or settings.search_interval_hours,
        )
        if isinstance(self.triggers, ApschedulerTriggers):
            self.triggers.bind(self.engine.handle)
        self._config_mtime: Optional[float] = None

    # ============== Lifecycle ==============

    def start(self, current_ms: Optional[int] = None) -> Decision:
        """Start timers and re-arm them from persisted state (boot hook)"""
        if isinstance(self.triggers, ApschedulerTriggers):
            self.triggers.start()
        decision = self.engine.on_configuration_changed(current_ms)
        self._remember_config()
        logger.info(f"Alarm service started (calendar: {self.source.name})")
        return decision

    def stop(self):
        if isinstance(self.triggers, ApschedulerTriggers):
            self.triggers.shutdown()
        logger.info("Alarm service stopped")

    # ============== Configuration ==============

    def is_enabled(self) -> bool:
        return self.store.load().enabled

    def set_enabled(self, enabled: bool, current_ms: Optional[int] = None) -> Decision:
        """Toggle the alarm and reconfigure the engine"""
        self.store.update_config(enabled=enabled)
        self._remember_config()
        return self.engine.on_configuration_changed(current_ms)

    def get_offset_in_minutes(self) -> int:
        return self.store.load().offset_minutes

    def set_offset_in_minutes(self, offset_minutes: int, current_ms: Optional[int] = None) -> Decision:
        """Change the lead time and reconfigure the engine

        Raises:
            ValueError: If the offset is negative or not an integer
        """
        self.store.update_config(offset_minutes=offset_minutes)
        self._remember_config()
        return self.engine.on_configuration_changed(current_ms)

    def _remember_config(self):
        if isinstance(self.store, AlarmStore):
            self._config_mtime = self.store.config_mtime()

    def reload_if_changed(self) -> Optional[Decision]:
        """Reconfigure if the config file was edited outside this process"""
        if not isinstance(self.store, AlarmStore):
            return None
        mtime = self.store.config_mtime()
        if mtime == self._config_mtime:
            return None
        self._config_mtime = mtime
        logger.info(f"Config changed on disk: {self.store.yaml_path}")
        return self.engine.on_configuration_changed()

    # ============== Display ==============

    def state(self) -> AlarmState:
        return self.store.load()

    def next_alarm(self) -> Optional[PendingAlarm]:
        """The currently armed alarm, if any"""
        return self.store.load().next_alarm()

    def check(self, current_ms: Optional[int] = None) -> Decision:
        """Run one calendar search now"""
        return self.engine.on_search_tick(current_ms)
