"""Exceptions raised by the alarm scheduler and its collaborators."""


class AlarmError(Exception):
    """Base class for calendar alarm errors."""


class SourceUnavailable(AlarmError):
    """The calendar could not be queried."""


class StoreUnavailable(AlarmError):
    """Persisted alarm state could not be read or written."""


class UnknownTrigger(AlarmError):
    """An invocation arrived with an action the engine does not handle."""
