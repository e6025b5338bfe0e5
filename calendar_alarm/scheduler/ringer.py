"""Alarm ringers: the side effect emitted when an armed alarm fires."""
from typing import Callable, Protocol

from loguru import logger

from .schedule import format_ms, now_ms, relative_to_human

logger = logger.bind(module="scheduler.ringer")


class AlarmRinger(Protocol):
    """Protocol for ringing an alarm."""

    def ring(self, title: str, event_time_ms: int) -> None:
        """Ring for the event ``title`` starting at ``event_time_ms``."""
        ...


def ring_message(title: str, event_time_ms: int, current_ms: int | None = None) -> str:
    """Build the alert text shown for a ring."""
    if current_ms is None:
        current_ms = now_ms()
    when = relative_to_human(event_time_ms, current_ms)
    return f"⏰ {title or 'Untitled event'} at {format_ms(event_time_ms)} (starts {when})"


class LogRinger:
    """Rings by writing the alert through the logger."""

    def ring(self, title: str, event_time_ms: int) -> None:
        logger.warning(ring_message(title, event_time_ms))


class CallbackRinger:
    """Rings by handing the alert text to a callback, e.g. a notifier."""

    def __init__(self, send: Callable[[str], object]):
        self.send = send

    def ring(self, title: str, event_time_ms: int) -> None:
        message = ring_message(title, event_time_ms)
        try:
            self.send(message)
        except Exception as e:
            # Fire-and-forget: the ring is already recorded
            logger.error(f"Failed to deliver alarm: {e}")
        else:
            logger.info(f"Alarm delivered: {message}")
