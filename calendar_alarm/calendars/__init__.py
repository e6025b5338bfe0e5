"""Calendar event sources"""
from .base import EventSource
from .ics import IcsEventSource
from .memory import MemoryEventSource

__all__ = [
    "EventSource",
    "IcsEventSource",
    "MemoryEventSource",
]
