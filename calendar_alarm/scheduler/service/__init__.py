"""Alarm state persistence.

- store.py: YAML config + SQLite state persistence
"""
from .store import AlarmStore, MemoryStateStore, StateStore

__all__ = ["AlarmStore", "MemoryStateStore", "StateStore"]
