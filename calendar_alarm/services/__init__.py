"""Service module"""
from .alarm_service import AlarmService

__all__ = [
    "AlarmService",
]
