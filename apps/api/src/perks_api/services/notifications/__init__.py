"""Notification service package."""

from .backend import InMemoryPushBackend, LoggingPushBackend, PushBackend
from .service import StaffNotifier

__all__ = [
    "InMemoryPushBackend",
    "LoggingPushBackend",
    "PushBackend",
    "StaffNotifier",
]
