"""
Client-side attempt runtime: timers, navigation, autosave and submit,
driven against the PrepDesk API.
"""
from .client import AttemptAPIClient, AttemptAPIError
from .runner import AttemptRunner, NavigationError, SectionLockedError
from .scheduler import ManualClock, TaskScheduler

__all__ = [
    "AttemptAPIClient",
    "AttemptAPIError",
    "AttemptRunner",
    "ManualClock",
    "NavigationError",
    "SectionLockedError",
    "TaskScheduler",
]
