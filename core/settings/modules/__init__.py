# Settings modules
from .app_settings import AppSettings, get_app_settings
from .bug_tracker_settings import BugTrackerSettings
from .events_settings import EventsSettings
from .runner_settings import RunnerSettings

__all__ = [
    "AppSettings",
    "get_app_settings",
    "BugTrackerSettings",
    "EventsSettings",
    "RunnerSettings",
]
