# Settings package
from core.settings.modules import (
    AppSettings,
    BugTrackerSettings,
    EventsSettings,
    RunnerSettings,
    get_app_settings,
)

__all__ = [
    "get_app_settings",
    "AppSettings",
    "BugTrackerSettings",
    "EventsSettings",
    "RunnerSettings",
]
