from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from core.settings.modules.bug_tracker_settings import BugTrackerSettings
from core.settings.modules.events_settings import EventsSettings
from core.settings.modules.runner_settings import RunnerSettings


class AppSettings(BaseModel):
    """Application settings aggregator."""

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    runner: RunnerSettings
    events: EventsSettings
    bug_tracker: BugTrackerSettings


@lru_cache()
def get_app_settings() -> AppSettings:
    return AppSettings(
        runner=RunnerSettings(),
        events=EventsSettings(),
        bug_tracker=BugTrackerSettings(),
    )
