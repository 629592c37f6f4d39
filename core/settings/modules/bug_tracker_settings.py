from __future__ import annotations

from pydantic import Field

from core.settings.base import CukeflowBaseSettings


class BugTrackerSettings(CukeflowBaseSettings):
    """
    Bug tracker integration settings.
    When disabled, failures are only logged.
    """

    enabled: bool = Field(False, alias="BUG_TRACKER_ENABLED")
    url: str = Field("http://localhost:8080/api/bugs", alias="BUG_TRACKER_URL")
    token: str = Field("", alias="BUG_TRACKER_TOKEN")
    timeout_seconds: float = Field(10.0, alias="BUG_TRACKER_TIMEOUT_SECONDS")
