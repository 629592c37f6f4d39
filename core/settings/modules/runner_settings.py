from __future__ import annotations

from pathlib import PurePosixPath
from typing import List, Optional

from pydantic import Field

from core.settings.base import CukeflowBaseSettings


class RunnerSettings(CukeflowBaseSettings):
    """
    How the external cucumber-js runner is invoked.
    Loaded from .env file with exact variable name matching.
    """

    executable: str = Field("npx", alias="RUNNER_EXECUTABLE")
    command: str = Field("cucumber-js", alias="RUNNER_COMMAND")
    all_features_glob: str = Field("src/features/**/*.feature", alias="RUNNER_FEATURES_GLOB")
    entity_feature_template: str = Field(
        "src/features/ecommerce/{entity}.feature", alias="RUNNER_ENTITY_FEATURE_TEMPLATE"
    )
    require_module: str = Field("ts-node/register", alias="RUNNER_REQUIRE_MODULE")
    require_globs: str = Field(
        "src/steps/**/*.ts,src/steps/hooks.ts", alias="RUNNER_REQUIRE_GLOBS"
    )
    console_format: str = Field("@cucumber/pretty-formatter", alias="RUNNER_CONSOLE_FORMAT")
    report_dir: str = Field("test-results", alias="RUNNER_REPORT_DIR")
    report_name: str = Field("cucumber-report.json", alias="RUNNER_REPORT_NAME")

    # cucumber-js only honours --parallel on recent versions
    forward_parallel: bool = Field(False, alias="RUNNER_FORWARD_PARALLEL")
    ci: bool = Field(False, alias="RUNNER_CI")

    process_timeout_seconds: Optional[float] = Field(None, alias="RUNNER_PROCESS_TIMEOUT_SECONDS")
    output_tail_lines: int = Field(200, alias="RUNNER_OUTPUT_TAIL_LINES")
    stream_limit_bytes: int = Field(1024 * 1024, alias="RUNNER_STREAM_LIMIT_BYTES")

    @property
    def require_glob_list(self) -> List[str]:
        return [item.strip() for item in self.require_globs.split(",") if item.strip()]

    @property
    def report_path(self) -> PurePosixPath:
        """Report location relative to a project's working directory."""
        return PurePosixPath(self.report_dir) / self.report_name

    def entity_feature_path(self, entity_name: str) -> str:
        return self.entity_feature_template.format(entity=entity_name.lower())
