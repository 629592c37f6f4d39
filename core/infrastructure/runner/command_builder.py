"""
Command Builder.

Translates an execution into a concrete cucumber-js invocation.
"""
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, List
import logging

from core.domain.entities import Execution
from core.settings import RunnerSettings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandSpec:
    """A fully resolved runner invocation."""
    argv: List[str]
    env: Dict[str, str] = field(default_factory=dict)
    report_path: PurePosixPath = PurePosixPath("test-results/cucumber-report.json")
    workers: int = 1
    parallel: bool = False

    @property
    def report_dir(self) -> PurePosixPath:
        return self.report_path.parent

    def display(self) -> str:
        """Shell-like rendering for logs."""
        return " ".join(f'"{arg}"' if " " in arg else arg for arg in self.argv)


class CommandBuilder:
    """
    Builds runner commands from executions.

    Pure: no filesystem or process access.
    """

    def __init__(self, settings: RunnerSettings):
        self.settings = settings

    def build(self, execution: Execution) -> CommandSpec:
        """Build the command for an execution.

        Args:
            execution: Execution whose filters drive the command

        Returns:
            CommandSpec with argv, environment and report location
        """
        s = self.settings
        argv: List[str] = [s.executable, s.command]

        if execution.targets_all_entities:
            argv.append(s.all_features_glob)
        else:
            argv.append(s.entity_feature_path(execution.entity_name))

        argv += ["--require-module", s.require_module]
        for glob in s.require_glob_list:
            argv += ["--require", glob]

        # Scenario names take precedence over tags
        scenario_names = execution.scenario_names
        if scenario_names:
            for name in scenario_names:
                argv += ["--name", name]
        elif execution.tags:
            argv += ["--tags", " and ".join(execution.tags)]

        config = execution.config
        if config.retries > 0:
            argv += ["--retry", str(config.retries)]

        workers = config.effective_workers
        if s.forward_parallel and config.parallel and workers > 1:
            argv += ["--parallel", str(workers)]
        elif config.parallel:
            logger.info(
                f"Parallel execution requested with {workers} workers "
                f"(not forwarded to runner)"
            )

        argv += ["--format", s.console_format]
        argv += ["--format", f"json:{s.report_path}"]

        return CommandSpec(
            argv=argv,
            env=self.build_environment(execution),
            report_path=s.report_path,
            workers=workers,
            parallel=config.parallel,
        )

    def build_environment(self, execution: Execution) -> Dict[str, str]:
        """Environment variables read by step implementations in the child process."""
        config = execution.config
        return {
            "TEST_EXECUTION_ID": str(execution.execution_id),
            "TEST_ENTITY": execution.entity_name or "",
            "TEST_METHOD": execution.method or "",
            "TEST_TYPE": execution.test_type or "all",
            "TEST_TAGS": ",".join(execution.tags),
            "TEST_SCENARIO": execution.specific_scenario or "",
            "TEST_ENVIRONMENT": config.environment,
            "TEST_VERBOSE": _flag(config.verbose),
            "TEST_SAVE_LOGS": _flag(config.save_logs),
            "TEST_SAVE_PAYLOADS": _flag(config.save_payloads),
            "TEST_TIMEOUT": str(config.timeout),
            "TEST_RETRIES": str(config.retries),
            "WORKERS": str(config.effective_workers),
            "CI": _flag(self.settings.ci),
        }


def _flag(value: bool) -> str:
    return "true" if value else "false"
