"""Test runner infrastructure: command building, process control, report parsing."""

from .command_builder import CommandBuilder, CommandSpec
from .exceptions import ListenerClosedError, ProcessFailure
from .process_runner import ProcessRunner
from .report_parser import ReportParser, ResultsSummary
from .results_listener import ResultsListener

__all__ = [
    "CommandBuilder",
    "CommandSpec",
    "ListenerClosedError",
    "ProcessFailure",
    "ProcessRunner",
    "ReportParser",
    "ResultsListener",
    "ResultsSummary",
]
