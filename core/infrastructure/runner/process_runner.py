"""
Process Runner.

Spawns the external test runner, streams its output line by line and
turns a non-zero exit into ProcessFailure. It never reads the report.
"""
import asyncio
import logging
import os
from collections import deque
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Deque, Optional

from core.settings import RunnerSettings

from .command_builder import CommandSpec
from .exceptions import ProcessFailure


logger = logging.getLogger(__name__)

# (stream name, decoded line) -> awaitable
LineHandler = Callable[[str, str], Awaitable[None]]

SCENARIO_MARKERS = ("✅ Scenario:", "❌ Scenario:", "Scenario:")


def is_scenario_line(line: str) -> bool:
    return any(marker in line for marker in SCENARIO_MARKERS)


class ProcessRunner:
    """Runs a CommandSpec as a child process of the current event loop."""

    def __init__(self, settings: RunnerSettings):
        self.settings = settings

    async def run(
        self,
        working_dir: Path,
        command: CommandSpec,
        on_line: Optional[LineHandler] = None,
    ) -> str:
        """
        Run the command and wait for it to exit.

        Args:
            working_dir: Project directory the runner executes in
            command: Command to run
            on_line: Optional async callback for every output line

        Returns:
            Tail of stdout (bounded by RUNNER_OUTPUT_TAIL_LINES)

        Raises:
            ProcessFailure: On spawn error, non-zero exit or timeout
        """
        working_dir = Path(working_dir)
        self._ensure_report_dir(working_dir / command.report_dir)

        logger.info(f"Running in {working_dir}: {command.display()}")
        if command.parallel:
            logger.info(f"Requested workers: {command.workers}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command.argv,
                cwd=str(working_dir),
                env={**os.environ, **command.env},
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self.settings.stream_limit_bytes,
            )
        except OSError as e:
            logger.error(f"Error executing command: {e}")
            raise ProcessFailure.from_spawn_error(e) from e

        stdout_tail: Deque[str] = deque(maxlen=self.settings.output_tail_lines)
        stderr_tail: Deque[str] = deque(maxlen=self.settings.output_tail_lines)

        communicate = asyncio.gather(
            self._pump(process.stdout, "stdout", stdout_tail, on_line),
            self._pump(process.stderr, "stderr", stderr_tail, on_line),
            process.wait(),
        )

        timeout = self.settings.process_timeout_seconds
        try:
            if timeout:
                await asyncio.wait_for(communicate, timeout=timeout)
            else:
                await communicate
        except asyncio.TimeoutError:
            await self._kill(process)
            logger.error(f"Runner timed out after {timeout}s (pid={process.pid})")
            raise ProcessFailure(
                f"Command timed out after {timeout} seconds",
                exit_code=process.returncode,
                stderr="\n".join(stderr_tail),
                timed_out=True,
            )
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        exit_code = process.returncode
        stderr = "\n".join(stderr_tail)
        if exit_code != 0:
            logger.error(f"Runner exited with code {exit_code}")
            raise ProcessFailure.from_exit(exit_code, stderr)

        logger.info("✅ Runner exited cleanly")
        return "\n".join(stdout_tail)

    async def _pump(
        self,
        stream: Optional[asyncio.StreamReader],
        name: str,
        tail: Deque[str],
        on_line: Optional[LineHandler],
    ) -> None:
        if stream is None:
            return
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                # Line longer than the stream limit; the reader discards it
                logger.warning(f"Dropped an over-long {name} line")
                continue
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            tail.append(line)
            if name == "stdout" and is_scenario_line(line):
                logger.info(line.strip())
            if on_line is not None:
                try:
                    await on_line(name, line)
                except Exception as e:
                    logger.warning(f"Output line handler failed: {e}")

    def _ensure_report_dir(self, report_dir: Path) -> None:
        try:
            report_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create report directory {report_dir}: {e}")

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
