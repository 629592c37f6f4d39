"""Errors raised by the runner infrastructure."""
from typing import Optional


class ProcessFailure(Exception):
    """
    The external runner exited non-zero, failed to spawn or was killed.

    Callers are expected to still parse the report after catching this.
    """

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr
        self.timed_out = timed_out

    @classmethod
    def from_exit(cls, exit_code: int, stderr: str) -> "ProcessFailure":
        return cls(
            f"Command failed with code {exit_code}: {stderr}",
            exit_code=exit_code,
            stderr=stderr,
        )

    @classmethod
    def from_spawn_error(cls, error: Exception) -> "ProcessFailure":
        return cls(f"Error executing command: {error}", stderr=str(error))


class ListenerClosedError(Exception):
    """Raised when capturing into a results listener that has been closed."""
    pass
