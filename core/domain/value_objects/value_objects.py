"""Domain value objects - pure Python immutable types."""

from dataclasses import asdict, dataclass
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True)
class ExecutionID:
    """Externally visible identifier of a test execution."""

    value: UUID

    @classmethod
    def generate(cls) -> "ExecutionID":
        """Generate a new ExecutionID."""
        return cls(value=uuid4())

    @classmethod
    def parse(cls, raw: str) -> "ExecutionID":
        """Parse an ExecutionID from its string form.

        Raises:
            ValueError: If raw is not a valid UUID
        """
        return cls(value=UUID(str(raw)))

    def __str__(self) -> str:
        """Return string representation."""
        return str(self.value)


@dataclass(frozen=True)
class ExecutionConfig:
    """
    Run configuration attached to an execution.

    Stored as the execution's metadata bag and injected into the
    runner process environment.
    """
    environment: str = "local"
    verbose: bool = False
    save_logs: bool = True
    save_payloads: bool = True
    parallel: bool = False
    workers: int = 1
    timeout: int = 30000
    retries: int = 0

    @property
    def effective_workers(self) -> int:
        return self.workers if self.parallel else 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ExecutionConfig":
        data = data or {}
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and v is not None}
        return cls(**known)
