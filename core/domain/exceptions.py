"""Domain errors raised by the execution engine."""


class CukeflowError(Exception):
    """Base class for all domain errors."""
    pass


class ProjectNotFoundError(CukeflowError):
    """Raised when the target project does not exist."""

    def __init__(self, project_id: str):
        super().__init__(f"Project with ID {project_id} not found")
        self.project_id = project_id


class ExecutionNotFoundError(CukeflowError):
    """Raised when an execution lookup finds nothing."""
    pass


class InvalidExecutionRequestError(CukeflowError):
    """Raised when an execution request cannot be satisfied."""
    pass


class InvalidStatusTransitionError(CukeflowError):
    """Raised when an execution is moved to a state its lifecycle forbids."""

    def __init__(self, execution_id: str, current: str, target: str):
        super().__init__(
            f"Execution {execution_id} cannot move from {current} to {target}"
        )
        self.execution_id = execution_id
        self.current = current
        self.target = target
