from typing import Any


GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class CommandExitError(Exception):
    """A sandbox command finished with a non-zero exit code."""

    def __init__(self, exit_code: int, stdout: str = "", stderr: str = "") -> None:
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"exit status {exit_code}")


class StepError(Exception):
    """A durable step kept failing after its retry budget was spent."""

    def __init__(self, name: str, attempts: int, cause: BaseException) -> None:
        self.name = name
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"step '{name}' failed after {attempts} attempt(s): {cause}")


class ProjectNotFoundError(LookupError):
    def __init__(self, project_id: Any) -> None:
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")
