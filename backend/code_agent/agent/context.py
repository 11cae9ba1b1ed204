from typing import Any

from pydantic import BaseModel, ConfigDict, Field


COMPLETION_MARKER = "<task_summary>"


class RunInput(BaseModel):
    """Payload of a `code-agent/run` event."""

    value: str
    projectId: str
    model: str | None = None


class RunState(BaseModel):
    """Shared state for one run, mutated by tools and the lifecycle hook.

    Attributes:
        files: Mapping of file paths to the content last written by the agent.
        summary: Final assistant text containing the completion marker, set once.
    """

    files: dict[str, str] = Field(default_factory=dict)
    summary: str | None = None

    def record_summary(self, text: str | None) -> bool:
        """Store `text` as the summary if it carries the marker and none is set yet."""
        if self.summary is not None or not text:
            return False
        if COMPLETION_MARKER not in text:
            return False
        self.summary = text
        return True


class CodeAgentContext(BaseModel):
    """Run context handed to the agents SDK and every tool call.

    Attributes:
        state: The shared run state.
        sandbox_id: Identifier of the run's sandbox; tools reconnect with it.
        step: StepRunner used to memoize tool calls.
        sandbox: SandboxClient used to reconnect.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: RunState = Field(default_factory=RunState)
    sandbox_id: str
    step: Any
    sandbox: Any
