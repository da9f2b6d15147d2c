"""Exception types for the agent pipeline."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline errors."""


class AgentFailure(PipelineError):
    """An agent raised or returned output of the wrong shape.

    Recorded on the agent's output as a failed status; never raised to the
    caller of the coordinator.
    """

    def __init__(self, agent_name: str, message: str, recoverable: bool = False):
        self.agent_name = agent_name
        self.recoverable = recoverable
        super().__init__(f"Agent {agent_name} failed: {message}")


class DependencyUnmet(PipelineError):
    """An agent was scheduled but a required dependency did not complete."""

    def __init__(self, agent_name: str, missing: list[str]):
        self.agent_name = agent_name
        self.missing = sorted(missing)
        super().__init__(
            f"Dependency unmet for {agent_name}: {', '.join(self.missing)} not completed"
        )


class PlanValidationError(PipelineError):
    """An execution plan references unknown agents or impossible ordering."""
