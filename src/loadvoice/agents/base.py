"""Common interface for pipeline agents."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import ClassVar, Generic, TypeVar

from loadvoice.agents.context import AgentContext
from loadvoice.agents.keys import AgentKey
from loadvoice.agents.models import AgentDescriptor, ConfidenceScore, Utterance
from loadvoice.config import PipelineConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Agent(ABC, Generic[T]):
    """A single-responsibility analyzer producing one typed output.

    Subclasses set ``key`` and ``descriptor`` and implement ``execute``.
    Agent instances hold configuration only, never per-call state, so one
    instance can serve concurrent pipeline runs.
    """

    key: ClassVar[AgentKey]
    descriptor: ClassVar[AgentDescriptor]
    retry_on_failure: ClassVar[bool] = False

    def __init__(self, config: PipelineConfig | None = None, llm_client=None):
        self.config = config or PipelineConfig()
        self.llm_client = llm_client

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def timeout(self) -> float:
        return self.config.timeout_for(self.name)

    @abstractmethod
    def execute(self, context: AgentContext) -> T:
        """Analyze the context and return this agent's payload."""

    def validate_output(self, output) -> bool:
        return isinstance(output, self.key.output_type)

    def score(self, value: float, factors: list[str] | None = None) -> ConfidenceScore:
        return ConfidenceScore.from_value(value, self.config.thresholds, factors)


def utterances_by_speaker(utterances: tuple[Utterance, ...] | list[Utterance]) -> dict[str, list[int]]:
    """Map each speaker label to the indices of its utterances, in first-seen order."""
    result: dict[str, list[int]] = {}
    for i, u in enumerate(utterances):
        result.setdefault(u.speaker_label, []).append(i)
    return result
