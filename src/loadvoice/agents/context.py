"""Per-call accumulator of agent outputs."""

from __future__ import annotations

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, TypeVar, overload

from loadvoice.agents.keys import (
    CLASSIFICATION,
    ENTITY_EXTRACTION,
    LOAD_EXTRACTION,
    RATE_NEGOTIATION,
    SPEAKER_IDENTIFICATION,
    VALIDATION,
    AgentKey,
    key_name,
)
from loadvoice.agents.models import (
    AgentOutput,
    AgentStatus,
    CallMetadata,
    ClassificationResult,
    ConfidenceLevel,
    EntityExtractionResult,
    ExecutionSummary,
    LoadExtractionResult,
    RateNegotiationResult,
    SpeakerRoleMap,
    Utterance,
    ValidationResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ContextSnapshot:
    """Self-contained copy of a context's recorded outputs."""

    call_id: str
    outputs: dict[str, AgentOutput]
    taken_at: datetime = field(default_factory=datetime.now)


class AgentContext:
    """Holds one call's input and every agent output recorded so far.

    The input (transcript, utterances, metadata) is fixed at construction.
    Outputs are only changed through ``add_agent_output``, which may be
    called from several worker threads.
    """

    def __init__(
        self,
        transcript: str,
        utterances: list[Utterance],
        metadata: CallMetadata,
    ):
        self._transcript = transcript
        self._utterances = tuple(utterances)
        self._metadata = metadata
        self._outputs: dict[str, AgentOutput] = {}
        self._lock = threading.Lock()
        self._started = time.monotonic()

    @property
    def transcript(self) -> str:
        return self._transcript

    @property
    def utterances(self) -> tuple[Utterance, ...]:
        return self._utterances

    @property
    def metadata(self) -> CallMetadata:
        return self._metadata

    # -----------------------------------------------------------------------
    # Recording
    # -----------------------------------------------------------------------

    def add_agent_output(self, key: AgentKey | str, output: AgentOutput):
        name = key_name(key)
        if output.agent_name != name:
            raise ValueError(
                f"Output for agent {output.agent_name} recorded under {name}"
            )
        with self._lock:
            self._outputs[name] = output
        logger.debug(f"[{self._metadata.call_id}] {name} -> {output.status.value}")

    # -----------------------------------------------------------------------
    # Lookup
    # -----------------------------------------------------------------------

    @overload
    def get_agent_output(self, key: AgentKey[T]) -> Optional[T]: ...

    @overload
    def get_agent_output(self, key: str) -> Any: ...

    def get_agent_output(self, key):
        """Return the payload of a completed agent, or None."""
        with self._lock:
            result = self._outputs.get(key_name(key))
        if result is None or result.status != AgentStatus.COMPLETED:
            return None
        if isinstance(key, AgentKey) and not isinstance(result.output, key.output_type):
            raise TypeError(
                f"Output of {key.name} is {type(result.output).__name__}, "
                f"expected {key.output_type.__name__}"
            )
        return result.output

    def get_agent_result(self, key: AgentKey | str) -> Optional[AgentOutput]:
        with self._lock:
            return self._outputs.get(key_name(key))

    def has_agent_completed(self, key: AgentKey | str) -> bool:
        result = self.get_agent_result(key)
        return result is not None and result.status == AgentStatus.COMPLETED

    def get_agents_by_status(self, status: AgentStatus) -> list[str]:
        with self._lock:
            return [name for name, r in self._outputs.items() if r.status == status]

    def outputs(self) -> dict[str, AgentOutput]:
        with self._lock:
            return dict(self._outputs)

    # -----------------------------------------------------------------------
    # Typed shortcuts
    # -----------------------------------------------------------------------

    @property
    def classification(self) -> Optional[ClassificationResult]:
        return self.get_agent_output(CLASSIFICATION)

    @property
    def speakers(self) -> Optional[SpeakerRoleMap]:
        return self.get_agent_output(SPEAKER_IDENTIFICATION)

    @property
    def loads(self) -> Optional[LoadExtractionResult]:
        return self.get_agent_output(LOAD_EXTRACTION)

    @property
    def rates(self) -> Optional[RateNegotiationResult]:
        return self.get_agent_output(RATE_NEGOTIATION)

    @property
    def entities(self) -> Optional[EntityExtractionResult]:
        return self.get_agent_output(ENTITY_EXTRACTION)

    @property
    def validation(self) -> Optional[ValidationResult]:
        return self.get_agent_output(VALIDATION)

    # -----------------------------------------------------------------------
    # Accounting
    # -----------------------------------------------------------------------

    def get_total_tokens_used(self) -> int:
        with self._lock:
            return sum(r.tokens_used or 0 for r in self._outputs.values())

    def get_total_execution_time_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def get_execution_summary(self) -> ExecutionSummary:
        with self._lock:
            statuses = [r.status for r in self._outputs.values()]
        return ExecutionSummary(
            total_agents=len(statuses),
            completed=statuses.count(AgentStatus.COMPLETED),
            failed=statuses.count(AgentStatus.FAILED),
            pending=statuses.count(AgentStatus.PENDING),
            running=statuses.count(AgentStatus.RUNNING),
            total_tokens=self.get_total_tokens_used(),
            total_time_ms=self.get_total_execution_time_ms(),
        )

    def requires_human_review(self, critical_agents: set[str] | None = None) -> bool:
        """Whether a person should check this call before trusting the output."""
        validation = self.validation
        if validation and validation.requires_human_review:
            return True

        classification = self.classification
        if classification and classification.confidence.level == ConfidenceLevel.LOW:
            return True

        for name in critical_agents or {CLASSIFICATION.name}:
            result = self.get_agent_result(name)
            if result is not None and result.status == AgentStatus.FAILED:
                return True
        return False

    # -----------------------------------------------------------------------
    # Checkpointing
    # -----------------------------------------------------------------------

    def create_snapshot(self) -> ContextSnapshot:
        with self._lock:
            outputs = copy.deepcopy(self._outputs)
        return ContextSnapshot(call_id=self._metadata.call_id, outputs=outputs)

    def restore_from_snapshot(self, snapshot: ContextSnapshot):
        if snapshot.call_id != self._metadata.call_id:
            raise ValueError(
                f"Snapshot belongs to call {snapshot.call_id}, "
                f"not {self._metadata.call_id}"
            )
        outputs = copy.deepcopy(snapshot.outputs)
        with self._lock:
            self._outputs = outputs
        logger.info(
            f"[{self._metadata.call_id}] Restored {len(outputs)} agent outputs from snapshot"
        )
