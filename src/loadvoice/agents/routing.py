"""Execution plans keyed by detected call type."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from loadvoice.agents.errors import PlanValidationError
from loadvoice.agents.keys import (
    CLASSIFICATION,
    ENTITY_EXTRACTION,
    LOAD_EXTRACTION,
    RATE_NEGOTIATION,
    SPEAKER_IDENTIFICATION,
    VALIDATION,
)
from loadvoice.agents.models import CallType, ExecutionPlan, Phase
from loadvoice.agents.registry import AgentRegistry

logger = logging.getLogger(__name__)

FOUNDATION_AGENTS = [SPEAKER_IDENTIFICATION.name]

# Extraction phase per call type; None means the plan ends after foundation.
EXTRACTION_AGENTS: dict[CallType, list[str] | None] = {
    CallType.CARRIER_QUOTE: [LOAD_EXTRACTION.name, RATE_NEGOTIATION.name, ENTITY_EXTRACTION.name],
    CallType.NEW_BOOKING: [LOAD_EXTRACTION.name, ENTITY_EXTRACTION.name],
    CallType.CHECK_CALL: [LOAD_EXTRACTION.name, ENTITY_EXTRACTION.name],
    CallType.OTHER: [ENTITY_EXTRACTION.name],
    CallType.WRONG_NUMBER: None,
}

# Extra extraction agents switched on by a classification sub-type
SUBTYPE_AGENTS: dict[CallType, dict[str, list[str]]] = {
    CallType.NEW_BOOKING: {"rate_discussed": [RATE_NEGOTIATION.name]},
}

POST_PROCESSING_TYPES = {CallType.CARRIER_QUOTE, CallType.NEW_BOOKING, CallType.CHECK_CALL}

CRITICAL_AGENTS: dict[CallType, set[str]] = {
    CallType.CARRIER_QUOTE: {CLASSIFICATION.name, SPEAKER_IDENTIFICATION.name},
    CallType.NEW_BOOKING: {CLASSIFICATION.name, SPEAKER_IDENTIFICATION.name},
}


class RoutingStrategy:
    """Maps a call type to its ordered phases of agents.

    Classification runs before any plan exists, so it never appears in a
    plan; plans may depend on it.
    """

    def __init__(self, registry: AgentRegistry):
        self.registry = registry

    def build_execution_plan(
        self, call_type: CallType | str, sub_types: Iterable[str] = ()
    ) -> ExecutionPlan:
        call_type = CallType(call_type)
        sub_types = set(sub_types)

        phases = [("foundation", list(FOUNDATION_AGENTS))]

        extraction = EXTRACTION_AGENTS[call_type]
        if extraction is not None:
            names = list(extraction)
            for sub_type, extra in SUBTYPE_AGENTS.get(call_type, {}).items():
                if sub_type in sub_types:
                    names.extend(n for n in extra if n not in names)
            phases.append((f"{call_type.value}_extraction", names))

            if call_type in POST_PROCESSING_TYPES:
                phases.append(("post_processing", [VALIDATION.name]))

        plan = ExecutionPlan(
            call_type=call_type,
            phases=tuple(
                Phase(name=name, agents=tuple(self._descriptor(n) for n in agents))
                for name, agents in phases
            ),
        )
        self._validate(plan)
        return plan

    def get_critical_agents(self, call_type: CallType | str) -> set[str]:
        return set(CRITICAL_AGENTS.get(CallType(call_type), {CLASSIFICATION.name}))

    def _descriptor(self, name: str):
        descriptor = self.registry.get(name)
        if descriptor is None:
            raise PlanValidationError(f"Agent {name} is not registered")
        return descriptor

    def _validate(self, plan: ExecutionPlan):
        """Check that every dependency is satisfied by an earlier phase."""
        available = {CLASSIFICATION.name}
        for phase in plan.phases:
            in_phase = set(phase.agent_names)
            for descriptor in phase.agents:
                for dep in descriptor.dependencies | descriptor.optional_dependencies:
                    if dep in in_phase:
                        raise PlanValidationError(
                            f"{descriptor.name} depends on {dep} in the same phase "
                            f"({phase.name})"
                        )
                missing = descriptor.dependencies - available
                if missing:
                    raise PlanValidationError(
                        f"{descriptor.name} in phase {phase.name} depends on "
                        f"{', '.join(sorted(missing))}, which no earlier phase runs"
                    )
            available |= in_phase
