"""Cross-checks extraction outputs and flags calls that need human review."""

from __future__ import annotations

import logging

from loadvoice.agents.base import Agent
from loadvoice.agents.context import AgentContext
from loadvoice.agents.keys import (
    CLASSIFICATION,
    ENTITY_EXTRACTION,
    LOAD_EXTRACTION,
    RATE_NEGOTIATION,
    SPEAKER_IDENTIFICATION,
    VALIDATION,
)
from loadvoice.agents.models import (
    AgentDescriptor,
    CallType,
    ConfidenceLevel,
    ValidationResult,
    ValidationWarning,
)
from loadvoice.config import RATE_PER_MILE_MAX, RATE_PER_MILE_MIN

logger = logging.getLogger(__name__)

CRITICAL = "critical"
WARNING = "warning"
INFO = "info"

SEVERITY_PENALTY = {CRITICAL: 0.3, WARNING: 0.1, INFO: 0.0}

# Call types whose value depends on at least one extracted load
LOAD_CALL_TYPES = {CallType.CARRIER_QUOTE, CallType.NEW_BOOKING}


class ValidationAgent(Agent[ValidationResult]):
    key = VALIDATION
    descriptor = AgentDescriptor(
        name=VALIDATION.name,
        dependencies=frozenset({CLASSIFICATION.name}),
        optional_dependencies=frozenset({
            SPEAKER_IDENTIFICATION.name,
            LOAD_EXTRACTION.name,
            RATE_NEGOTIATION.name,
            ENTITY_EXTRACTION.name,
        }),
        produces="ValidationResult",
        description="Flags inconsistent or incomplete extractions for review",
    )

    def execute(self, context: AgentContext) -> ValidationResult:
        warnings: list[ValidationWarning] = []

        def warn(severity: str, field: str, message: str):
            warnings.append(ValidationWarning(severity, field, message))

        classification = context.classification
        call_type = classification.primary_type
        if classification.confidence.level == ConfidenceLevel.LOW:
            warn(CRITICAL, "classification", f"Low-confidence {call_type.value} classification")
        elif not classification.is_routable:
            warn(WARNING, "classification", "Classification below routing threshold")

        speakers = context.speakers
        if speakers is None:
            warn(CRITICAL, "speakers", "Speaker roles unavailable")
        elif speakers.counterpart_speaker is None:
            warn(WARNING, "speakers", "No counterpart speaker identified")
        elif speakers.trusted_role(speakers.counterpart_speaker) is None:
            role = speakers.role_of(speakers.counterpart_speaker).value
            warn(WARNING, "speakers", f"Counterpart {role} role is not high confidence")

        loads = context.loads
        if context.has_agent_completed(LOAD_EXTRACTION):
            if not loads.loads and call_type in LOAD_CALL_TYPES:
                warn(CRITICAL, "loads", "No load details extracted")
            for load in loads.loads:
                if load.origin is None:
                    warn(WARNING, "loads", f"Load {load.load_id} has no origin")
                if load.destination is None:
                    warn(WARNING, "loads", f"Load {load.load_id} has no destination")
                if load.pickup_date and load.delivery_date and load.delivery_date < load.pickup_date:
                    warn(WARNING, "loads", f"Load {load.load_id} delivers before it picks up")
        elif context.get_agent_result(LOAD_EXTRACTION) is not None:
            warn(CRITICAL, "loads", "Load extraction failed")

        rates = context.rates
        if call_type == CallType.CARRIER_QUOTE:
            if rates is None:
                warn(CRITICAL, "rate", "Rate negotiation unavailable")
            elif rates.status == "no_rate":
                warn(CRITICAL, "rate", "Carrier quote has no rate")
            elif rates.status != "agreed":
                warn(WARNING, "rate", f"Carrier quote rate is {rates.status}")
        if rates is not None and rates.agreed_rate is not None:
            self._check_rate(rates, loads, warn)

        if context.get_agent_result(ENTITY_EXTRACTION) is not None and context.entities is None:
            warn(WARNING, "entities", "Entity extraction failed")

        critical = [w for w in warnings if w.severity == CRITICAL]
        penalty = sum(SEVERITY_PENALTY[w.severity] for w in warnings)
        result = ValidationResult(
            is_valid=not critical,
            warnings=warnings,
            requires_human_review=bool(critical),
            confidence=self.score(1.0 - penalty, [f"{len(warnings)} warning(s)"]),
            review_reasons=[w.message for w in critical],
        )
        logger.info(
            f"[{context.metadata.call_id}] Validation: {len(warnings)} warning(s), "
            f"review={'yes' if result.requires_human_review else 'no'}"
        )
        return result

    @staticmethod
    def _check_rate(rates, loads, warn):
        amount = rates.agreed_rate.value
        if rates.rate_type == "per_mile":
            if not RATE_PER_MILE_MIN <= amount <= RATE_PER_MILE_MAX:
                warn(CRITICAL, "rate", f"Per-mile rate ${amount:.2f} outside plausible range")
            return

        if loads is None or len(loads.loads) != 1 or loads.loads[0].miles is None:
            return
        miles = loads.loads[0].miles.value
        if miles <= 0:
            return
        per_mile = amount / miles
        if not RATE_PER_MILE_MIN <= per_mile <= RATE_PER_MILE_MAX:
            warn(WARNING, "rate", f"Flat rate works out to ${per_mile:.2f}/mile")
