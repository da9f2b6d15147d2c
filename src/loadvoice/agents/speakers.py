"""Speaker role identification conditioned on the detected call type."""

from __future__ import annotations

import logging
import re
from typing import Optional

from loadvoice.agents.base import Agent, utterances_by_speaker
from loadvoice.agents.context import AgentContext
from loadvoice.agents.keys import CLASSIFICATION, SPEAKER_IDENTIFICATION
from loadvoice.agents.models import (
    AgentDescriptor,
    CallType,
    ConfidenceScore,
    SpeakerAssignment,
    SpeakerRole,
    SpeakerRoleMap,
)
from loadvoice.config import SPEAKER_DEFAULT_BROKER_PRIOR, SPEAKER_MIN_TURN_WORDS
from loadvoice.parser.lexicon import (
    EQUIPMENT_REQUEST_RE,
    find_commodity,
    find_lanes,
    find_weight,
)

logger = logging.getLogger(__name__)

BROKER = SpeakerRole.BROKER
CARRIER = SpeakerRole.CARRIER
SHIPPER = SpeakerRole.SHIPPER

Signal = tuple[re.Pattern, SpeakerRole, float, str]


def _signal(pattern: str, role: SpeakerRole, weight: float, label: str) -> Signal:
    return (re.compile(pattern), role, weight, label)


# Apply to every call type that has parties to identify
GENERIC_SIGNALS: list[Signal] = [
    _signal(r"\bwhat(?:'s| is) your (?:rate|best rate|mc|mc number|dot)\b", BROKER, 2.0, "asks for rate or authority"),
    _signal(r"\bsend (?:you |over )?(?:the )?rate con", BROKER, 2.0, "sends rate confirmation"),
    _signal(r"\b(?:go|come) up to\b", BROKER, 1.5, "raises offer"),
    _signal(r"\bbest i can do\b", BROKER, 1.0, "caps offer"),
    _signal(r"\btrucks? (?:available|open|empty)\b", CARRIER, 3.0, "offers truck capacity"),
    _signal(r"\bi(?:'ve| have)(?: got)? (?:a |two |three )?trucks?\b", CARRIER, 3.0, "has trucks"),
    _signal(r"\bmy (?:driver|drivers|truck|trucks)\b", CARRIER, 2.0, "refers to own driver or truck"),
    _signal(r"\bmc\s*(?:number\s*)?(?:is\s*)?#?\s*\d{5,}", CARRIER, 2.0, "states MC number"),
    _signal(r"\b(?:i'd need|i need at least|my rate is|i can haul)\b", CARRIER, 2.0, "states own rate"),
    _signal(r"\bempty (?:in|near|at)\b", CARRIER, 2.0, "reports empty location"),
    _signal(r"\bcome down to\b", CARRIER, 1.5, "lowers ask"),
    _signal(r"\b(?:i|we) need to (?:ship|move)\b|\bneed (?:\w+ )?(?:shipped|moved)\b", SHIPPER, 3.0, "needs freight moved"),
    _signal(r"\bour (?:warehouse|facility|plant|dock|customer|product)\b", SHIPPER, 2.0, "refers to own facility"),
    _signal(r"\b(?:i|we) have (?:\w+ )?(?:loads|shipments|pallets)\b", SHIPPER, 2.0, "has freight"),
    _signal(r"\bneeds to (?:deliver|be there|arrive)\b", SHIPPER, 1.5, "sets delivery requirement"),
]

SIGNALS_BY_TYPE: dict[CallType, list[Signal]] = {
    CallType.CARRIER_QUOTE: [
        _signal(r"\bi(?:'ve| have)(?: got)? a load\b", BROKER, 2.0, "offers a load"),
        _signal(r"\bi can (?:offer|do)\b", BROKER, 0.5, "makes offer"),
        _signal(r"\b(?:i'll|we'll) take (?:it|that)\b|\bbook it\b", CARRIER, 1.5, "accepts the load"),
        _signal(r"\bcheck with (?:my|the) driver\b", CARRIER, 1.0, "defers to driver"),
    ],
    CallType.NEW_BOOKING: [
        _signal(r"\b(?:let me|i can|i'll) (?:quote|get you a quote)\b", BROKER, 2.0, "quotes the shipper"),
        _signal(
            r"\bwhat(?:'s| is) the (?:commodity|weight|pickup|delivery)\b|\bwhat are the details\b"
            r"|\bwhere(?:'s| is) it (?:going|picking up)\b",
            BROKER, 1.5, "asks for shipment details",
        ),
        _signal(r"\b(?:first|second|third)(?: one)? is\b", SHIPPER, 1.0, "describes loads"),
        _signal(r"\b\d+ pallets\b", SHIPPER, 1.5, "describes freight"),
        _signal(EQUIPMENT_REQUEST_RE.pattern, SHIPPER, 2.0, "asks for a truck"),
    ],
    CallType.CHECK_CALL: [
        _signal(r"\bwhere(?:'s| is) (?:the|your) (?:driver|truck)\b|\bwhat(?:'s| is) (?:the|your) eta\b", BROKER, 2.0, "asks for status"),
        _signal(r"\b(?:checking|check) (?:on|in on)\b", BROKER, 1.5, "checking on load"),
        _signal(r"\b(?:we're|he's|she's|i'm|driver is) (?:about )?\d+ miles out\b", CARRIER, 2.0, "reports position"),
        _signal(r"\b(?:got|we're|he's|she's|we are) (?:loaded|delivered|unloaded)\b", CARRIER, 2.0, "reports load status"),
    ],
    CallType.OTHER: [],
}

# Describing the freight marks the party that owns it. Each kind is credited
# once, to whoever states it first.
SHIPMENT_FEATURES = [
    ("commodity", find_commodity, 1.5, "describes commodity"),
    ("weight", find_weight, 1.5, "states weight"),
    ("lane", find_lanes, 1.0, "states lane"),
]
SHIPMENT_FEATURE_CALL_TYPES = {CallType.NEW_BOOKING}

# Role expected opposite the broker; OTHER picks whichever scores higher
COUNTERPART_ROLE: dict[CallType, Optional[SpeakerRole]] = {
    CallType.CARRIER_QUOTE: CARRIER,
    CallType.CHECK_CALL: CARRIER,
    CallType.NEW_BOOKING: SHIPPER,
    CallType.OTHER: None,
}


class SpeakerIdentificationAgent(Agent[SpeakerRoleMap]):
    """Assigns broker, carrier or shipper to each diarized speaker label.

    Signals are weighted phrases; which table applies depends on the call
    type, so the same words can point at different roles in different
    calls. The strongest counterpart speaker takes the counterpart role and
    the rest fall back to broker unless another role clearly outscores it.
    """

    key = SPEAKER_IDENTIFICATION
    descriptor = AgentDescriptor(
        name=SPEAKER_IDENTIFICATION.name,
        dependencies=frozenset({CLASSIFICATION.name}),
        produces="SpeakerRoleMap",
        description="Maps speaker labels to broker, carrier or shipper",
    )

    def execute(self, context: AgentContext) -> SpeakerRoleMap:
        utterances = context.utterances
        turns = utterances_by_speaker(utterances)
        classification = context.classification

        if classification is None:
            return self._undetermined(turns, "classification unavailable")
        call_type = classification.primary_type
        if call_type == CallType.WRONG_NUMBER:
            return self._undetermined(turns, "wrong number call has no business parties")

        meaningful = [u for u in utterances if len(u.text.split()) >= SPEAKER_MIN_TURN_WORDS]
        if len(meaningful) < 2:
            return self._undetermined(turns, "too few meaningful turns")

        signals = GENERIC_SIGNALS + SIGNALS_BY_TYPE.get(call_type, [])
        scores: dict[str, dict[SpeakerRole, float]] = {
            label: {BROKER: 0.0, CARRIER: 0.0, SHIPPER: 0.0} for label in turns
        }
        evidence: dict[str, list[str]] = {label: [] for label in turns}

        def credit(speaker: str, role: SpeakerRole, weight: float, label: str):
            scores[speaker][role] += weight
            if label not in evidence[speaker]:
                evidence[speaker].append(label)

        stated: set[str] = set()
        for u in meaningful:
            text = u.text.lower()
            for pattern, role, weight, label in signals:
                if pattern.search(text):
                    credit(u.speaker_label, role, weight, label)
            if call_type in SHIPMENT_FEATURE_CALL_TYPES:
                for kind, finder, weight, label in SHIPMENT_FEATURES:
                    if kind not in stated and finder(u.text):
                        stated.add(kind)
                        credit(u.speaker_label, SHIPPER, weight, label)

        counterpart_role = COUNTERPART_ROLE.get(call_type)
        if counterpart_role is None:
            carrier_total = sum(s[CARRIER] for s in scores.values())
            shipper_total = sum(s[SHIPPER] for s in scores.values())
            if carrier_total or shipper_total:
                counterpart_role = CARRIER if carrier_total >= shipper_total else SHIPPER

        counterpart = None
        if counterpart_role is not None:
            candidates = [label for label in turns if scores[label][counterpart_role] > 0]
            if candidates:
                counterpart = max(
                    candidates,
                    key=lambda l: scores[l][counterpart_role] - scores[l][BROKER],
                )

        speakers: dict[str, SpeakerAssignment] = {}
        for label in turns:
            role_scores = dict(scores[label])
            if label == counterpart:
                role = counterpart_role
            elif counterpart is None and not any(role_scores.values()):
                speakers[label] = SpeakerAssignment(
                    role=SpeakerRole.UNKNOWN,
                    confidence=ConfidenceScore.low("no role signals"),
                    turns=len(turns[label]),
                )
                continue
            else:
                role_scores[BROKER] += SPEAKER_DEFAULT_BROKER_PRIOR
                best_other = max((CARRIER, SHIPPER), key=lambda r: role_scores[r])
                role = best_other if role_scores[best_other] > role_scores[BROKER] else BROKER
                if role == BROKER and not evidence[label]:
                    evidence[label].append("default broker")

            winner = role_scores[role]
            runner_up = max(s for r, s in role_scores.items() if r != role)
            speakers[label] = SpeakerAssignment(
                role=role,
                confidence=self._confidence(winner, runner_up, evidence[label]),
                signals=evidence[label],
                turns=len(turns[label]),
            )

        brokers = [label for label, a in speakers.items() if a.role == BROKER]
        broker = max(brokers, key=lambda l: speakers[l].confidence.value, default=None)
        overall = sum(a.confidence.value for a in speakers.values()) / len(speakers)

        result = SpeakerRoleMap(
            speakers=speakers,
            confidence=self.score(overall, [f"{len(speakers)} speakers"]),
            broker_speaker=broker,
            counterpart_speaker=counterpart,
        )
        if counterpart is None:
            result.processing_notes.append("No counterpart speaker identified")

        logger.info(
            f"[{context.metadata.call_id}] Speakers: "
            + ", ".join(f"{l}={a.role.value}" for l, a in speakers.items())
        )
        return result

    def _confidence(self, winner: float, runner_up: float, factors: list[str]) -> ConfidenceScore:
        """Margin over the runner-up role, scaled by how much evidence there is."""
        if winner + runner_up <= 0:
            return self.score(0.0, factors)
        margin = (winner - runner_up) / (winner + runner_up)
        strength = min(1.0, winner / self.config.speaker_saturation)
        return self.score(margin * strength, factors)

    def _undetermined(self, turns: dict[str, list[int]], reason: str) -> SpeakerRoleMap:
        speakers = {
            label: SpeakerAssignment(
                role=SpeakerRole.UNKNOWN,
                confidence=ConfidenceScore.low(reason),
                turns=len(indices),
            )
            for label, indices in turns.items()
        }
        return SpeakerRoleMap(
            speakers=speakers,
            confidence=ConfidenceScore.low(reason),
            processing_notes=[reason.capitalize()],
        )
