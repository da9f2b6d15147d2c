"""Call-type classification from phrase and structure indicators."""

from __future__ import annotations

import logging
import re

from loadvoice.agents.base import Agent
from loadvoice.agents.context import AgentContext
from loadvoice.agents.keys import CLASSIFICATION
from loadvoice.agents.models import (
    AgentDescriptor,
    CallType,
    ClassificationResult,
    Utterance,
)
from loadvoice.parser.lexicon import (
    PALLETS_RE,
    find_commodity,
    find_lanes,
    find_load_count,
    find_ordinals,
    find_weight,
    linehaul_amounts,
)

logger = logging.getLogger(__name__)

CQ = CallType.CARRIER_QUOTE
NB = CallType.NEW_BOOKING
CC = CallType.CHECK_CALL
WN = CallType.WRONG_NUMBER

# (pattern, weights per call type). The matched text is recorded as the indicator.
INDICATORS: list[tuple[re.Pattern, dict[CallType, float]]] = [
    # Carrier offering capacity
    (re.compile(r"\btrucks?\s+(?:available|open|empty)\b"), {CQ: 3.0}),
    (re.compile(r"\bi(?:'ve| have)(?: got)?\s+(?:a\s+|two\s+|three\s+)?trucks?\b"), {CQ: 3.0}),
    (re.compile(r"\b(?:empty|unloading)\s+(?:in|near|at)\b"), {CQ: 2.0}),
    (re.compile(r"\bwhat(?:'s| is)\s+(?:your|the)\s+rate\b"), {CQ: 2.0, NB: 0.5}),
    (re.compile(r"\bmc\s*(?:number|#|\d)"), {CQ: 2.0}),
    (re.compile(r"\ball[\s-]in\b"), {CQ: 1.0}),
    (re.compile(r"\bbest i can do\b"), {CQ: 1.5}),
    (re.compile(r"\bmy driver\b"), {CQ: 1.5, CC: 1.0}),
    (re.compile(r"\brate\s*con(?:firmation)?\b"), {CQ: 1.5}),
    (re.compile(r"\bwhat(?:'s| is)\s+it\s+pay(?:ing)?\b"), {CQ: 1.5}),
    (re.compile(r"\bi(?:'ve| have)\s+got\s+a\s+load\b"), {CQ: 1.5, NB: 1.0}),
    (re.compile(r"\bdeadhead\b"), {CQ: 1.0}),
    (re.compile(r"\bthat lane\b"), {CQ: 1.0}),
    # Shipper booking freight
    (re.compile(r"\bneed (?:to ship|to move|something shipped|a quote)\b"), {NB: 3.0}),
    (re.compile(r"\blooking to (?:ship|move)\b"), {NB: 3.0}),
    (re.compile(r"\bneed (?:a |an )?(?:truck|carrier|reefer|flatbed|van) (?:for|to)\b"), {NB: 2.0}),
    (re.compile(r"\bloads? (?:i|we) need (?:moved|shipped|covered)\b"), {NB: 3.0}),
    (re.compile(r"\bour (?:warehouse|facility|plant|dock|shipping dock|distribution center)\b"), {NB: 2.0}),
    (re.compile(r"\b(?:can you|could you) (?:quote|give me a quote|price)\b"), {NB: 2.0}),
    (re.compile(r"\bbook (?:a|this|the) (?:load|shipment)\b"), {NB: 2.0}),
    (re.compile(r"\b(?:i can|let me) quote\b"), {NB: 1.5}),
    (re.compile(r"\bcommodit(?:y|ies)\b"), {NB: 1.0, CQ: 0.5}),
    (re.compile(r"\b\d+\s+pallets?\b|\bpallets? of\b"), {NB: 1.5, CQ: 0.5}),
    # Status check on a moving load
    (re.compile(r"\b(?:checking|check) (?:on|in on)\b"), {CC: 3.0}),
    (re.compile(r"\bwhere(?:'s| is) (?:the|my|your) (?:driver|truck|load|shipment)\b"), {CC: 3.0}),
    (re.compile(r"\beta\b"), {CC: 2.0}),
    (re.compile(r"\bstatus(?: update)?\b"), {CC: 2.0}),
    (re.compile(r"\b(?:been|got|was) delivered\b|\bdelivered (?:yet|already)\b"), {CC: 2.0}),
    (re.compile(r"\b(?:loaded|picked up) yet\b"), {CC: 2.0}),
    (re.compile(r"\b(?:on schedule|running late|on time)\b"), {CC: 1.5}),
    (re.compile(r"\b(?:pod|proof of delivery)\b"), {CC: 1.5}),
    # Misdial
    (re.compile(r"\bwrong number\b"), {WN: 5.0}),
    (re.compile(r"\bno ?(?:one|body) (?:here )?by that name\b"), {WN: 3.0}),
    (re.compile(r"\b(?:must have|i) (?:dialed|misdialed)\b"), {WN: 3.0}),
    (re.compile(r"\b(?:pizza|restaurant|pharmacy|dentist|salon)\b"), {WN: 2.0}),
    (re.compile(r"\bsorry (?:to bother|about that|for the confusion)\b"), {WN: 1.0}),
]

SUB_TYPE_PATTERNS = {
    "urgent": re.compile(r"\b(?:asap|urgent|hot load|right away|rush)\b"),
    "team_required": re.compile(r"\bteam (?:drivers?|run|service)\b"),
    "partial": re.compile(r"\b(?:ltl|partial(?: load)?)\b"),
}
CONTINUATION_RE = re.compile(
    r"\b(?:calling (?:you )?back|following up|we talked|we discussed|"
    r"talked (?:about )?(?:earlier|yesterday)|same rate as|like last time)\b"
)

# Structural evidence weights
COUNTER_OFFER_WEIGHTS = {CQ: 2.5}
# A quoted price happens on both kinds of call
RATE_MENTION_WEIGHTS = {CQ: 0.5, NB: 0.5}
SHIPMENT_DESCRIPTION_WEIGHTS = {NB: 3.0}
# Any two of commodity, weight and lane describe a shipment
SHIPMENT_FEATURES_REQUIRED = 2
MULTI_LOAD_WEIGHTS = {NB: 1.0}

# Tie-break order when two call types score the same
TYPE_PRIORITY = [CQ, NB, CC, WN, CallType.OTHER]

NO_EVIDENCE_CONFIDENCE = 0.3


def detect_multi_load(utterances: list[Utterance] | tuple[Utterance, ...]) -> bool:
    """Several shipments discussed: ordinal markers, distinct lanes, or a stated count."""
    ordinals: set[str] = set()
    lanes: set[tuple[str, str]] = set()
    count = 0
    for u in utterances:
        ordinals |= find_ordinals(u.text)
        lanes |= {lane.key for lane in find_lanes(u.text)}
        count = max(count, find_load_count(u.text))
    return len(ordinals) >= 2 or len(lanes) >= 2 or count >= 2


class ClassificationAgent(Agent[ClassificationResult]):
    """Decides what kind of call this is so the coordinator can route it."""

    key = CLASSIFICATION
    descriptor = AgentDescriptor(
        name=CLASSIFICATION.name,
        dependencies=frozenset(),
        produces="ClassificationResult",
        description="Detects call type, sub-types and multi-load calls",
    )
    retry_on_failure = True

    def execute(self, context: AgentContext) -> ClassificationResult:
        utterances = context.utterances
        if not utterances:
            return self._fallback("no utterances")

        scores: dict[CallType, float] = {t: 0.0 for t in TYPE_PRIORITY}
        indicators: list[str] = []

        def add(label: str, weights: dict[CallType, float]):
            for call_type, weight in weights.items():
                scores[call_type] += weight
            if label not in indicators:
                indicators.append(label)

        for u in utterances:
            text = u.text.lower()
            for pattern, weights in INDICATORS:
                for m in pattern.finditer(text):
                    add(m.group(0), weights)

        rate_speakers: dict[str, set[float]] = {}
        described: set[str] = set()
        for u in utterances:
            for mention in linehaul_amounts(u.text):
                rate_speakers.setdefault(u.speaker_label, set()).add(mention.amount)
            if find_commodity(u.text) or PALLETS_RE.search(u.text):
                described.add("commodity")
            if find_weight(u.text):
                described.add("weight")
            if find_lanes(u.text):
                described.add("lane")

        all_amounts = set().union(*rate_speakers.values()) if rate_speakers else set()
        if all_amounts:
            add("rate mentioned", RATE_MENTION_WEIGHTS)
        if len(rate_speakers) >= 2 and len(all_amounts) >= 2:
            add("counter-offer exchange", COUNTER_OFFER_WEIGHTS)
        if len(described) >= SHIPMENT_FEATURES_REQUIRED:
            add("shipment description", SHIPMENT_DESCRIPTION_WEIGHTS)

        multi_load = detect_multi_load(utterances)
        if multi_load:
            add("multiple loads", MULTI_LOAD_WEIGHTS)

        total = sum(scores.values())
        if total == 0:
            return self._fallback("no call-type indicators matched")

        primary = max(TYPE_PRIORITY, key=lambda t: (scores[t], -TYPE_PRIORITY.index(t)))
        top = scores[primary]
        share = top / total
        evidence = min(1.0, top / self.config.classification_saturation)
        confidence = self.score(
            share * evidence,
            [f"{primary.value} score {top:g} of {total:g}", f"{len(indicators)} indicators"],
        )

        full_text = " ".join(u.text.lower() for u in utterances)
        continuation = bool(CONTINUATION_RE.search(full_text))
        sub_types = {name for name, pattern in SUB_TYPE_PATTERNS.items() if pattern.search(full_text)}
        if multi_load:
            sub_types.add("multi_load")
        if all_amounts:
            sub_types.add("rate_discussed")
        if continuation:
            sub_types.add("continuation")

        result = ClassificationResult(
            primary_type=primary,
            sub_types=sub_types,
            confidence=confidence,
            indicators=indicators,
            multi_load_call=multi_load,
            continuation_call=continuation,
            scores={t: round(s, 2) for t, s in scores.items() if s > 0},
            routing_threshold=self.config.routing_threshold,
        )
        if not result.is_routable:
            result.sub_types.add("low_confidence")
            result.processing_notes.append(
                f"Confidence {confidence.value:.2f} below routing threshold "
                f"{self.config.routing_threshold:.2f}; routed as {primary.value}"
            )

        logger.info(
            f"[{context.metadata.call_id}] Classified as {primary.value} "
            f"({confidence.value:.2f}, {confidence.level.value})"
        )
        return result

    def _fallback(self, reason: str) -> ClassificationResult:
        return ClassificationResult(
            primary_type=CallType.OTHER,
            sub_types={"low_confidence"},
            confidence=self.score(NO_EVIDENCE_CONFIDENCE, [reason]),
            indicators=[],
            multi_load_call=False,
            processing_notes=[reason.capitalize()],
            routing_threshold=self.config.routing_threshold,
        )
