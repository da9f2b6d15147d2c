"""Load details: lanes, equipment, freight and schedule."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from loadvoice.agents.base import Agent
from loadvoice.agents.classification import detect_multi_load
from loadvoice.agents.context import AgentContext
from loadvoice.agents.keys import CLASSIFICATION, LOAD_EXTRACTION, SPEAKER_IDENTIFICATION
from loadvoice.agents.models import (
    AgentDescriptor,
    ExtractedField,
    LoadDetails,
    LoadExtractionResult,
    Utterance,
)
from loadvoice.extraction.prompts import LOAD_TASK
from loadvoice.extraction.refine import field_value, merge_field, refine
from loadvoice.parser.lexicon import (
    DELIVERY_RE,
    DESTINATION_RE,
    MILES_RE,
    ORIGIN_RE,
    PALLETS_RE,
    PICKUP_RE,
    find_commodity,
    find_equipment,
    find_lanes,
    find_ordinals,
    find_place,
    find_schedule,
    find_special_requirements,
    find_weight,
    parse_number,
    resolve_day,
)

logger = logging.getLogger(__name__)

# Base confidence per evidence kind
LANE_CONFIDENCE = 0.85
LANE_WITH_STATE_CONFIDENCE = 0.9
PHRASE_PLACE_CONFIDENCE = 0.7
ATTRIBUTE_CONFIDENCE = 0.85
CONFLICT_PENALTY = 0.25

LOAD_FIELDS = [
    "origin", "destination", "equipment_type", "commodity", "weight_lbs",
    "pallet_count", "miles", "pickup", "delivery",
]
CORE_FIELDS = ["origin", "destination", "equipment_type"]
NUMERIC_FIELDS = {"weight_lbs": float, "pallet_count": int, "miles": float}


@dataclass
class _Candidate:
    value: Any
    base: float
    raw_text: str
    speaker: str


@dataclass
class _Segment:
    utterances: list[Utterance] = field(default_factory=list)
    lanes: set[tuple[str, str]] = field(default_factory=set)
    ordinals: set[str] = field(default_factory=set)


def split_segments(utterances: tuple[Utterance, ...] | list[Utterance], multi_load: bool) -> list[list[Utterance]]:
    """Group utterances by the load they talk about.

    A new segment starts when an utterance introduces a lane, or an ordinal
    marker, different from the one the current segment already has.
    """
    if not multi_load:
        return [list(utterances)]

    segments = [_Segment()]
    for u in utterances:
        current = segments[-1]
        lanes = {lane.key for lane in find_lanes(u.text)}
        ordinals = find_ordinals(u.text)
        new_lane = bool(lanes) and bool(current.lanes) and not lanes <= current.lanes
        new_ordinal = bool(ordinals) and bool(current.ordinals) and not ordinals <= current.ordinals
        if (new_lane or new_ordinal) and current.utterances:
            current = _Segment()
            segments.append(current)
        current.utterances.append(u)
        current.lanes |= lanes
        current.ordinals |= ordinals
    return [s.utterances for s in segments if s.utterances]


class LoadExtractionAgent(Agent[LoadExtractionResult]):
    """Extracts one LoadDetails per load discussed on the call."""

    key = LOAD_EXTRACTION
    descriptor = AgentDescriptor(
        name=LOAD_EXTRACTION.name,
        dependencies=frozenset({CLASSIFICATION.name}),
        optional_dependencies=frozenset({SPEAKER_IDENTIFICATION.name}),
        produces="LoadExtractionResult",
        description="Extracts lanes, equipment, commodity, weight and schedule",
    )
    retry_on_failure = True

    def execute(self, context: AgentContext) -> LoadExtractionResult:
        classification = context.classification
        multi_load = detect_multi_load(context.utterances) or bool(
            classification and classification.multi_load_call
        )

        loads = []
        for segment in split_segments(context.utterances, multi_load):
            details = self._extract_load(segment, f"{context.metadata.call_id}-L{len(loads) + 1}")
            if details is not None:
                loads.append(details)

        tokens = None
        if self.llm_client is not None:
            loads, tokens = self._refine(context, loads)
        for load in loads:
            self._resolve_dates(load, context.metadata.call_date)

        result = LoadExtractionResult(
            loads=loads,
            multi_load_call=len(loads) > 1 or multi_load,
            confidence=self._overall_confidence(loads),
            tokens_used=tokens,
        )
        logger.info(f"[{context.metadata.call_id}] Extracted {len(loads)} load(s)")
        return result

    def _extract_load(self, utterances: list[Utterance], load_id: str) -> Optional[LoadDetails]:
        candidates: dict[str, list[_Candidate]] = {name: [] for name in LOAD_FIELDS}
        requirements: list[str] = []

        for u in utterances:
            text = u.text
            speaker = u.speaker_label
            for lane in find_lanes(text):
                base = LANE_WITH_STATE_CONFIDENCE if lane.origin_state else LANE_CONFIDENCE
                origin = f"{lane.origin}, {lane.origin_state}" if lane.origin_state else lane.origin
                dest = (
                    f"{lane.destination}, {lane.destination_state}"
                    if lane.destination_state else lane.destination
                )
                candidates["origin"].append(_Candidate(origin, base, lane.text, speaker))
                candidates["destination"].append(_Candidate(dest, base, lane.text, speaker))

            for name, pattern in (("origin", ORIGIN_RE), ("destination", DESTINATION_RE)):
                found = find_place(pattern, text)
                if found and not candidates[name]:
                    candidates[name].append(_Candidate(found[0], PHRASE_PLACE_CONFIDENCE, found[1], speaker))

            matches = {
                "equipment_type": find_equipment(text),
                "commodity": find_commodity(text),
                "weight_lbs": find_weight(text),
                "pickup": find_schedule(PICKUP_RE, text),
                "delivery": find_schedule(DELIVERY_RE, text),
            }
            pallets = PALLETS_RE.search(text)
            if pallets:
                matches["pallet_count"] = (int(pallets.group(1)), pallets.group(0))
            miles = MILES_RE.search(text)
            if miles:
                matches["miles"] = (parse_number(miles.group(1)), miles.group(0))

            for name, found in matches.items():
                if found:
                    candidates[name].append(_Candidate(found[0], ATTRIBUTE_CONFIDENCE, found[1], speaker))

            for req in find_special_requirements(text):
                if req not in requirements:
                    requirements.append(req)

        fields = {name: self._resolve(c) for name, c in candidates.items()}
        if not any(fields.values()) and not requirements:
            return None
        return LoadDetails(load_id=load_id, special_requirements=requirements, **fields)

    def _resolve(self, candidates: list[_Candidate]) -> Optional[ExtractedField]:
        """Pick the last-mentioned value; disagreement lowers confidence."""
        if not candidates:
            return None
        chosen = candidates[-1]
        distinct = {str(c.value).lower() for c in candidates}
        base = chosen.base
        factors = [f"matched '{chosen.raw_text}'"]
        if len(distinct) > 1:
            base -= CONFLICT_PENALTY
            factors.append(f"{len(distinct)} conflicting values")
        elif len(candidates) > 1:
            base = min(1.0, base + 0.05)
            factors.append("repeated")
        return ExtractedField(
            value=chosen.value,
            confidence=self.score(base, factors),
            raw_text=chosen.raw_text,
            source_speaker=chosen.speaker,
        )

    @staticmethod
    def _resolve_dates(load: LoadDetails, call_date: date):
        for name in ("pickup", "delivery"):
            spoken = getattr(load, name)
            if spoken is not None and isinstance(spoken.value, str):
                setattr(load, f"{name}_date", resolve_day(spoken.value, call_date))

    def _overall_confidence(self, loads: list[LoadDetails]):
        if not loads:
            return self.score(0.0, ["no loads found"])
        per_load = []
        for load in loads:
            present = [getattr(load, name) for name in LOAD_FIELDS if getattr(load, name)]
            mean = sum(f.confidence.value for f in present) / len(present) if present else 0.0
            coverage = sum(1 for name in CORE_FIELDS if getattr(load, name)) / len(CORE_FIELDS)
            per_load.append(mean * (0.5 + 0.5 * coverage))
        return self.score(sum(per_load) / len(per_load), [f"{len(loads)} load(s)"])

    def _refine(self, context: AgentContext, loads: list[LoadDetails]) -> tuple[list[LoadDetails], int]:
        draft = {
            "loads": [{name: field_value(getattr(load, name)) for name in LOAD_FIELDS} for load in loads]
        }
        data, tokens = refine(self.llm_client, context, LOAD_TASK, draft)
        refined = []
        for i, item in enumerate(data.get("loads") or []):
            if not isinstance(item, dict):
                continue
            base = loads[i] if i < len(loads) else LoadDetails(
                load_id=f"{context.metadata.call_id}-L{i + 1}"
            )
            for name in LOAD_FIELDS:
                setattr(base, name, merge_field(
                    getattr(base, name), item.get(name), self.config.thresholds, NUMERIC_FIELDS.get(name)
                ))
            refined.append(base)
        return refined or loads, tokens
