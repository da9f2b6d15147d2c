"""Typed identifiers for every agent in the pipeline.

Each key binds an agent name to the payload type it produces, so
``context.get_agent_output(CLASSIFICATION)`` is known to return a
``ClassificationResult`` (or ``None``).
"""

from __future__ import annotations

from typing import Generic, TypeVar

from loadvoice.agents.models import (
    ClassificationResult,
    EntityExtractionResult,
    LoadExtractionResult,
    RateNegotiationResult,
    SpeakerRoleMap,
    ValidationResult,
)

T = TypeVar("T")


class AgentKey(Generic[T]):
    __slots__ = ("name", "output_type")

    def __init__(self, name: str, output_type: type[T]):
        self.name = name
        self.output_type = output_type

    def __repr__(self) -> str:
        return f"AgentKey({self.name!r}, {self.output_type.__name__})"

    def __eq__(self, other) -> bool:
        return isinstance(other, AgentKey) and other.name == self.name

    def __hash__(self) -> int:
        return hash(self.name)


CLASSIFICATION = AgentKey("classification", ClassificationResult)
SPEAKER_IDENTIFICATION = AgentKey("speaker_identification", SpeakerRoleMap)
LOAD_EXTRACTION = AgentKey("load_extraction", LoadExtractionResult)
RATE_NEGOTIATION = AgentKey("rate_negotiation", RateNegotiationResult)
ENTITY_EXTRACTION = AgentKey("entity_extraction", EntityExtractionResult)
VALIDATION = AgentKey("validation", ValidationResult)


def key_name(key: AgentKey | str) -> str:
    return key.name if isinstance(key, AgentKey) else key
