"""Data models for the call-understanding pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from loadvoice.config import CLASSIFICATION_ROUTING_THRESHOLD, ConfidenceThresholds


class CallType(str, Enum):
    CARRIER_QUOTE = "carrier_quote"
    NEW_BOOKING = "new_booking"
    CHECK_CALL = "check_call"
    WRONG_NUMBER = "wrong_number"
    OTHER = "other"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SpeakerRole(str, Enum):
    BROKER = "broker"
    CARRIER = "carrier"
    SHIPPER = "shipper"
    UNKNOWN = "unknown"


class AgentStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentStatus.COMPLETED, AgentStatus.FAILED)


# ---------------------------------------------------------------------------
# Transcript input
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Word:
    text: str
    start_ms: int
    end_ms: int
    confidence: float
    speaker_label: Optional[str] = None


@dataclass(frozen=True)
class Utterance:
    text: str
    speaker_label: str
    start_ms: int
    end_ms: int
    confidence: float = 1.0
    words: tuple[Word, ...] = ()


@dataclass(frozen=True)
class CallMetadata:
    call_id: str
    organization_id: str
    call_date: date
    duration_seconds: Optional[int] = None
    customer_name: Optional[str] = None


# ---------------------------------------------------------------------------
# Confidence
# ---------------------------------------------------------------------------


@dataclass
class ConfidenceScore:
    value: float
    level: ConfidenceLevel
    factors: list[str] = field(default_factory=list)

    @classmethod
    def from_value(
        cls,
        value: float,
        thresholds: ConfidenceThresholds | None = None,
        factors: list[str] | None = None,
    ) -> ConfidenceScore:
        """Clamp value to [0, 1] and discretize it into a level."""
        thresholds = thresholds or ConfidenceThresholds()
        value = max(0.0, min(1.0, float(value)))
        if value < thresholds.low:
            level = ConfidenceLevel.LOW
        elif value > thresholds.high:
            level = ConfidenceLevel.HIGH
        else:
            level = ConfidenceLevel.MEDIUM
        return cls(value=round(value, 4), level=level, factors=list(factors or []))

    @classmethod
    def low(cls, reason: str = "") -> ConfidenceScore:
        return cls.from_value(0.0, factors=[reason] if reason else None)


# ---------------------------------------------------------------------------
# Agent payloads
# ---------------------------------------------------------------------------


@dataclass
class ClassificationResult:
    primary_type: CallType
    sub_types: set[str]
    confidence: ConfidenceScore
    indicators: list[str]
    multi_load_call: bool
    continuation_call: bool = False
    scores: dict[CallType, float] = field(default_factory=dict)
    processing_notes: list[str] = field(default_factory=list)
    routing_threshold: float = CLASSIFICATION_ROUTING_THRESHOLD

    @property
    def is_routable(self) -> bool:
        return self.confidence.value > self.routing_threshold


@dataclass
class SpeakerAssignment:
    role: SpeakerRole
    confidence: ConfidenceScore
    signals: list[str] = field(default_factory=list)
    turns: int = 0


@dataclass
class SpeakerRoleMap:
    speakers: dict[str, SpeakerAssignment]
    confidence: ConfidenceScore
    broker_speaker: Optional[str] = None
    counterpart_speaker: Optional[str] = None
    processing_notes: list[str] = field(default_factory=list)

    def role_of(self, speaker_label: str) -> SpeakerRole:
        assignment = self.speakers.get(speaker_label)
        return assignment.role if assignment else SpeakerRole.UNKNOWN

    def speakers_with_role(self, role: SpeakerRole) -> list[str]:
        return [label for label, a in self.speakers.items() if a.role == role]

    def trusted_role(self, speaker_label: str) -> Optional[SpeakerRole]:
        """Role for auto-populating CRM fields, only when confidence is high."""
        assignment = self.speakers.get(speaker_label)
        if assignment and assignment.confidence.level == ConfidenceLevel.HIGH:
            return assignment.role
        return None


@dataclass
class ExtractedField:
    value: Any
    confidence: ConfidenceScore
    raw_text: Optional[str] = None
    source_speaker: Optional[str] = None


@dataclass
class LoadDetails:
    load_id: str
    origin: Optional[ExtractedField] = None
    destination: Optional[ExtractedField] = None
    equipment_type: Optional[ExtractedField] = None
    commodity: Optional[ExtractedField] = None
    weight_lbs: Optional[ExtractedField] = None
    pallet_count: Optional[ExtractedField] = None
    miles: Optional[ExtractedField] = None
    pickup: Optional[ExtractedField] = None
    delivery: Optional[ExtractedField] = None
    pickup_date: Optional[date] = None
    delivery_date: Optional[date] = None
    special_requirements: list[str] = field(default_factory=list)


@dataclass
class LoadExtractionResult:
    loads: list[LoadDetails]
    multi_load_call: bool
    confidence: ConfidenceScore
    tokens_used: Optional[int] = None


@dataclass
class RateOffer:
    speaker_label: str
    role: SpeakerRole
    amount: float
    rate_type: str
    action: str  # "offer", "counter", "accept", "reject"
    utterance_index: int
    raw_text: str


@dataclass
class AccessorialCharge:
    charge_type: str  # "detention", "lumper", "tonu", "layover", "stop_off", "driver_assist", "tarp"
    confidence: ConfidenceScore
    amount: Optional[float] = None
    unit: str = "flat"  # "flat", "per_hour", "per_day"
    raw_text: Optional[str] = None
    source_speaker: Optional[str] = None


@dataclass
class RateNegotiationResult:
    status: str  # "agreed", "pending", "rejected", "no_rate"
    rate_type: str  # "flat", "per_mile", "unknown"
    confidence: ConfidenceScore
    agreed_rate: Optional[ExtractedField] = None
    includes_fuel: Optional[bool] = None
    price_history: list[RateOffer] = field(default_factory=list)
    final_positions: dict[str, float] = field(default_factory=dict)
    rounds: int = 0
    accessorials: list[AccessorialCharge] = field(default_factory=list)
    tokens_used: Optional[int] = None


@dataclass
class CarrierDetails:
    company_name: Optional[ExtractedField] = None
    mc_number: Optional[ExtractedField] = None
    dot_number: Optional[ExtractedField] = None
    driver_name: Optional[ExtractedField] = None
    truck_number: Optional[ExtractedField] = None


@dataclass
class ShipperDetails:
    company_name: Optional[ExtractedField] = None
    contact_name: Optional[ExtractedField] = None


@dataclass
class EntityExtractionResult:
    carrier: CarrierDetails
    shipper: ShipperDetails
    confidence: ConfidenceScore
    contact_phone: Optional[ExtractedField] = None
    contact_email: Optional[ExtractedField] = None
    reference_numbers: list[ExtractedField] = field(default_factory=list)
    tokens_used: Optional[int] = None


@dataclass
class ValidationWarning:
    severity: str  # "critical", "warning", "info"
    field: str
    message: str


@dataclass
class ValidationResult:
    is_valid: bool
    warnings: list[ValidationWarning]
    requires_human_review: bool
    confidence: ConfidenceScore
    review_reasons: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Execution records
# ---------------------------------------------------------------------------


@dataclass
class AgentOutput:
    agent_name: str
    status: AgentStatus
    output: Any = None
    execution_time_ms: int = 0
    tokens_used: Optional[int] = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


@dataclass(frozen=True)
class AgentDescriptor:
    name: str
    dependencies: frozenset[str]
    produces: str
    optional_dependencies: frozenset[str] = frozenset()
    description: str = ""


@dataclass(frozen=True)
class Phase:
    name: str
    agents: tuple[AgentDescriptor, ...]

    @property
    def agent_names(self) -> list[str]:
        return [a.name for a in self.agents]


@dataclass(frozen=True)
class ExecutionPlan:
    call_type: CallType
    phases: tuple[Phase, ...]

    def agent_names(self) -> list[str]:
        return [name for phase in self.phases for name in phase.agent_names]


@dataclass
class ExecutionSummary:
    total_agents: int
    completed: int
    failed: int
    pending: int
    running: int
    total_tokens: int
    total_time_ms: int
