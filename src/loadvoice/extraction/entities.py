"""Carrier, shipper and contact details."""

from __future__ import annotations

import logging

from loadvoice.agents.base import Agent
from loadvoice.agents.context import AgentContext
from loadvoice.agents.keys import CLASSIFICATION, ENTITY_EXTRACTION, SPEAKER_IDENTIFICATION
from loadvoice.agents.models import (
    AgentDescriptor,
    CallType,
    CarrierDetails,
    EntityExtractionResult,
    ExtractedField,
    ShipperDetails,
    SpeakerRole,
    Utterance,
)
from loadvoice.extraction.prompts import ENTITY_TASK
from loadvoice.extraction.refine import field_value, merge_field, refine
from loadvoice.parser.lexicon import (
    CONTACT_NAME_RE,
    DOT_RE,
    DRIVER_RE,
    EMAIL_RE,
    MC_RE,
    PHONE_RE,
    REFERENCE_RE,
    TRUCK_NUMBER_RE,
    find_company,
)

logger = logging.getLogger(__name__)

# Confidence by how well the speaker's role matches the field's party
ROLE_MATCH_CONFIDENCE = 0.9
ROLE_UNKNOWN_CONFIDENCE = 0.6
IDENTIFIER_CONFIDENCE = 0.85
UNATTRIBUTED_IDENTIFIER_CONFIDENCE = 0.7

# Party that an unlabelled speaker most likely is, per call type
DEFAULT_PARTY = {
    CallType.CARRIER_QUOTE: SpeakerRole.CARRIER,
    CallType.CHECK_CALL: SpeakerRole.CARRIER,
    CallType.NEW_BOOKING: SpeakerRole.SHIPPER,
}

CARRIER_FIELDS = ["company_name", "mc_number", "dot_number", "driver_name", "truck_number"]
SHIPPER_FIELDS = ["company_name", "contact_name"]


class EntityExtractionAgent(Agent[EntityExtractionResult]):
    """Finds who the carrier and shipper are and how to reach them.

    Company and contact names are attributed using speaker roles: a name
    said by the carrier belongs to the carrier, and so on. Names said by
    the broker describe the brokerage and are skipped.
    """

    key = ENTITY_EXTRACTION
    descriptor = AgentDescriptor(
        name=ENTITY_EXTRACTION.name,
        dependencies=frozenset({CLASSIFICATION.name, SPEAKER_IDENTIFICATION.name}),
        produces="EntityExtractionResult",
        description="Extracts carrier, shipper and contact details",
    )

    def execute(self, context: AgentContext) -> EntityExtractionResult:
        speakers = context.speakers
        classification = context.classification
        default_party = DEFAULT_PARTY.get(classification.primary_type) if classification else None

        carrier = CarrierDetails()
        shipper = ShipperDetails()
        phone = email = None
        references: list[ExtractedField] = []

        for u in context.utterances:
            role = speakers.role_of(u.speaker_label) if speakers else SpeakerRole.UNKNOWN
            party = role if role != SpeakerRole.UNKNOWN else default_party
            party_confidence = ROLE_MATCH_CONFIDENCE if role != SpeakerRole.UNKNOWN else ROLE_UNKNOWN_CONFIDENCE

            company = find_company(u.text)
            if company and party == SpeakerRole.CARRIER and carrier.company_name is None:
                carrier.company_name = self._field(company, party_confidence, company, u)
            elif company and party == SpeakerRole.SHIPPER and shipper.company_name is None:
                shipper.company_name = self._field(company, party_confidence, company, u)

            m = CONTACT_NAME_RE.search(u.text)
            if m and party == SpeakerRole.SHIPPER and shipper.contact_name is None:
                shipper.contact_name = self._field(m.group(1), party_confidence, m.group(0), u)

            for attr, pattern in (
                ("mc_number", MC_RE),
                ("dot_number", DOT_RE),
                ("driver_name", DRIVER_RE),
                ("truck_number", TRUCK_NUMBER_RE),
            ):
                m = pattern.search(u.text)
                if m and getattr(carrier, attr) is None:
                    value = ROLE_MATCH_CONFIDENCE if role == SpeakerRole.CARRIER else UNATTRIBUTED_IDENTIFIER_CONFIDENCE
                    setattr(carrier, attr, self._field(m.group(1), value, m.group(0), u))

            if role != SpeakerRole.BROKER:
                m = PHONE_RE.search(u.text)
                if m and phone is None:
                    phone = self._field(m.group(0), IDENTIFIER_CONFIDENCE, m.group(0), u)
                m = EMAIL_RE.search(u.text)
                if m and email is None:
                    email = self._field(m.group(0).lower(), IDENTIFIER_CONFIDENCE, m.group(0), u)

            for m in REFERENCE_RE.finditer(u.text):
                if all(r.value != m.group(1) for r in references):
                    references.append(self._field(m.group(1), IDENTIFIER_CONFIDENCE, m.group(0), u))

        result = EntityExtractionResult(
            carrier=carrier,
            shipper=shipper,
            confidence=self.score(0.0),
            contact_phone=phone,
            contact_email=email,
            reference_numbers=references,
        )
        if self.llm_client is not None:
            self._refine(context, result)
        result.confidence = self._overall_confidence(result)

        logger.info(
            f"[{context.metadata.call_id}] Entities: carrier="
            f"{field_value(carrier.company_name)}, shipper={field_value(shipper.company_name)}"
        )
        return result

    def _field(self, value, confidence: float, raw_text: str, u: Utterance) -> ExtractedField:
        return ExtractedField(
            value=value,
            confidence=self.score(confidence),
            raw_text=raw_text,
            source_speaker=u.speaker_label,
        )

    def _overall_confidence(self, result: EntityExtractionResult):
        found = [
            f for f in (
                [getattr(result.carrier, a) for a in CARRIER_FIELDS]
                + [getattr(result.shipper, a) for a in SHIPPER_FIELDS]
                + [result.contact_phone, result.contact_email]
                + result.reference_numbers
            )
            if f is not None
        ]
        if not found:
            return self.score(0.0, ["no entities found"])
        mean = sum(f.confidence.value for f in found) / len(found)
        return self.score(mean, [f"{len(found)} field(s)"])

    def _refine(self, context: AgentContext, result: EntityExtractionResult):
        draft = {
            "carrier": {a: field_value(getattr(result.carrier, a)) for a in CARRIER_FIELDS},
            "shipper": {a: field_value(getattr(result.shipper, a)) for a in SHIPPER_FIELDS},
            "contact_phone": field_value(result.contact_phone),
            "contact_email": field_value(result.contact_email),
        }
        data, tokens = refine(self.llm_client, context, ENTITY_TASK, draft)
        thresholds = self.config.thresholds
        for section_name, party, names in (
            ("carrier", result.carrier, CARRIER_FIELDS),
            ("shipper", result.shipper, SHIPPER_FIELDS),
        ):
            section = data.get(section_name) or {}
            for a in names:
                setattr(party, a, merge_field(getattr(party, a), section.get(a), thresholds))
        result.contact_phone = merge_field(result.contact_phone, data.get("contact_phone"), thresholds)
        result.contact_email = merge_field(result.contact_email, data.get("contact_email"), thresholds)
        result.tokens_used = tokens
