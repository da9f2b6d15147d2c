"""Rate negotiation tracking: offers, counters, acceptance and fuel terms."""

from __future__ import annotations

import logging
import re
from typing import Optional

from loadvoice.agents.base import Agent
from loadvoice.agents.context import AgentContext
from loadvoice.agents.keys import CLASSIFICATION, RATE_NEGOTIATION, SPEAKER_IDENTIFICATION
from loadvoice.agents.models import (
    AccessorialCharge,
    AgentDescriptor,
    ExtractedField,
    RateNegotiationResult,
    RateOffer,
    SpeakerRole,
)
from loadvoice.extraction.prompts import RATE_TASK
from loadvoice.extraction.refine import merge_field, refine
from loadvoice.parser.lexicon import find_accessorials, linehaul_amounts

logger = logging.getLogger(__name__)

ACCEPT_RE = re.compile(
    r"\b(?:deal|we have a deal|i'll take it|we'll take it|that works|works for me|"
    r"sounds good|let's book it|book it|agreed|you got it|let's do it|i can do that)\b"
)
REJECT_RE = re.compile(
    r"\b(?:no way|too (?:high|low)|can't do (?:that|it)|cannot do that|"
    r"(?:i'll|we'll|gonna|going to) pass|not going to work|won't work)\b"
)
FUEL_INCLUDED_RE = re.compile(
    r"\ball[\s-]in\b|\b(?:includes|including|with) fuel\b|\bno (?:separate )?fuel surcharge\b"
)
FUEL_EXTRA_RE = re.compile(
    r"\bplus (?:the )?(?:fuel|fsc|fuel surcharge)\b|\bfuel (?:surcharge )?(?:is )?(?:extra|separate)\b"
)

EXPLICIT_AGREEMENT_CONFIDENCE = 0.9
INFERRED_AGREEMENT_CONFIDENCE = 0.7
OPEN_NEGOTIATION_CONFIDENCE = 0.6
NO_RATE_CONFIDENCE = 0.5
UNTRUSTED_SPEAKERS_PENALTY = 0.1
ACCESSORIAL_AMOUNT_CONFIDENCE = 0.8
ACCESSORIAL_MENTION_CONFIDENCE = 0.5


class RateNegotiationAgent(Agent[RateNegotiationResult]):
    """Follows the price back-and-forth and decides whether a rate was agreed.

    Each utterance contributes at most one event: an amount (offer, counter,
    or accept when said with an acceptance phrase), or an acceptance or
    rejection of the other party's last amount.
    Accessorial charges (detention, lumper and the like) are collected
    separately and never count as a linehaul offer.
    """

    key = RATE_NEGOTIATION
    descriptor = AgentDescriptor(
        name=RATE_NEGOTIATION.name,
        dependencies=frozenset({CLASSIFICATION.name, SPEAKER_IDENTIFICATION.name}),
        produces="RateNegotiationResult",
        description="Tracks offers and counter-offers and the agreed rate",
    )
    retry_on_failure = True

    def execute(self, context: AgentContext) -> RateNegotiationResult:
        speakers = context.speakers
        history: list[RateOffer] = []

        for i, u in enumerate(context.utterances):
            role = speakers.role_of(u.speaker_label) if speakers else SpeakerRole.UNKNOWN
            text = u.text.lower()
            amounts = linehaul_amounts(u.text)
            accepted = bool(ACCEPT_RE.search(text))
            last_other = self._last_from_other(history, u.speaker_label)

            if amounts:
                mention = amounts[-1]
                rate_type = "per_mile" if mention.per_mile else "flat"
                if accepted and last_other and abs(last_other.amount - mention.amount) < 0.01:
                    action = "accept"
                elif last_other:
                    action = "counter"
                else:
                    action = "offer"
                history.append(
                    RateOffer(u.speaker_label, role, mention.amount, rate_type, action, i, u.text)
                )
            elif last_other and accepted:
                history.append(
                    RateOffer(u.speaker_label, role, last_other.amount, last_other.rate_type, "accept", i, u.text)
                )
            elif last_other and REJECT_RE.search(text):
                history.append(
                    RateOffer(u.speaker_label, role, last_other.amount, last_other.rate_type, "reject", i, u.text)
                )

        result = self._summarize(history, speakers)
        result.includes_fuel = self._fuel_terms(context)
        result.accessorials = self._accessorials(context)

        if self.llm_client is not None:
            self._refine(context, result)

        logger.info(
            f"[{context.metadata.call_id}] Rate status {result.status}"
            + (f" at {result.agreed_rate.value}" if result.agreed_rate else "")
        )
        return result

    @staticmethod
    def _last_from_other(history: list[RateOffer], speaker_label: str) -> Optional[RateOffer]:
        for offer in reversed(history):
            if offer.speaker_label != speaker_label and offer.action in ("offer", "counter", "accept"):
                return offer
        return None

    def _summarize(self, history: list[RateOffer], speakers) -> RateNegotiationResult:
        if not history:
            return RateNegotiationResult(
                status="no_rate",
                rate_type="unknown",
                confidence=self.score(NO_RATE_CONFIDENCE, ["no rate discussed"]),
            )

        final_positions: dict[str, float] = {}
        for offer in history:
            if offer.action in ("offer", "counter", "accept"):
                party = offer.role.value if offer.role != SpeakerRole.UNKNOWN else offer.speaker_label
                final_positions[party] = offer.amount
        rounds = sum(1 for o in history if o.action in ("offer", "counter"))

        last_accept_index = max(
            (n for n, o in enumerate(history) if o.action == "accept"), default=None
        )
        reopened = last_accept_index is not None and any(
            o.action in ("offer", "counter") for o in history[last_accept_index + 1:]
        )
        factors = [f"{rounds} round(s)"]

        agreed_rate = None
        if last_accept_index is not None and not reopened:
            accept = history[last_accept_index]
            explicit = bool(linehaul_amounts(accept.raw_text))
            value = EXPLICIT_AGREEMENT_CONFIDENCE if explicit else INFERRED_AGREEMENT_CONFIDENCE
            factors.append("amount restated on acceptance" if explicit else "acceptance without amount")
            status = "agreed"
            rate_type = accept.rate_type
            agreed_rate = ExtractedField(
                value=accept.amount,
                confidence=self.score(value, factors),
                raw_text=accept.raw_text,
                source_speaker=accept.speaker_label,
            )
        elif history[-1].action == "reject":
            status = "rejected"
            rate_type = history[-1].rate_type
            value = OPEN_NEGOTIATION_CONFIDENCE
        else:
            status = "pending"
            rate_type = history[-1].rate_type
            value = OPEN_NEGOTIATION_CONFIDENCE

        if speakers is None or speakers.counterpart_speaker is None:
            value -= UNTRUSTED_SPEAKERS_PENALTY
            factors.append("speaker roles unknown")

        return RateNegotiationResult(
            status=status,
            rate_type=rate_type,
            confidence=self.score(value, factors),
            agreed_rate=agreed_rate,
            price_history=history,
            final_positions=final_positions,
            rounds=rounds,
        )

    def _accessorials(self, context: AgentContext) -> list[AccessorialCharge]:
        """One charge per type; a later amount for the same type replaces an earlier one."""
        charges: dict[str, AccessorialCharge] = {}
        for u in context.utterances:
            for mention in find_accessorials(u.text):
                existing = charges.get(mention.charge_type)
                if mention.money is None:
                    if existing is None:
                        charges[mention.charge_type] = AccessorialCharge(
                            charge_type=mention.charge_type,
                            confidence=self.score(ACCESSORIAL_MENTION_CONFIDENCE, ["no amount stated"]),
                            raw_text=u.text,
                            source_speaker=u.speaker_label,
                        )
                    continue
                charges[mention.charge_type] = AccessorialCharge(
                    charge_type=mention.charge_type,
                    confidence=self.score(ACCESSORIAL_AMOUNT_CONFIDENCE, [f"matched '{mention.money.text}'"]),
                    amount=mention.money.amount,
                    unit=mention.unit,
                    raw_text=u.text,
                    source_speaker=u.speaker_label,
                )
        return list(charges.values())

    @staticmethod
    def _fuel_terms(context: AgentContext) -> Optional[bool]:
        """Last explicit statement about fuel wins."""
        terms = None
        for u in context.utterances:
            text = u.text.lower()
            included = [m.start() for m in FUEL_INCLUDED_RE.finditer(text)]
            extra = [m.start() for m in FUEL_EXTRA_RE.finditer(text)]
            if included or extra:
                terms = max(included, default=-1) > max(extra, default=-1)
        return terms

    def _refine(self, context: AgentContext, result: RateNegotiationResult):
        draft = {
            "status": result.status,
            "agreed_rate": result.agreed_rate.value if result.agreed_rate else None,
            "rate_type": result.rate_type,
            "includes_fuel": result.includes_fuel,
        }
        data, tokens = refine(self.llm_client, context, RATE_TASK, draft)
        if data.get("status") in ("agreed", "pending", "rejected", "no_rate"):
            result.status = data["status"]
        if data.get("rate_type") in ("flat", "per_mile", "unknown"):
            result.rate_type = data["rate_type"]
        if isinstance(data.get("includes_fuel"), bool):
            result.includes_fuel = data["includes_fuel"]
        if result.status == "agreed":
            result.agreed_rate = merge_field(
                result.agreed_rate, data.get("agreed_rate"), self.config.thresholds, numeric=float
            )
        else:
            result.agreed_rate = None
        result.tokens_used = tokens
