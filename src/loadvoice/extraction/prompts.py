"""Prompt templates for LLM refinement of heuristic extractions."""

from __future__ import annotations

from loadvoice.agents.models import SpeakerRoleMap, Utterance

REFINE_SYSTEM_PROMPT = """\
You are an expert freight brokerage analyst reviewing phone call transcripts.
A rule-based extractor has already produced a draft. Your job is to correct
the draft using the transcript, not to invent information.

Rules:
- Only use facts stated in the transcript.
- Keep a draft value if the transcript supports it.
- Use null for anything the transcript does not state.
- Money amounts are plain numbers in USD, without symbols or commas.
- Weights are in pounds.

Respond ONLY with a JSON object matching the draft's keys, no other text or markdown formatting."""

REFINE_USER_PROMPT = """\
This is a {call_type} call.

Task: {task}

Draft extraction:
{draft}

Transcript (format: [index] Speaker (role): text):
{transcript}

Return the corrected JSON object."""


LOAD_TASK = """\
List every load discussed. Return {"loads": [...]} where each load has
"origin", "destination", "equipment_type", "commodity", "weight_lbs",
"pallet_count", "miles", "pickup", "delivery"."""

RATE_TASK = """\
Describe the rate negotiation. Return an object with "status" (one of
"agreed", "pending", "rejected", "no_rate"), "agreed_rate" (number or null),
"rate_type" ("flat", "per_mile" or "unknown") and "includes_fuel" (true,
false or null)."""

ENTITY_TASK = """\
Identify the parties. Return an object with "carrier" ({"company_name",
"mc_number", "dot_number", "driver_name", "truck_number"}), "shipper"
({"company_name", "contact_name"}), "contact_phone" and "contact_email"."""


def format_utterances(
    utterances: tuple[Utterance, ...] | list[Utterance],
    speakers: SpeakerRoleMap | None = None,
) -> str:
    """Format utterances compactly for LLM input, with roles when known."""
    lines = []
    for i, u in enumerate(utterances):
        role = speakers.role_of(u.speaker_label).value if speakers else "unknown"
        lines.append(f"[{i}] {u.speaker_label} ({role}): {u.text}")
    return "\n".join(lines)
