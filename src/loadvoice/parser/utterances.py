"""Parse transcription JSON into utterances and call metadata."""

import logging
from datetime import date
from typing import Optional

from loadvoice.agents.models import CallMetadata, Utterance, Word

logger = logging.getLogger(__name__)

UNKNOWN_SPEAKER = "unknown"
DEFAULT_ORGANIZATION = "default"


def _parse_word(data: dict) -> Word:
    return Word(
        text=data["text"],
        start_ms=int(data.get("start", 0)),
        end_ms=int(data.get("end", 0)),
        confidence=float(data.get("confidence", 1.0)),
        speaker_label=data.get("speaker"),
    )


def parse_utterances(items: list[dict]) -> list[Utterance]:
    """Convert AssemblyAI-style utterance dicts into time-ordered Utterances.

    Each item looks like:
    {"speaker": "A", "text": "...", "start": 120, "end": 2400, "confidence": 0.93, "words": [...]}

    Items without text are skipped.
    """
    utterances = []
    for i, data in enumerate(items):
        text = (data.get("text") or "").strip()
        if not text:
            continue
        try:
            words = tuple(_parse_word(w) for w in data.get("words") or [])
            utterances.append(
                Utterance(
                    text=text,
                    speaker_label=str(data.get("speaker") or UNKNOWN_SPEAKER),
                    start_ms=int(data.get("start", 0)),
                    end_ms=int(data.get("end", 0)),
                    confidence=float(data.get("confidence", 1.0)),
                    words=words,
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed utterance {i}: {e}")

    utterances.sort(key=lambda u: u.start_ms)
    return utterances


def build_transcript(utterances: list[Utterance]) -> str:
    """Flat transcript text, one 'Speaker: text' line per utterance."""
    return "\n".join(f"{u.speaker_label}: {u.text}" for u in utterances)


def parse_call_date(raw: Optional[str]) -> date:
    if not raw:
        return date.today()
    return date.fromisoformat(str(raw)[:10])


def parse_metadata(payload: dict) -> CallMetadata:
    """Build CallMetadata from a call payload.

    Recognized keys: call_id (or id), organization_id, call_date,
    duration_seconds (or AssemblyAI's audio_duration), customer_name.
    """
    call_id = payload.get("call_id") or payload.get("id")
    if not call_id:
        raise ValueError("Call payload has no call_id")

    duration = payload.get("duration_seconds", payload.get("audio_duration"))
    return CallMetadata(
        call_id=str(call_id),
        organization_id=str(payload.get("organization_id") or DEFAULT_ORGANIZATION),
        call_date=parse_call_date(payload.get("call_date")),
        duration_seconds=int(duration) if duration is not None else None,
        customer_name=payload.get("customer_name"),
    )
