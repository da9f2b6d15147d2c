"""LLM refinement of heuristic drafts."""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Optional

from loadvoice.agents.context import AgentContext
from loadvoice.agents.models import ConfidenceScore, ExtractedField
from loadvoice.config import ConfidenceThresholds
from loadvoice.extraction.prompts import (
    REFINE_SYSTEM_PROMPT,
    REFINE_USER_PROMPT,
    format_utterances,
)
from loadvoice.llm.client import complete_with_retry

logger = logging.getLogger(__name__)

# Confidence given to a value the model supplied or changed
MODEL_FIELD_CONFIDENCE = 0.8


def _extract_json_object(text: str) -> dict:
    """Extract a JSON object from text, handling markdown code fences."""
    text = text.strip()
    text = re.sub(r"^```(?:json)?\s*\n?", "", text)
    text = re.sub(r"\n?```\s*$", "", text)
    text = text.strip()

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1:
        raise json.JSONDecodeError("No JSON object found in response", text[:200], 0)

    data = json.loads(text[start : end + 1])
    if not isinstance(data, dict):
        raise json.JSONDecodeError("Response is not a JSON object", text[:200], 0)
    return data


def refine(
    llm_client,
    context: AgentContext,
    task: str,
    draft: dict,
    max_tokens: int = 2048,
) -> tuple[dict, int]:
    """Ask the model to correct a draft. Returns (corrected fields, tokens used).

    Malformed responses raise json.JSONDecodeError so the agent is retried
    once and then recorded as failed.
    """
    classification = context.classification
    call_type = classification.primary_type.value if classification else "unknown"
    response = complete_with_retry(
        llm_client,
        system=REFINE_SYSTEM_PROMPT,
        user=REFINE_USER_PROMPT.format(
            call_type=call_type,
            task=task,
            draft=json.dumps(draft, indent=2, default=str),
            transcript=format_utterances(context.utterances, context.speakers),
        ),
        max_tokens=max_tokens,
    )
    data = _extract_json_object(response.content)
    logger.debug(
        f"[{context.metadata.call_id}] Refinement used {response.total_tokens} tokens"
    )
    return data, response.total_tokens


def merge_field(
    current: Optional[ExtractedField],
    value: Any,
    thresholds: ConfidenceThresholds | None = None,
    numeric: Optional[type] = None,
) -> Optional[ExtractedField]:
    """Combine a heuristic field with a model-supplied value.

    A null model value keeps the heuristic field. An agreeing value raises
    its confidence to at least the model confidence; a differing value
    replaces it. Numeric fields are coerced first, and a value that is not
    a number counts as null.
    """
    if numeric is not None:
        value = coerce_number(value, numeric)
    if value is None or value == "":
        return current
    if current is not None and _same(current.value, value):
        if current.confidence.value >= MODEL_FIELD_CONFIDENCE:
            return current
        return ExtractedField(
            value=current.value,
            confidence=ConfidenceScore.from_value(
                MODEL_FIELD_CONFIDENCE, thresholds, current.confidence.factors + ["confirmed by model"]
            ),
            raw_text=current.raw_text,
            source_speaker=current.source_speaker,
        )
    return ExtractedField(
        value=value,
        confidence=ConfidenceScore.from_value(MODEL_FIELD_CONFIDENCE, thresholds, ["model"]),
        raw_text=None,
        source_speaker=current.source_speaker if current else None,
    )


def field_value(f: Optional[ExtractedField]) -> Any:
    return f.value if f is not None else None


def _same(a: Any, b: Any) -> bool:
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return abs(float(a) - float(b)) < 0.01
    return str(a).strip().lower() == str(b).strip().lower()


NUMBER_RE = re.compile(
    r"^\$?\s*(-?\d{1,3}(?:,\d{3})+|-?\d+)(\.\d+)?\s*(k)?\s*(?:usd|dollars|lbs?|pounds|miles|mi)?$",
    re.IGNORECASE,
)


def coerce_number(value: Any, numeric: type = float) -> Optional[float | int]:
    """Turn a model-supplied number into a float or int, or None if it isn't one.

    Models sometimes answer "2,150", "$2150" or "42,000 lbs" where a number
    belongs.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return numeric(value) if math.isfinite(value) else None
    if not isinstance(value, str):
        return None
    m = NUMBER_RE.match(value.strip())
    if not m:
        return None
    number = float(m.group(1).replace(",", "") + (m.group(2) or ""))
    if m.group(3):
        number *= 1000
    return numeric(number)
