"""JSON export of pipeline results."""

from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime
from enum import Enum
from pathlib import Path

from loadvoice.pipeline import PipelineResult


def to_jsonable(value):
    """Recursively convert dataclasses, enums, sets and dates to JSON types."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {to_jsonable(k) if isinstance(k, Enum) else str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(to_jsonable(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def result_to_dict(result: PipelineResult) -> dict:
    """Shape a PipelineResult for the CRM-persistence collaborator."""
    metadata = result.context.metadata
    return {
        "call_id": metadata.call_id,
        "organization_id": metadata.organization_id,
        "call_date": metadata.call_date.isoformat(),
        "requires_human_review": result.requires_human_review,
        "summary": to_jsonable(result.summary),
        "agents": {
            name: {
                "status": output.status.value,
                "execution_time_ms": output.execution_time_ms,
                "tokens_used": output.tokens_used,
                "error": output.error,
                "output": to_jsonable(output.output),
            }
            for name, output in result.outputs.items()
        },
    }


def write_json(path: Path, data):
    """Write data as formatted JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
