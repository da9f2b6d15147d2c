"""Configuration and constants for LoadVoice."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

# Paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "loadvoice.json"
CONFIG_ENV_VAR = "LOADVOICE_CONFIG"

# LLM defaults
MODEL_DEFAULT = "claude-sonnet-4-20250514"
LLM_MODES = ["auto", "api", "none"]
LLM_REQUEST_TIMEOUT = 30.0

# Confidence discretization: below LOW is low, above HIGH is high
CONFIDENCE_LOW_THRESHOLD = 0.5
CONFIDENCE_HIGH_THRESHOLD = 0.75

# Classification above this value is trusted for automatic routing
CLASSIFICATION_ROUTING_THRESHOLD = 0.6

# Aggregate indicator weight at which evidence is considered saturated
CLASSIFICATION_EVIDENCE_SATURATION = 4.0
SPEAKER_EVIDENCE_SATURATION = 3.0

# Score given to a speaker that falls back to the broker role
SPEAKER_DEFAULT_BROKER_PRIOR = 1.0

# Utterances shorter than this many words carry no role signal
SPEAKER_MIN_TURN_WORDS = 2

# Agent execution
DEFAULT_AGENT_TIMEOUT = 30.0
DEFAULT_MAX_WORKERS = 4
AGENT_TIMEOUTS = {
    "classification": 15.0,
    "speaker_identification": 10.0,
    "load_extraction": 20.0,
    "rate_negotiation": 20.0,
    "entity_extraction": 15.0,
    "validation": 10.0,
}

# Plausible per-mile band for rate sanity checks (USD)
RATE_PER_MILE_MIN = 1.0
RATE_PER_MILE_MAX = 10.0


@dataclass
class ConfidenceThresholds:
    """Cut points used to turn a confidence value into a level."""

    low: float = CONFIDENCE_LOW_THRESHOLD
    high: float = CONFIDENCE_HIGH_THRESHOLD

    def __post_init__(self):
        if not 0.0 <= self.low <= self.high <= 1.0:
            raise ValueError(
                f"Invalid confidence thresholds: low={self.low}, high={self.high}"
            )


@dataclass
class PipelineConfig:
    """Tunable settings for one coordinator."""

    thresholds: ConfidenceThresholds = field(default_factory=ConfidenceThresholds)
    routing_threshold: float = CLASSIFICATION_ROUTING_THRESHOLD
    classification_saturation: float = CLASSIFICATION_EVIDENCE_SATURATION
    speaker_saturation: float = SPEAKER_EVIDENCE_SATURATION
    max_workers: int = DEFAULT_MAX_WORKERS
    default_timeout: float = DEFAULT_AGENT_TIMEOUT
    agent_timeouts: dict[str, float] = field(default_factory=lambda: dict(AGENT_TIMEOUTS))
    llm_mode: str = "none"
    model: str = MODEL_DEFAULT

    def timeout_for(self, agent_name: str) -> float:
        return self.agent_timeouts.get(agent_name, self.default_timeout)


def _config_path(path: Path | None) -> Path:
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def load_config(path: Path | None = None) -> PipelineConfig:
    """Load a PipelineConfig, overriding defaults with a JSON file if present.

    The file is a flat object whose keys match PipelineConfig fields. The
    nested "thresholds" key takes {"low": ..., "high": ...}, and
    "agent_timeouts" is merged over the built-in per-agent timeouts.
    """
    config_path = _config_path(path)
    config = PipelineConfig()
    if not config_path.exists():
        return config

    data = json.loads(config_path.read_text())
    known = {f.name for f in fields(PipelineConfig)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    if "thresholds" in data:
        thresholds = data.pop("thresholds")
        if not isinstance(thresholds, dict):
            raise ValueError("Config key 'thresholds' must be an object")
        unknown = set(thresholds) - {f.name for f in fields(ConfidenceThresholds)}
        if unknown:
            raise ValueError(f"Unknown threshold keys: {', '.join(sorted(unknown))}")
        config.thresholds = ConfidenceThresholds(**thresholds)
    if "agent_timeouts" in data:
        config.agent_timeouts.update(data.pop("agent_timeouts"))
    if "llm_mode" in data and data["llm_mode"] not in LLM_MODES:
        raise ValueError(f"Unknown LLM mode: {data['llm_mode']}")

    for key, value in data.items():
        setattr(config, key, value)
    return config
