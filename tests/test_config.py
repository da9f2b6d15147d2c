"""Tests for loadvoice.config."""

from __future__ import annotations

import json

import pytest

from loadvoice.agents.models import ConfidenceLevel, ConfidenceScore
from loadvoice.config import (
    AGENT_TIMEOUTS,
    DEFAULT_AGENT_TIMEOUT,
    ConfidenceThresholds,
    PipelineConfig,
    load_config,
)


class TestConfidenceScore:
    def test_below_low_threshold_is_low(self):
        assert ConfidenceScore.from_value(0.49).level == ConfidenceLevel.LOW

    def test_low_threshold_itself_is_medium(self):
        assert ConfidenceScore.from_value(0.5).level == ConfidenceLevel.MEDIUM

    def test_high_threshold_itself_is_medium(self):
        assert ConfidenceScore.from_value(0.75).level == ConfidenceLevel.MEDIUM

    def test_above_high_threshold_is_high(self):
        assert ConfidenceScore.from_value(0.76).level == ConfidenceLevel.HIGH

    def test_value_is_clamped(self):
        assert ConfidenceScore.from_value(1.7).value == 1.0
        assert ConfidenceScore.from_value(-0.2).value == 0.0

    def test_custom_thresholds(self):
        thresholds = ConfidenceThresholds(low=0.2, high=0.4)
        assert ConfidenceScore.from_value(0.3, thresholds).level == ConfidenceLevel.MEDIUM
        assert ConfidenceScore.from_value(0.5, thresholds).level == ConfidenceLevel.HIGH

    def test_factors_are_kept(self):
        score = ConfidenceScore.from_value(0.9, factors=["lane stated"])
        assert score.factors == ["lane stated"]

    def test_low_helper(self):
        score = ConfidenceScore.low("no evidence")
        assert score.level == ConfidenceLevel.LOW
        assert score.factors == ["no evidence"]


class TestConfidenceThresholds:
    def test_defaults(self):
        thresholds = ConfidenceThresholds()
        assert thresholds.low == 0.5
        assert thresholds.high == 0.75

    def test_inverted_raises(self):
        with pytest.raises(ValueError):
            ConfidenceThresholds(low=0.8, high=0.3)

    def test_out_of_range_raises(self):
        with pytest.raises(ValueError):
            ConfidenceThresholds(low=0.5, high=1.5)


class TestPipelineConfig:
    def test_timeout_for_known_agent(self):
        config = PipelineConfig()
        assert config.timeout_for("classification") == AGENT_TIMEOUTS["classification"]

    def test_timeout_for_unknown_agent_uses_default(self):
        assert PipelineConfig().timeout_for("custom_agent") == DEFAULT_AGENT_TIMEOUT

    def test_agent_timeouts_not_shared(self):
        a = PipelineConfig()
        a.agent_timeouts["validation"] = 1.0
        assert PipelineConfig().agent_timeouts["validation"] == AGENT_TIMEOUTS["validation"]


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, tmp_path):
        config = load_config(tmp_path / "missing.json")
        assert config == PipelineConfig()

    def test_overrides(self, tmp_path):
        path = tmp_path / "loadvoice.json"
        path.write_text(json.dumps({
            "max_workers": 2,
            "routing_threshold": 0.7,
            "thresholds": {"low": 0.4, "high": 0.8},
            "agent_timeouts": {"validation": 3.0},
        }))
        config = load_config(path)
        assert config.max_workers == 2
        assert config.routing_threshold == 0.7
        assert config.thresholds == ConfidenceThresholds(low=0.4, high=0.8)
        assert config.agent_timeouts["validation"] == 3.0
        assert config.agent_timeouts["classification"] == AGENT_TIMEOUTS["classification"]

    def test_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"llm_mode": "auto"}))
        monkeypatch.setenv("LOADVOICE_CONFIG", str(path))
        assert load_config().llm_mode == "auto"

    def test_unknown_key_raises(self, tmp_path):
        path = tmp_path / "loadvoice.json"
        path.write_text(json.dumps({"max_wrokers": 2}))
        with pytest.raises(ValueError, match="max_wrokers"):
            load_config(path)

    def test_unknown_llm_mode_raises(self, tmp_path):
        path = tmp_path / "loadvoice.json"
        path.write_text(json.dumps({"llm_mode": "claude-code"}))
        with pytest.raises(ValueError, match="LLM mode"):
            load_config(path)

    def test_unknown_threshold_key_raises(self, tmp_path):
        path = tmp_path / "loadvoice.json"
        path.write_text(json.dumps({"thresholds": {"low": 0.4, "hgih": 0.8}}))
        with pytest.raises(ValueError, match="hgih"):
            load_config(path)

    def test_thresholds_must_be_object(self, tmp_path):
        path = tmp_path / "loadvoice.json"
        path.write_text(json.dumps({"thresholds": 0.5}))
        with pytest.raises(ValueError, match="thresholds"):
            load_config(path)
