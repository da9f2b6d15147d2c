"""CLI integration tests using Click's CliRunner."""

from __future__ import annotations

import json

import click
import pytest
from click.testing import CliRunner

from loadvoice.cli import cli


@pytest.fixture
def runner():
    return CliRunner(env={"COLUMNS": "200"})


def _output(result) -> str:
    return click.unstyle(result.output)


@pytest.fixture
def payload_file(tmp_path, carrier_quote_payload):
    path = tmp_path / "call.json"
    path.write_text(json.dumps(carrier_quote_payload))
    return path


class TestHelpCommands:
    def test_main_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "LoadVoice" in _output(result)

    def test_analyze_help(self, runner):
        result = runner.invoke(cli, ["analyze", "--help"])
        assert result.exit_code == 0
        assert "--input" in _output(result)


class TestAnalyze:
    def test_analyze(self, runner, payload_file):
        result = runner.invoke(cli, ["--llm-mode", "none", "analyze", "-i", str(payload_file)])
        assert result.exit_code == 0
        assert "carrier_quote" in _output(result)
        assert "Agreed rate" in _output(result)
        assert "2,150.00" in _output(result)

    def test_writes_json(self, runner, payload_file, tmp_path):
        out = tmp_path / "results" / "call-42.json"
        result = runner.invoke(
            cli, ["--llm-mode", "none", "analyze", "-i", str(payload_file), "-o", str(out)]
        )
        assert result.exit_code == 0
        data = json.loads(out.read_text())
        assert data["call_id"] == "call-42"
        assert data["agents"]["validation"]["status"] == "completed"

    def test_accessorials_listed(self, runner, tmp_path, carrier_quote_payload):
        carrier_quote_payload["utterances"].append({
            "speaker": "B",
            "text": "Detention is $50 an hour after two hours.",
            "start": 40000,
            "end": 44000,
            "confidence": 0.9,
        })
        path = tmp_path / "call.json"
        path.write_text(json.dumps(carrier_quote_payload))
        result = runner.invoke(cli, ["--llm-mode", "none", "analyze", "-i", str(path)])
        assert result.exit_code == 0
        assert "Accessorial: detention ($50.00 per_hour)" in _output(result)

    def test_missing_call_id(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"utterances": []}))
        result = runner.invoke(cli, ["analyze", "-i", str(path)])
        assert result.exit_code == 1
        assert "no call_id" in _output(result)

    def test_invalid_json(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        result = runner.invoke(cli, ["analyze", "-i", str(path)])
        assert result.exit_code == 1

    def test_missing_input(self, runner, tmp_path):
        result = runner.invoke(cli, ["analyze", "-i", str(tmp_path / "nope.json")])
        assert result.exit_code != 0


class TestConfig:
    def test_invalid_config(self, runner, tmp_path):
        config = tmp_path / "loadvoice.json"
        config.write_text(json.dumps({"retries": 3}))
        result = runner.invoke(cli, ["--config", str(config), "agents"])
        assert result.exit_code == 1
        assert "Unknown config keys: retries" in _output(result)

    def test_unknown_threshold_key(self, runner, tmp_path):
        config = tmp_path / "loadvoice.json"
        config.write_text(json.dumps({"thresholds": {"medium": 0.6}}))
        result = runner.invoke(cli, ["--config", str(config), "agents"])
        assert result.exit_code == 1
        assert "Unknown threshold keys: medium" in _output(result)

    def test_config_timeouts_shown(self, runner, tmp_path):
        config = tmp_path / "loadvoice.json"
        config.write_text(json.dumps({"agent_timeouts": {"validation": 2.5}}))
        result = runner.invoke(cli, ["--config", str(config), "agents"])
        assert result.exit_code == 0
        assert "2.5" in _output(result)


class TestInspection:
    def test_agents(self, runner):
        result = runner.invoke(cli, ["agents"])
        assert result.exit_code == 0
        for name in ("classification", "validation"):
            assert name in _output(result)

    def test_plan_wrong_number(self, runner):
        result = runner.invoke(cli, ["plan", "wrong_number"])
        assert result.exit_code == 0
        assert "speaker_identification" in _output(result)
        assert "load_extraction" not in _output(result)

    def test_plan_new_booking_with_rate(self, runner):
        result = runner.invoke(cli, ["plan", "new_booking", "-s", "rate_discussed"])
        assert result.exit_code == 0
        assert "rate_negotiation" in _output(result)

    def test_plan_unknown_type(self, runner):
        result = runner.invoke(cli, ["plan", "spam"])
        assert result.exit_code != 0
