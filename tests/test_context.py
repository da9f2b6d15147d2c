"""Tests for loadvoice.agents.context."""

from __future__ import annotations

from datetime import date

import pytest

from loadvoice.agents.context import AgentContext
from loadvoice.agents.keys import CLASSIFICATION, LOAD_EXTRACTION, SPEAKER_IDENTIFICATION
from loadvoice.agents.models import (
    AgentOutput,
    AgentStatus,
    CallMetadata,
    CallType,
    ClassificationResult,
    ConfidenceScore,
)


def _classification(value: float = 0.9, call_type: CallType = CallType.CARRIER_QUOTE):
    return ClassificationResult(
        primary_type=call_type,
        sub_types={"rate_discussed"},
        confidence=ConfidenceScore.from_value(value),
        indicators=["trucks available"],
        multi_load_call=False,
    )


def _completed(name, output, tokens=None):
    return AgentOutput(agent_name=name, status=AgentStatus.COMPLETED, output=output, tokens_used=tokens)


def _failed(name, error="boom"):
    return AgentOutput(agent_name=name, status=AgentStatus.FAILED, error=error)


@pytest.fixture
def context(make_context, carrier_quote_lines):
    return make_context(carrier_quote_lines)


class TestOutputs:
    def test_typed_lookup(self, context):
        result = _classification()
        context.add_agent_output(CLASSIFICATION, _completed("classification", result))
        assert context.get_agent_output(CLASSIFICATION) is result
        assert context.classification is result

    def test_string_key(self, context):
        result = _classification()
        context.add_agent_output("classification", _completed("classification", result))
        assert context.get_agent_output("classification") is result

    def test_missing_returns_none(self, context):
        assert context.get_agent_output(LOAD_EXTRACTION) is None
        assert context.get_agent_output("no_such_agent") is None
        assert context.get_agent_result(LOAD_EXTRACTION) is None

    def test_wrong_type_raises(self, context):
        context.add_agent_output(CLASSIFICATION, _completed("classification", "not a result"))
        with pytest.raises(TypeError, match="ClassificationResult"):
            context.get_agent_output(CLASSIFICATION)

    def test_failed_output_has_no_payload(self, context):
        context.add_agent_output(LOAD_EXTRACTION, _failed("load_extraction"))
        assert context.get_agent_output(LOAD_EXTRACTION) is None
        assert not context.has_agent_completed(LOAD_EXTRACTION)
        assert context.get_agent_result(LOAD_EXTRACTION).error == "boom"

    def test_last_write_wins(self, context):
        context.add_agent_output(CLASSIFICATION, _failed("classification"))
        context.add_agent_output(CLASSIFICATION, _completed("classification", _classification()))
        assert context.has_agent_completed(CLASSIFICATION)

    def test_mismatched_name_raises(self, context):
        with pytest.raises(ValueError):
            context.add_agent_output(CLASSIFICATION, _completed("load_extraction", None))

    def test_agents_by_status(self, context):
        context.add_agent_output(CLASSIFICATION, _completed("classification", _classification()))
        context.add_agent_output(LOAD_EXTRACTION, _failed("load_extraction"))
        assert context.get_agents_by_status(AgentStatus.COMPLETED) == ["classification"]
        assert context.get_agents_by_status(AgentStatus.FAILED) == ["load_extraction"]

    def test_input_is_read_only(self, context):
        with pytest.raises(AttributeError):
            context.transcript = "changed"
        assert isinstance(context.utterances, tuple)


class TestSummary:
    def test_mixed_statuses(self, context):
        context.add_agent_output(CLASSIFICATION, _completed("classification", _classification()))
        context.add_agent_output(LOAD_EXTRACTION, _failed("load_extraction"))
        summary = context.get_execution_summary()
        assert summary.completed == 1
        assert summary.failed == 1
        assert summary.total_agents == 2
        assert summary.pending == 0
        assert summary.running == 0

    def test_tokens(self, context):
        context.add_agent_output(CLASSIFICATION, _completed("classification", _classification(), tokens=120))
        context.add_agent_output(LOAD_EXTRACTION, _completed("load_extraction", None, tokens=30))
        context.add_agent_output(SPEAKER_IDENTIFICATION, _failed("speaker_identification"))
        assert context.get_total_tokens_used() == 150
        assert context.get_execution_summary().total_tokens == 150


class TestHumanReview:
    def test_confident_classification_needs_no_review(self, context):
        context.add_agent_output(CLASSIFICATION, _completed("classification", _classification(0.9)))
        assert not context.requires_human_review()

    def test_low_confidence_classification(self, context):
        context.add_agent_output(CLASSIFICATION, _completed("classification", _classification(0.3)))
        assert context.requires_human_review()

    def test_failed_critical_agent(self, context):
        context.add_agent_output(CLASSIFICATION, _completed("classification", _classification(0.9)))
        context.add_agent_output(SPEAKER_IDENTIFICATION, _failed("speaker_identification"))
        assert context.requires_human_review({"classification", "speaker_identification"})
        assert not context.requires_human_review({"classification"})


class TestSnapshots:
    def test_restore_on_fresh_context(self, context, make_context, carrier_quote_lines):
        context.add_agent_output(CLASSIFICATION, _completed("classification", _classification()))
        context.add_agent_output(LOAD_EXTRACTION, _failed("load_extraction"))
        snapshot = context.create_snapshot()

        fresh = make_context(carrier_quote_lines)
        fresh.restore_from_snapshot(snapshot)
        for name in ("classification", "load_extraction"):
            assert fresh.has_agent_completed(name) == context.has_agent_completed(name)
            assert fresh.get_agent_output(name) == context.get_agent_output(name)

    def test_snapshot_is_independent_copy(self, context):
        result = _classification()
        context.add_agent_output(CLASSIFICATION, _completed("classification", result))
        snapshot = context.create_snapshot()

        result.sub_types.add("urgent")
        assert "urgent" not in snapshot.outputs["classification"].output.sub_types

    def test_restored_outputs_independent_of_snapshot(self, context, make_context, carrier_quote_lines):
        context.add_agent_output(CLASSIFICATION, _completed("classification", _classification()))
        snapshot = context.create_snapshot()

        fresh = make_context(carrier_quote_lines)
        fresh.restore_from_snapshot(snapshot)
        fresh.classification.sub_types.add("urgent")
        assert "urgent" not in snapshot.outputs["classification"].output.sub_types

    def test_other_call_raises(self, context, make_context, carrier_quote_lines):
        snapshot = context.create_snapshot()
        other = make_context(
            carrier_quote_lines,
            CallMetadata(call_id="call-2", organization_id="org-1", call_date=date(2024, 3, 15)),
        )
        with pytest.raises(ValueError, match="call-1"):
            other.restore_from_snapshot(snapshot)

    def test_snapshot_is_frozen(self, context):
        snapshot = context.create_snapshot()
        with pytest.raises(AttributeError):
            snapshot.call_id = "call-2"


def test_context_construction(sample_metadata):
    context = AgentContext("", [], sample_metadata)
    assert context.utterances == ()
    assert context.get_execution_summary().total_agents == 0
