"""Tests for loadvoice.agents.classification."""

from __future__ import annotations

from loadvoice.agents.classification import ClassificationAgent, detect_multi_load
from loadvoice.agents.models import CallType, ConfidenceLevel
from loadvoice.agents.routing import RoutingStrategy
from loadvoice.agents.registry import get_registry
from loadvoice.config import PipelineConfig


def _classify(context, config=None):
    return ClassificationAgent(config).execute(context)


class TestCallTypes:
    def test_carrier_quote(self, make_context, carrier_quote_lines):
        result = _classify(make_context(carrier_quote_lines))
        assert result.primary_type == CallType.CARRIER_QUOTE
        assert result.confidence.value > 0.6
        assert "trucks available" in result.indicators
        assert "counter-offer exchange" in result.indicators
        assert result.is_routable

    def test_truck_offer_with_counter_offers_variants(self, make_context):
        lines = [
            ("A", "Hi, I have two trucks open near Memphis, what's it paying to Atlanta?"),
            ("B", "I can offer $1,100 on that one."),
            ("A", "I need at least $1,400, my driver won't go lower."),
            ("B", "I'll meet you at $1,250."),
        ]
        result = _classify(make_context(lines))
        assert result.primary_type == CallType.CARRIER_QUOTE
        assert result.confidence.value > 0.6

    def test_new_booking(self, make_context, new_booking_lines):
        result = _classify(make_context(new_booking_lines))
        assert result.primary_type == CallType.NEW_BOOKING
        assert result.confidence.value > 0.6
        assert "shipment description" in result.indicators
        assert "rate_discussed" in result.sub_types

    def test_wrong_number(self, make_context, wrong_number_lines):
        result = _classify(make_context(wrong_number_lines))
        assert result.primary_type == CallType.WRONG_NUMBER
        assert result.confidence.level == ConfidenceLevel.HIGH
        plan = RoutingStrategy(get_registry()).build_execution_plan(result.primary_type)
        assert len(plan.phases) == 1

    def test_check_call(self, make_context, check_call_lines):
        result = _classify(make_context(check_call_lines))
        assert result.primary_type == CallType.CHECK_CALL
        assert "checking on" in result.indicators


class TestMultiLoad:
    def test_ordinal_shipments(self, make_context, multi_load_lines):
        result = _classify(make_context(multi_load_lines))
        assert result.multi_load_call
        assert "multi_load" in result.sub_types

    def test_single_load_is_not_multi(self, make_context, carrier_quote_lines):
        result = _classify(make_context(carrier_quote_lines))
        assert not result.multi_load_call
        assert "multi_load" not in result.sub_types

    def test_distinct_lanes(self, make_utterances):
        utterances = make_utterances([
            ("A", "I need Chicago to Dallas on Monday."),
            ("A", "Also Seattle to Portland on Tuesday."),
        ])
        assert detect_multi_load(utterances)

    def test_repeated_lane_is_single_load(self, make_utterances):
        utterances = make_utterances([
            ("A", "It's Chicago to Dallas."),
            ("B", "Chicago to Dallas, got it."),
        ])
        assert not detect_multi_load(utterances)

    def test_stated_load_count(self, make_utterances):
        assert detect_multi_load(make_utterances([("A", "We have 4 loads going out Friday.")]))


class TestEdgeCases:
    def test_empty_utterances(self, make_context):
        result = _classify(make_context([]))
        assert result.primary_type == CallType.OTHER
        assert result.confidence.level == ConfidenceLevel.LOW
        assert result.indicators == []

    def test_no_indicators(self, make_context):
        result = _classify(make_context([("A", "Hello?"), ("B", "Hi there, how are you?")]))
        assert result.primary_type == CallType.OTHER
        assert result.confidence.value == 0.3
        assert "low_confidence" in result.sub_types

    def test_weak_evidence_is_flagged_low_confidence(self, make_context):
        result = _classify(make_context([("A", "What's the rate on that?"), ("B", "Let me look.")]))
        assert not result.is_routable
        assert "low_confidence" in result.sub_types
        assert result.processing_notes

    def test_routing_threshold_from_config(self, make_context, carrier_quote_lines):
        config = PipelineConfig(routing_threshold=0.99)
        result = _classify(make_context(carrier_quote_lines), config)
        assert result.primary_type == CallType.CARRIER_QUOTE
        assert not result.is_routable


class TestSubTypes:
    def test_urgent_and_team(self, make_context):
        lines = [
            ("A", "I need to ship a hot load from Dallas to Denver, it needs team drivers."),
            ("B", "I can quote that right now."),
        ]
        result = _classify(make_context(lines))
        assert {"urgent", "team_required"} <= result.sub_types

    def test_continuation(self, make_context):
        lines = [
            ("A", "Hey, calling you back about the Chicago load we talked about."),
            ("B", "Right, what's your rate?"),
        ]
        result = _classify(make_context(lines))
        assert result.continuation_call
        assert "continuation" in result.sub_types


class TestShipperRequests:
    def test_described_shipment_is_new_booking(self, make_context, shipper_request_lines):
        result = _classify(make_context(shipper_request_lines))
        assert result.primary_type == CallType.NEW_BOOKING
        assert result.confidence.value > 0.6
        assert result.is_routable
        assert "shipment description" in result.indicators

    def test_quote_does_not_outweigh_shipment(self, make_context, shipper_request_lines):
        result = _classify(make_context(shipper_request_lines))
        assert "rate mentioned" in result.indicators
        assert result.scores[CallType.NEW_BOOKING] > 3 * result.scores[CallType.CARRIER_QUOTE]

    def test_truck_request_indicator(self, make_context):
        lines = [
            ("A", "We need a truck for Monday, Houston to Memphis."),
            ("B", "Sure, what's the commodity?"),
        ]
        result = _classify(make_context(lines))
        assert result.primary_type == CallType.NEW_BOOKING
        assert "need a truck for" in result.indicators
