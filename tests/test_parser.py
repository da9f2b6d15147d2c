"""Tests for loadvoice.parser.utterances and loadvoice.parser.lexicon."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from loadvoice.parser.lexicon import (
    EQUIPMENT_REQUEST_RE,
    find_accessorials,
    find_commodity,
    find_company,
    find_lanes,
    find_load_count,
    find_money,
    find_ordinals,
    find_weight,
    linehaul_amounts,
    resolve_day,
)
from loadvoice.parser.utterances import build_transcript, parse_metadata, parse_utterances


class TestParseUtterances:
    def test_basic(self):
        utterances = parse_utterances([
            {"speaker": "A", "text": " Hello there. ", "start": 0, "end": 1200, "confidence": 0.9},
            {"speaker": "B", "text": "Hi.", "start": 1300, "end": 1800},
        ])
        assert [u.speaker_label for u in utterances] == ["A", "B"]
        assert utterances[0].text == "Hello there."
        assert utterances[0].end_ms == 1200
        assert utterances[1].confidence == 1.0

    def test_sorted_by_start(self):
        utterances = parse_utterances([
            {"speaker": "B", "text": "Second", "start": 5000},
            {"speaker": "A", "text": "First", "start": 100},
        ])
        assert [u.text for u in utterances] == ["First", "Second"]

    def test_skips_empty_text(self):
        utterances = parse_utterances([
            {"speaker": "A", "text": "", "start": 0},
            {"speaker": "A", "text": None, "start": 10},
            {"speaker": "B", "text": "Okay", "start": 20},
        ])
        assert len(utterances) == 1

    def test_missing_speaker(self):
        assert parse_utterances([{"text": "Hello"}])[0].speaker_label == "unknown"

    def test_words(self):
        utterances = parse_utterances([{
            "speaker": "A",
            "text": "Hi there",
            "start": 0,
            "end": 900,
            "words": [
                {"text": "Hi", "start": 0, "end": 400, "confidence": 0.99, "speaker": "A"},
                {"text": "there", "start": 450, "end": 900, "confidence": 0.97, "speaker": "A"},
            ],
        }])
        assert [w.text for w in utterances[0].words] == ["Hi", "there"]

    def test_malformed_item_skipped(self):
        utterances = parse_utterances([
            {"speaker": "A", "text": "Bad timing", "start": "soon"},
            {"speaker": "B", "text": "Fine", "start": 0},
        ])
        assert [u.text for u in utterances] == ["Fine"]


class TestParseMetadata:
    def test_full_payload(self, carrier_quote_payload):
        metadata = parse_metadata(carrier_quote_payload)
        assert metadata.call_id == "call-42"
        assert metadata.organization_id == "org-7"
        assert metadata.call_date == date(2024, 3, 15)
        assert metadata.duration_seconds == 95

    def test_id_fallback(self):
        metadata = parse_metadata({"id": 99})
        assert metadata.call_id == "99"
        assert metadata.organization_id == "default"
        assert metadata.duration_seconds is None

    def test_missing_call_id(self):
        with pytest.raises(ValueError, match="call_id"):
            parse_metadata({"utterances": []})


class TestBuildTranscript:
    def test_lines(self, make_utterances):
        utterances = make_utterances([("A", "Hello."), ("B", "Hi.")])
        assert build_transcript(utterances) == "A: Hello.\nB: Hi."

    def test_empty(self):
        assert build_transcript([]) == ""


class TestLexicon:
    def test_money_forms(self):
        amounts = [m.amount for m in find_money("It's $2,150, or $2.5k, or 1800 dollars")]
        assert amounts == [2150.0, 2500.0, 1800.0]

    def test_per_mile(self):
        mention = find_money("I need $2.75 a mile on that")[0]
        assert mention.per_mile
        assert mention.amount == 2.75

    def test_accessorials_are_not_linehaul(self):
        assert linehaul_amounts("Lumper is $150") == []

    def test_lane_with_states(self):
        lane = find_lanes("It picks up in Joliet, IL to Fort Worth, TX on Monday")[0]
        assert (lane.origin, lane.origin_state) == ("Joliet", "IL")
        assert (lane.destination, lane.destination_state) == ("Fort Worth", "TX")

    def test_lane_strips_filler_words(self):
        lane = find_lanes("Okay Chicago to Dallas")[0]
        assert lane.origin == "Chicago"

    def test_ordinals_and_counts(self):
        assert find_ordinals("The first one is ready, the second is not") == {"first", "second"}
        assert find_load_count("We have three loads this week") == 3
        assert find_load_count("Just the one load") == 0

    def test_weight_in_tons(self):
        assert find_weight("about 20 tons")[0] == 40000

    def test_company_strips_leading_noise(self):
        assert find_company("Hi, This Rapid Trucking here") == "Rapid Trucking"
        assert find_company("We ship with Logistics") is None

    @pytest.mark.parametrize("text, commodity", [
        ("I've got 38,000 pounds of frozen chicken going to Denver", "frozen chicken"),
        ("It's about 20 tons of gravel, flatbed", "gravel"),
        ("We need a truck for a shipment of steel coils, Pittsburgh to Detroit", "steel coils"),
        ("I have a load of furniture from Charlotte", "furniture"),
        ("A truckload of paper towels out of Green Bay", "paper towels"),
        ("24 pallets of canned goods.", "canned goods"),
    ])
    def test_commodity_phrasings(self, text, commodity):
        assert find_commodity(text)[0] == commodity

    def test_equipment_request(self):
        assert EQUIPMENT_REQUEST_RE.search("We need a truck for Monday")
        assert EQUIPMENT_REQUEST_RE.search("we're looking for a reefer out of Fresno")
        assert not EQUIPMENT_REQUEST_RE.search("I've got a truck empty in Reno")


class TestAccessorials:
    def test_hourly_detention(self):
        charge = find_accessorials("Detention is $50 an hour after two hours.")[0]
        assert charge.charge_type == "detention"
        assert charge.money.amount == 50
        assert charge.unit == "per_hour"

    def test_amount_before_keyword(self):
        charge = find_accessorials("There's a $150 lumper at the receiver.")[0]
        assert (charge.charge_type, charge.money.amount, charge.unit) == ("lumper", 150, "flat")

    def test_keyword_without_amount(self):
        charge = find_accessorials("Is there any layover on this one?")[0]
        assert charge.charge_type == "layover"
        assert charge.money is None

    def test_linehaul_is_not_claimed(self):
        text = "I can do $1,800 for the load, plus detention at $45 an hour and a $150 lumper fee."
        charges = {c.charge_type: c for c in find_accessorials(text)}
        assert charges["detention"].money.amount == 45
        assert charges["lumper"].money.amount == 150
        assert [m.amount for m in linehaul_amounts(text)] == [1800]

    def test_large_tonu_is_not_linehaul(self):
        assert linehaul_amounts("If it cancels we pay TONU of $350.") == []


class TestResolveDay:
    # 2024-03-15 is a Friday
    CALL_DATE = date(2024, 3, 15)

    @pytest.mark.parametrize("spoken, expected", [
        ("today", date(2024, 3, 15)),
        ("tonight", date(2024, 3, 15)),
        ("tomorrow morning 8 am", date(2024, 3, 16)),
        ("tuesday", date(2024, 3, 19)),
        ("thursday 3 pm", date(2024, 3, 21)),
        ("friday", date(2024, 3, 22)),
        ("2024-04-02", date(2024, 4, 2)),
    ])
    def test_resolves(self, spoken, expected):
        assert resolve_day(spoken, self.CALL_DATE) == expected

    def test_unresolvable(self):
        assert resolve_day("next week sometime", self.CALL_DATE) is None
        assert resolve_day("2024-13-45", self.CALL_DATE) is None
        assert resolve_day("", self.CALL_DATE) is None

    def test_datetime_reference(self):
        assert resolve_day("tomorrow", datetime(2024, 3, 15, 23, 30)) == date(2024, 3, 16)
