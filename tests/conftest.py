"""Shared test fixtures for LoadVoice."""

from __future__ import annotations

from datetime import date

import pytest

from loadvoice.agents.context import AgentContext
from loadvoice.agents.models import AgentOutput, AgentStatus, CallMetadata, Utterance
from loadvoice.agents.registry import reset_registry
from loadvoice.parser.utterances import build_transcript


@pytest.fixture(autouse=True)
def fresh_registry():
    """Each test sees a newly built process-wide registry."""
    reset_registry()
    yield
    reset_registry()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep a developer's config file and API key out of the tests."""
    monkeypatch.delenv("LOADVOICE_CONFIG", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)


@pytest.fixture
def sample_metadata():
    """A minimal CallMetadata for testing."""
    return CallMetadata(
        call_id="call-1",
        organization_id="org-1",
        call_date=date(2024, 3, 15),
        duration_seconds=180,
    )


@pytest.fixture
def make_utterances():
    """Build time-ordered Utterances from (speaker, text) pairs."""
    def _make(lines):
        return [
            Utterance(
                text=text,
                speaker_label=speaker,
                start_ms=i * 5000,
                end_ms=i * 5000 + 4000,
                confidence=0.95,
            )
            for i, (speaker, text) in enumerate(lines)
        ]
    return _make


@pytest.fixture
def make_context(make_utterances, sample_metadata):
    """Build an AgentContext from (speaker, text) pairs."""
    def _make(lines, metadata=None):
        utterances = make_utterances(lines)
        return AgentContext(build_transcript(utterances), utterances, metadata or sample_metadata)
    return _make


@pytest.fixture
def record():
    """Execute an agent and record its output in the context as completed."""
    def _record(agent, context):
        output = agent.execute(context)
        context.add_agent_output(
            agent.key,
            AgentOutput(agent_name=agent.name, status=AgentStatus.COMPLETED, output=output),
        )
        return output
    return _record


# ---------------------------------------------------------------------------
# Sample calls
# ---------------------------------------------------------------------------


@pytest.fixture
def carrier_quote_lines():
    """Carrier calling in with a truck; rate negotiated down to $2,150."""
    return [
        ("A", "Hey, this is Mike with Rapid Trucking, I've got trucks available in Chicago."),
        ("B", "Great, I've got a load from Chicago to Dallas, 800 miles, dry van. What's your rate?"),
        ("A", "For that lane I'd need $2,500 all in."),
        ("B", "That's a bit high. I can do $2,000."),
        ("A", "How about $2,300?"),
        ("B", "Best I can do is $2,150."),
        ("A", "Deal, $2,150 works. MC 123456."),
    ]


@pytest.fixture
def new_booking_lines():
    """Shipper booking one load; broker quotes and the shipper accepts."""
    return [
        ("A", "Hi, this is Sarah from Acme Foods. I need to ship 20 pallets of canned goods from our warehouse in Atlanta to Miami."),
        ("B", "Sure, I can help with that. What's the weight?"),
        ("A", "About 30,000 lbs, and it needs to deliver by Friday."),
        ("B", "I can quote you $1,800 for that."),
        ("A", "That works, let's book it."),
    ]


@pytest.fixture
def multi_load_lines():
    """Shipper describing three loads by ordinal."""
    return [
        ("A", "I have three loads I need moved this week."),
        ("B", "Okay, what are the details?"),
        ("A", "The first one is Chicago to Dallas, 15 pallets of paper."),
        ("B", "Got it. And the second?"),
        ("A", "The second one is Atlanta to Miami, reefer."),
        ("A", "And the third one is Denver to Phoenix."),
    ]


@pytest.fixture
def wrong_number_lines():
    return [
        ("A", "Hello, is this Tony's Pizza?"),
        ("B", "No, sorry, you have the wrong number. This is a freight brokerage."),
        ("A", "Oh, sorry to bother you."),
    ]


@pytest.fixture
def check_call_lines():
    """Broker checking on a load in transit."""
    return [
        ("B", "Hi, this is Jenny from Swift Logistics, just checking on the load going to Denver."),
        ("A", "Yeah, my driver is about 50 miles out."),
        ("B", "Great, what's the ETA?"),
        ("A", "Should be there by 3 pm, he's on schedule."),
    ]


SHIPPER_REQUESTS = {
    "weight_of_commodity": [
        ("A", "Hi, I've got 38,000 pounds of frozen chicken going from Omaha to Denver next Tuesday."),
        ("B", "Okay, that needs a reefer. I can do $2,400."),
        ("A", "Sounds good, book it."),
    ],
    "needs_a_truck": [
        ("A", "We need a truck for a shipment of steel coils, Pittsburgh to Detroit, about 44,000 lbs."),
        ("B", "That would be a flatbed. I can get you covered for $1,650."),
        ("A", "Perfect, go ahead and book it."),
    ],
    "load_of_commodity": [
        ("A", "I have a load of furniture from Charlotte to Nashville, 12,000 pounds, dry van."),
        ("B", "Rate on that would be $1,100."),
        ("A", "Okay, that works for me."),
    ],
}


@pytest.fixture(params=list(SHIPPER_REQUESTS.values()), ids=list(SHIPPER_REQUESTS))
def shipper_request_lines(request):
    """Shippers describing freight in their own words, with a broker quote."""
    return request.param


@pytest.fixture
def carrier_quote_payload(carrier_quote_lines):
    """AssemblyAI-style payload for the carrier quote call."""
    return {
        "call_id": "call-42",
        "organization_id": "org-7",
        "call_date": "2024-03-15T14:30:00Z",
        "audio_duration": 95,
        "utterances": [
            {
                "speaker": speaker,
                "text": text,
                "start": i * 5000,
                "end": i * 5000 + 4000,
                "confidence": 0.93,
            }
            for i, (speaker, text) in enumerate(carrier_quote_lines)
        ],
    }
