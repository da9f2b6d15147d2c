"""Single entry point for the call-processing job.

The job hands over a transcript, its utterances and call metadata, and
receives the populated outputs plus a summary. Transcript acquisition and
CRM persistence stay with the caller.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from loadvoice.agents.context import AgentContext, ContextSnapshot
from loadvoice.agents.coordinator import AgentCoordinator
from loadvoice.agents.models import (
    AgentOutput,
    CallMetadata,
    ClassificationResult,
    ExecutionSummary,
    SpeakerRoleMap,
    Utterance,
)
from loadvoice.config import PipelineConfig, load_config
from loadvoice.llm.client import create_client
from loadvoice.parser.utterances import build_transcript, parse_metadata, parse_utterances

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    outputs: dict[str, AgentOutput]
    classification: Optional[ClassificationResult]
    speakers: Optional[SpeakerRoleMap]
    summary: ExecutionSummary
    requires_human_review: bool
    context: AgentContext

    @property
    def call_id(self) -> str:
        return self.context.metadata.call_id


def process_call(
    transcript: str | None,
    utterances: list[Utterance],
    metadata: CallMetadata,
    config: PipelineConfig | None = None,
    coordinator: AgentCoordinator | None = None,
    llm_client=None,
    snapshot: ContextSnapshot | None = None,
    cancel_event: threading.Event | None = None,
) -> PipelineResult:
    """Run the full agent pipeline for one call.

    Args:
        transcript: Flat transcript text. Built from utterances if None.
        utterances: Diarized, time-ordered utterances.
        metadata: Call identity and date.
        config: Settings; loaded from the config file if None.
        coordinator: Reuse a coordinator across calls. Built from config if None.
        llm_client: Client for refinement. Created from config.llm_mode if None
            and no coordinator is given.
        snapshot: Earlier outputs of this same call; completed agents are not rerun.
        cancel_event: Set it to stop before the next phase.

    Returns:
        PipelineResult with every recorded agent output.
    """
    if coordinator is None:
        config = config or load_config()
        if llm_client is None:
            llm_client = create_client(config.llm_mode, config.model)
        coordinator = AgentCoordinator(config=config, llm_client=llm_client)

    if transcript is None:
        transcript = build_transcript(utterances)

    context = AgentContext(transcript, utterances, metadata)
    if snapshot is not None:
        context.restore_from_snapshot(snapshot)

    logger.info(f"[{metadata.call_id}] Processing call ({len(utterances)} utterances)")
    coordinator.run(context, cancel_event=cancel_event)

    classification = context.classification
    critical = (
        coordinator.get_critical_agents(classification.primary_type)
        if classification else None
    )
    return PipelineResult(
        outputs=context.outputs(),
        classification=classification,
        speakers=context.speakers,
        summary=context.get_execution_summary(),
        requires_human_review=context.requires_human_review(critical),
        context=context,
    )


def process_payload(payload: dict, **kwargs) -> PipelineResult:
    """Run the pipeline on a raw transcription payload.

    The payload carries call metadata keys (see parse_metadata), an
    "utterances" list in AssemblyAI shape, and optionally "text".
    """
    utterances = parse_utterances(payload.get("utterances") or [])
    metadata = parse_metadata(payload)
    return process_call(payload.get("text"), utterances, metadata, **kwargs)
