"""Drives one pipeline run: classification, routing, then phase execution."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from datetime import datetime
from typing import Optional

from loadvoice.agents.base import Agent
from loadvoice.agents.context import AgentContext
from loadvoice.agents.errors import AgentFailure, DependencyUnmet, PlanValidationError
from loadvoice.agents.keys import CLASSIFICATION
from loadvoice.agents.models import (
    AgentDescriptor,
    AgentOutput,
    AgentStatus,
    CallType,
    Phase,
)
from loadvoice.agents.registry import AgentRegistry, builtin_agent_classes, get_registry
from loadvoice.agents.routing import RoutingStrategy
from loadvoice.config import PipelineConfig

logger = logging.getLogger(__name__)

# Exception types worth one retry for agents that allow it
RECOVERABLE_ERRORS = (TimeoutError, json.JSONDecodeError, ConnectionError)


def default_agents(config: PipelineConfig, llm_client=None) -> dict[str, Agent]:
    return {
        cls.descriptor.name: cls(config=config, llm_client=llm_client)
        for cls in builtin_agent_classes()
    }


class AgentCoordinator:
    """Schedules agents phase by phase against one AgentContext per run.

    The coordinator itself keeps no per-call state, so a single instance may
    run many calls, each with its own context.
    """

    def __init__(
        self,
        registry: AgentRegistry | None = None,
        agents: dict[str, Agent] | None = None,
        config: PipelineConfig | None = None,
        llm_client=None,
    ):
        self.registry = registry or get_registry()
        self.config = config or PipelineConfig()
        self.agents = agents if agents is not None else default_agents(self.config, llm_client)
        self.routing = RoutingStrategy(self.registry)

    # -----------------------------------------------------------------------
    # Plan inspection
    # -----------------------------------------------------------------------

    def get_agents_for_call_type(self, call_type: CallType | str) -> list[AgentDescriptor]:
        plan = self.routing.build_execution_plan(call_type)
        result = [self.registry.get(CLASSIFICATION.name)]
        seen = {CLASSIFICATION.name}
        for phase in plan.phases:
            for descriptor in phase.agents:
                if descriptor.name not in seen:
                    seen.add(descriptor.name)
                    result.append(descriptor)
        return result

    def get_execution_order(self, call_type: CallType | str) -> list[list[str]]:
        plan = self.routing.build_execution_plan(call_type)
        return [[CLASSIFICATION.name]] + [phase.agent_names for phase in plan.phases]

    def get_critical_agents(self, call_type: CallType | str) -> set[str]:
        return self.routing.get_critical_agents(call_type)

    # -----------------------------------------------------------------------
    # Execution
    # -----------------------------------------------------------------------

    def run(
        self,
        context: AgentContext,
        initial_agents: Iterable[str] = (CLASSIFICATION.name,),
        cancel_event: Optional[threading.Event] = None,
    ) -> AgentContext:
        """Run the pipeline for one call and return its (possibly partial) context.

        Only PlanValidationError escapes; agent failures are recorded in the
        context and the critical-agent rule decides whether later phases run.
        """
        call_id = context.metadata.call_id
        initial = [self._initial_descriptor(name) for name in initial_agents]

        pool = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix=f"loadvoice-{call_id}",
        )
        try:
            self._run_phase(Phase(name="classification", agents=tuple(initial)), context, pool)

            if not context.has_agent_completed(CLASSIFICATION):
                logger.warning(f"[{call_id}] Classification failed; no further phases")
                return context

            classification = context.classification
            plan = self.routing.build_execution_plan(
                classification.primary_type, classification.sub_types
            )
            critical = self.routing.get_critical_agents(plan.call_type)
            logger.info(
                f"[{call_id}] Routing {plan.call_type.value} call through "
                f"{len(plan.phases)} phase(s)"
            )

            for phase in plan.phases:
                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"[{call_id}] Cancelled before phase {phase.name}")
                    break

                self._run_phase(phase, context, pool)

                failed_critical = [
                    name for name in phase.agent_names
                    if name in critical
                    and context.get_agent_result(name).status == AgentStatus.FAILED
                ]
                if failed_critical:
                    logger.warning(
                        f"[{call_id}] Critical agent(s) failed in {phase.name}: "
                        f"{', '.join(failed_critical)}; stopping"
                    )
                    break
        finally:
            # Timed-out agents may still be running; their results are discarded.
            pool.shutdown(wait=False, cancel_futures=True)

        summary = context.get_execution_summary()
        logger.info(
            f"[{call_id}] Pipeline finished: {summary.completed} completed, "
            f"{summary.failed} failed, {summary.total_tokens} tokens"
        )
        return context

    def _initial_descriptor(self, name: str) -> AgentDescriptor:
        descriptor = self.registry.get(name)
        if descriptor is None:
            raise PlanValidationError(f"Agent {name} is not registered")
        return descriptor

    def _run_phase(self, phase: Phase, context: AgentContext, pool: ThreadPoolExecutor):
        call_id = context.metadata.call_id
        logger.debug(f"[{call_id}] Executing phase: {phase.name}")

        futures: dict[str, Future] = {}
        for descriptor in phase.agents:
            name = descriptor.name
            if context.has_agent_completed(name):
                logger.debug(f"[{call_id}] {name} already completed, skipping")
                continue

            missing = [d for d in descriptor.dependencies if not context.has_agent_completed(d)]
            if missing:
                error = DependencyUnmet(name, missing)
                logger.warning(f"[{call_id}] {error}")
                context.add_agent_output(
                    name, AgentOutput(agent_name=name, status=AgentStatus.FAILED, error=str(error))
                )
                continue

            agent = self.agents.get(name)
            if agent is None:
                context.add_agent_output(
                    name,
                    AgentOutput(
                        agent_name=name,
                        status=AgentStatus.FAILED,
                        error=str(AgentFailure(name, "no agent instance configured")),
                    ),
                )
                continue

            context.add_agent_output(
                name,
                AgentOutput(agent_name=name, status=AgentStatus.RUNNING, started_at=datetime.now()),
            )
            futures[name] = pool.submit(self._execute_agent, agent, context)

        phase_start = time.monotonic()
        for name, future in futures.items():
            agent_timeout = self.agents[name].timeout
            remaining = max(0.0, phase_start + agent_timeout - time.monotonic())
            try:
                context.add_agent_output(name, future.result(timeout=remaining))
            except FutureTimeout:
                future.cancel()
                error = AgentFailure(name, f"timed out after {agent_timeout}s", recoverable=True)
                logger.error(f"[{call_id}] {error}")
                context.add_agent_output(
                    name,
                    AgentOutput(
                        agent_name=name,
                        status=AgentStatus.FAILED,
                        error=str(error),
                        execution_time_ms=int(agent_timeout * 1000),
                        started_at=context.get_agent_result(name).started_at,
                        finished_at=datetime.now(),
                    ),
                )

    def _execute_agent(self, agent: Agent, context: AgentContext) -> AgentOutput:
        """Run one agent, converting every failure into a failed AgentOutput."""
        call_id = context.metadata.call_id
        attempts = 2 if agent.retry_on_failure else 1
        started_at = datetime.now()
        start = time.monotonic()

        for attempt in range(attempts):
            try:
                output = agent.execute(context)
                if not agent.validate_output(output):
                    raise AgentFailure(
                        agent.name, f"invalid output of type {type(output).__name__}"
                    )
                elapsed = int((time.monotonic() - start) * 1000)
                logger.debug(f"[{call_id}] {agent.name} completed in {elapsed}ms")
                return AgentOutput(
                    agent_name=agent.name,
                    status=AgentStatus.COMPLETED,
                    output=output,
                    execution_time_ms=elapsed,
                    tokens_used=getattr(output, "tokens_used", None),
                    started_at=started_at,
                    finished_at=datetime.now(),
                )
            except Exception as e:
                recoverable = isinstance(e, RECOVERABLE_ERRORS) or getattr(e, "recoverable", False)
                if recoverable and attempt < attempts - 1:
                    logger.warning(
                        f"[{call_id}] {agent.name} failed ({e}); retrying"
                    )
                    continue
                failure = e if isinstance(e, AgentFailure) else AgentFailure(
                    agent.name, f"{type(e).__name__}: {e}", recoverable
                )
                logger.error(f"[{call_id}] {failure}")
                return AgentOutput(
                    agent_name=agent.name,
                    status=AgentStatus.FAILED,
                    error=str(failure),
                    execution_time_ms=int((time.monotonic() - start) * 1000),
                    started_at=started_at,
                    finished_at=datetime.now(),
                )
