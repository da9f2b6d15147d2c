"""Catalog of available agents and their declared dependencies."""

from __future__ import annotations

import logging
import threading
from typing import Optional

from loadvoice.agents.models import AgentDescriptor

logger = logging.getLogger(__name__)


def builtin_agent_classes() -> list[type]:
    """Agent classes shipped with LoadVoice, in registration order."""
    # Imported here: agent modules import the agents package themselves.
    from loadvoice.agents.classification import ClassificationAgent
    from loadvoice.agents.speakers import SpeakerIdentificationAgent
    from loadvoice.extraction.entities import EntityExtractionAgent
    from loadvoice.extraction.loads import LoadExtractionAgent
    from loadvoice.extraction.rates import RateNegotiationAgent
    from loadvoice.extraction.validation import ValidationAgent

    return [
        ClassificationAgent,
        SpeakerIdentificationAgent,
        LoadExtractionAgent,
        RateNegotiationAgent,
        EntityExtractionAgent,
        ValidationAgent,
    ]


class AgentRegistry:
    """Static description of the agents a pipeline may schedule.

    Holds descriptors only; the coordinator owns the agent instances. Safe
    to share between concurrent runs once initialized.
    """

    def __init__(self):
        self._descriptors: dict[str, AgentDescriptor] = {}
        self._initialized = False
        self._lock = threading.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self):
        with self._lock:
            if self._initialized:
                return
            for agent_cls in builtin_agent_classes():
                self._descriptors[agent_cls.descriptor.name] = agent_cls.descriptor
            self._initialized = True
        logger.debug(f"Agent registry initialized with {len(self._descriptors)} agents")

    def register(self, descriptor: AgentDescriptor):
        with self._lock:
            self._descriptors[descriptor.name] = descriptor
        logger.debug(f"Registered agent: {descriptor.name}")

    def get(self, name: str) -> Optional[AgentDescriptor]:
        return self._descriptors.get(name)

    def has(self, name: str) -> bool:
        return name in self._descriptors

    def descriptors(self) -> list[AgentDescriptor]:
        return list(self._descriptors.values())

    def clear(self):
        """Empty the catalog. Call initialize() again before reuse."""
        with self._lock:
            self._descriptors.clear()
            self._initialized = False


_registry: Optional[AgentRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> AgentRegistry:
    """Return the process-wide registry, creating and initializing it once."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = AgentRegistry()
    _registry.initialize()
    return _registry


def reset_registry():
    """Drop the process-wide registry. Test hook; production code never calls it."""
    global _registry
    with _registry_lock:
        _registry = None
