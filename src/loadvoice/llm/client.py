"""Claude client used by the extraction agents for optional refinement."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

from loadvoice.config import LLM_REQUEST_TIMEOUT, MODEL_DEFAULT

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    content: str
    input_tokens: int
    output_tokens: int
    model: str

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class AnthropicAPIClient:
    """Direct Anthropic API client using the anthropic Python SDK."""

    def __init__(self, api_key: str, model: str = MODEL_DEFAULT, timeout: float = LLM_REQUEST_TIMEOUT):
        import anthropic

        self.client = anthropic.Anthropic(api_key=api_key, timeout=timeout)
        self.model = model

    def complete(
        self, system: str, user: str, max_tokens: int = 2048
    ) -> LLMResponse:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        return LLMResponse(
            content=response.content[0].text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=self.model,
        )


# Global callback client, set by an embedding application
_callback_client = None


class CallbackClient:
    """Client that delegates to a user-provided callback function.

    Lets an embedding application route completions through its own LLM
    integration. Token usage is not reported.
    """

    def __init__(self, callback, model: str = MODEL_DEFAULT):
        self.callback = callback
        self.model = model

    def complete(
        self, system: str, user: str, max_tokens: int = 2048
    ) -> LLMResponse:
        content = self.callback(system, user)
        return LLMResponse(
            content=content,
            input_tokens=0,
            output_tokens=0,
            model=self.model,
        )


def set_callback_client(callback):
    """Set a callback function used by mode="auto" when no API key is set.

    The callback should accept (system: str, user: str) -> str. Pass None
    to clear it.
    """
    global _callback_client
    _callback_client = CallbackClient(callback) if callback else None


def create_client(
    mode: str = "auto", model: str = MODEL_DEFAULT
) -> Optional[AnthropicAPIClient | CallbackClient]:
    """Factory function for creating an LLM client.

    mode="auto": use API key if set, else callback client if set, else no client.
    mode="api": require ANTHROPIC_API_KEY.
    mode="none": heuristic extraction only.
    """
    if mode == "auto":
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if api_key:
            return AnthropicAPIClient(api_key, model)
        if _callback_client:
            return _callback_client
        logger.debug("No LLM credentials found; running heuristics only")
        return None
    elif mode == "api":
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")
        return AnthropicAPIClient(api_key, model)
    elif mode == "none":
        return None
    else:
        raise ValueError(f"Unknown LLM mode: {mode}")


def complete_with_retry(
    client,
    system: str,
    user: str,
    max_tokens: int = 2048,
    retries: int = 3,
    backoff: float = 2.0,
) -> LLMResponse:
    """Call the LLM with exponential backoff retries."""
    for attempt in range(retries):
        try:
            return client.complete(system, user, max_tokens)
        except Exception as e:
            if attempt == retries - 1:
                raise
            wait = backoff ** attempt
            logger.warning(f"LLM call failed (attempt {attempt + 1}): {e}. Retrying in {wait}s...")
            time.sleep(wait)
