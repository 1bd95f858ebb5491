"""Text completion backends."""

import logging
from abc import ABC, abstractmethod
from typing import Any

import anthropic

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class CompletionError(Exception):
    """The completion provider failed or returned nothing usable."""


class Completer(ABC):
    """Turns a system/user prompt pair into text."""

    @abstractmethod
    def complete(self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int) -> str:
        ...

    def get_default_max_tokens(self) -> int:
        return 1000


class AnthropicCompleter(Completer):
    """Completions from the Claude Messages API."""

    def __init__(self, config: dict[str, Any]):
        api_key = config.get("claude_api_key")
        if not api_key:
            raise ValueError(
                "Claude API key required. Set ANTHROPIC_API_KEY or claude_api_key in config."
            )
        self.client = anthropic.Anthropic(api_key=api_key)
        self.model = config.get("claude_model", DEFAULT_MODEL)
        self.default_max_tokens = config.get("prompt", {}).get("max_tokens", 1000)

    def get_default_max_tokens(self) -> int:
        return self.default_max_tokens

    def complete(self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int) -> str:
        logger.debug(f"Requesting completion from {self.model} (max_tokens={max_tokens})")
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as e:
            raise CompletionError(f"Claude request failed: {e}") from e

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text")
        if not text.strip():
            raise CompletionError("Claude returned an empty response")
        return text
