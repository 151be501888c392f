from __future__ import annotations

import logging
from typing import Any, Iterator

from openai import OpenAI

from .config import AgentConfig


logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class CompletionClient:
    """
    Chat completions over OpenRouter's OpenAI-compatible API.

    ``complete`` returns the raw response object; ``stream`` yields the text
    deltas of a streamed answer. The OpenAI client is built on first use so a
    missing key only fails the turn that needs it.
    """

    def __init__(self, config: AgentConfig, client: OpenAI | None = None):
        self.config = config
        self._client = client

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                base_url=OPENROUTER_BASE_URL,
                api_key=self.config.credential("openrouter"),
            )
        return self._client

    def complete(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str = "auto",
    ) -> Any:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = tool_choice
        return self._get_client().chat.completions.create(**kwargs)

    def stream(
        self,
        messages: list[dict[str, Any]],
        model: str,
        tools: list[dict[str, Any]] | None = None,
        tool_choice: str = "none",
    ) -> Iterator[str]:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "stream": True,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = tool_choice

        for chunk in self._get_client().chat.completions.create(**kwargs):
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            content = getattr(delta, "content", None)
            if content:
                yield content
