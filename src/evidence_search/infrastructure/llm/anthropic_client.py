"""
Anthropic Messages API Client

Language-model collaborator for answer synthesis. The synthesis service
depends only on the LanguageModelClient protocol; this module provides the
httpx-based implementation used in production.

API Documentation: https://docs.anthropic.com/en/api/messages
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from evidence_search.infrastructure.sources.base_client import BaseAPIClient
from evidence_search.shared.exceptions import ConfigurationError, ParseError

logger = logging.getLogger(__name__)

ANTHROPIC_API_BASE = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TIMEOUT = 120.0


@dataclass
class CompletionResult:
    """Generated text plus token usage reported by the provider."""
    text: str
    usage: dict[str, int] = field(default_factory=dict)


class LanguageModelClient(Protocol):
    """Anything that turns a system prompt and chat messages into text."""

    async def complete(self, system_prompt: str, messages: list[dict[str, str]]) -> CompletionResult: ...


class AnthropicClient(BaseAPIClient):
    """
    Minimal Messages API client.

    Retries are left to the caller (the synthesis service applies the shared
    retry policy with a longer initial delay), so each call is one attempt.

    Usage:
        client = AnthropicClient(api_key="sk-...")
        result = await client.complete("You are ...", [{"role": "user", "content": "Hi"}])
        print(result.text)
    """

    _service_name = "Anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        super().__init__(
            base_url=ANTHROPIC_API_BASE,
            timeout=timeout,
            min_interval=0.0,
            max_attempts=1,
            headers={
                "Content-Type": "application/json",
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )

    @property
    def model(self) -> str:
        return self._model

    async def complete(self, system_prompt: str, messages: list[dict[str, str]]) -> CompletionResult:
        """
        Generate a reply.

        Raises:
            ConfigurationError: No API key configured
            EvidenceSearchError: Classified transport/provider failure
        """
        if not self._api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is not configured")

        body: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "system": system_prompt,
            "messages": messages,
        }
        data = await self._make_request(
            "/messages",
            method="POST",
            json_body=body,
            headers={"x-api-key": self._api_key},
        )

        text = "".join(
            block.get("text", "")
            for block in (data or {}).get("content") or []
            if isinstance(block, dict) and block.get("type", "text") == "text"
        )
        if not text:
            raise ParseError("response contained no text content", source=self._service_name)

        usage = {k: v for k, v in ((data or {}).get("usage") or {}).items() if isinstance(v, int)}
        if usage:
            logger.info(f"Token usage - input: {usage.get('input_tokens')}, output: {usage.get('output_tokens')}")
        return CompletionResult(text=text, usage=usage)
