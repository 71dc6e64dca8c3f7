"""Language-model collaborator used by answer synthesis."""

from __future__ import annotations

from evidence_search.infrastructure.llm.anthropic_client import (
    AnthropicClient,
    CompletionResult,
    LanguageModelClient,
)

__all__ = ["AnthropicClient", "CompletionResult", "LanguageModelClient"]
