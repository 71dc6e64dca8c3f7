"""
Answer Synthesis

Turns a question plus retrieved evidence into a cited narrative answer and
follow-up suggestions through a language-model collaborator.

Flow:
    articles ──▶ select_evidence ──▶ format_evidence_context
                                           │
            conversation history ──────────┤
                                           ▼
                         LanguageModelClient.complete (retry, 2s base)
                                           │
                                           ▼
                    split_follow_ups ──▶ SynthesizedAnswer

Answers for first-turn questions are cached under kind "answer", keyed by
the query and the sorted ids of the evidence used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from evidence_search.application.synthesis.evidence import (
    FOLLOW_UP_MARKER,
    MAX_EVIDENCE_ARTICLES,
    format_evidence_context,
    select_evidence,
    split_follow_ups,
)
from evidence_search.infrastructure.cache import ANSWER_TTL
from evidence_search.shared.async_utils import DEFAULT_MAX_ATTEMPTS, retry_with_backoff
from evidence_search.shared.exceptions import InvalidQueryError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from evidence_search.infrastructure.cache import SearchCache
    from evidence_search.infrastructure.llm import LanguageModelClient
    from evidence_search.models import Article

logger = logging.getLogger(__name__)

SYNTHESIS_INITIAL_DELAY = 2.0  # seconds

SYSTEM_PROMPT = """You are a medical information assistant that answers questions from published evidence and keeps track of the conversation so far.

Guidelines:
- Read the supplied abstracts and cite only studies that directly support a statement, using [1], [2], ... as numbered in the evidence list.
- Paraphrase; do not quote article text.
- Mention important limitations or caveats reported by the studies.
- Keep initial answers to 2-4 paragraphs and follow-up answers shorter.
- If none of the evidence is relevant, say so and answer from general medical knowledge without citations."""


@dataclass
class SynthesizedAnswer:
    """Narrative answer, follow-up suggestions and token usage."""
    response: str
    follow_up_questions: list[str] = field(default_factory=list)
    usage: dict[str, int] = field(default_factory=dict)
    evidence_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response,
            "follow_up_questions": list(self.follow_up_questions),
            "usage": dict(self.usage),
            "evidence_ids": list(self.evidence_ids),
        }


def build_messages(
    query: str,
    evidence: Sequence[Article],
    conversation_history: Sequence[Mapping[str, str]] | None = None,
) -> list[dict[str, str]]:
    """
    Chat messages for the model: prior turns, then the question with evidence.

    History roles other than "user" are sent as "assistant".
    """
    messages = [
        {
            "role": "user" if turn.get("role") == "user" else "assistant",
            "content": str(turn.get("content", "")),
        }
        for turn in conversation_history or []
    ]

    context = format_evidence_context(evidence) if evidence else "(no articles found)"
    prompt = (
        f"User Question: {query}\n\n"
        f"Relevant Research Articles:\n{context}\n\n"
        "Please provide a clear, evidence-based response.\n\n"
        "After your response, suggest 3 follow-up questions the user might ask, formatted as:\n\n"
        f"{FOLLOW_UP_MARKER}\n1. [Question 1]\n2. [Question 2]\n3. [Question 3]"
    )
    messages.append({"role": "user", "content": prompt})
    return messages


class AnswerSynthesizer:
    """
    Evidence-grounded answer generation.

    Usage:
        synthesizer = AnswerSynthesizer(AnthropicClient(api_key=...), cache=cache)
        answer = await synthesizer.generate(question, response.articles)
        print(answer.response)
        print(answer.follow_up_questions)
    """

    def __init__(
        self,
        llm: LanguageModelClient,
        cache: SearchCache | None = None,
        max_articles: int = MAX_EVIDENCE_ARTICLES,
        answer_ttl: float = ANSWER_TTL,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay: float = SYNTHESIS_INITIAL_DELAY,
    ):
        self._llm = llm
        self._cache = cache
        self._max_articles = max_articles
        self._answer_ttl = answer_ttl
        self._max_attempts = max_attempts
        self._initial_delay = initial_delay

    async def generate(
        self,
        query: str,
        articles: Sequence[Article],
        conversation_history: Sequence[Mapping[str, str]] | None = None,
    ) -> SynthesizedAnswer:
        """
        Answer ``query`` from ``articles``.

        Raises:
            InvalidQueryError: Empty query
            EvidenceSearchError: Model call failed after retries
        """
        query = (query or "").strip()
        if not query:
            raise InvalidQueryError(query)

        evidence = select_evidence(articles, self._max_articles)
        evidence_ids = [str(a.source_id) for a in evidence if a.source_id]

        async def compute() -> SynthesizedAnswer:
            return await self._synthesize(query, evidence, conversation_history, evidence_ids)

        # Follow-up turns depend on the history, which is not part of the key
        if self._cache is None or conversation_history:
            return await compute()
        return await self._cache.cache_answer(query, evidence_ids, compute, self._answer_ttl)

    async def _synthesize(
        self,
        query: str,
        evidence: Sequence[Article],
        conversation_history: Sequence[Mapping[str, str]] | None,
        evidence_ids: list[str],
    ) -> SynthesizedAnswer:
        messages = build_messages(query, evidence, conversation_history)
        logger.info(
            f"Generating answer for '{query[:50]}' from {len(evidence)} articles "
            f"({len(messages) - 1} history turns)"
        )

        result = await retry_with_backoff(
            lambda: self._llm.complete(SYSTEM_PROMPT, messages),
            max_attempts=self._max_attempts,
            initial_delay=self._initial_delay,
        )

        response, follow_ups = split_follow_ups(result.text)
        logger.info(f"Answer ready: {len(response)} chars, {len(follow_ups)} follow-up questions")
        return SynthesizedAnswer(
            response=response,
            follow_up_questions=follow_ups,
            usage=dict(result.usage),
            evidence_ids=evidence_ids,
        )
