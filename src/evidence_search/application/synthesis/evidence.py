"""
Evidence Selection and Formatting

Prepares the bounded, citation-numbered evidence set handed to the
language model, and parses the follow-up questions out of its answer.

Citation numbers are 1-based positions in the selected list, so ``[3]`` in
the answer refers to the third article returned by :func:`select_evidence`.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from evidence_search.models import Article

MAX_EVIDENCE_ARTICLES = 15
ABSTRACT_PREVIEW_CHARS = 500
MAX_FOLLOW_UP_LENGTH = 300

FOLLOW_UP_MARKER = "FOLLOW-UP QUESTIONS:"
_FOLLOW_UP_SPLIT = re.compile(re.escape(FOLLOW_UP_MARKER), re.IGNORECASE)
_NUMBERED_LINE = re.compile(r"^\d+\.\s*(.+)$")


def select_evidence(
    articles: Sequence[Article],
    max_articles: int = MAX_EVIDENCE_ARTICLES,
    sort_by_citations: bool = False,
) -> list[Article]:
    """
    Pick the articles that go into the prompt.

    Relevance order is kept unless ``sort_by_citations`` is set; the sort is
    stable so equally cited articles keep their relative order.
    """
    selected = list(articles)
    if sort_by_citations:
        selected.sort(key=lambda a: a.citation_count or 0, reverse=True)
    return selected[:max(0, max_articles)]


def format_article_block(index: int, article: Article, abstract_preview: int = ABSTRACT_PREVIEW_CHARS) -> str:
    lines = [
        f"[{index}] {article.title}",
        f"   Authors: {article.author_preview}",
        f"   Journal: {article.journal}, {article.publication_date}",
        f"   ID: {article.source_id or 'N/A'}",
    ]
    if article.study_type is not None:
        lines.append(f"   Study Type: {article.study_type.value}")
    if article.abstract:
        abstract = article.abstract
        if len(abstract) > abstract_preview:
            abstract = abstract[:abstract_preview] + "..."
        lines.append(f"   Abstract: {abstract}")
    return "\n".join(lines)


def format_evidence_context(articles: Sequence[Article], abstract_preview: int = ABSTRACT_PREVIEW_CHARS) -> str:
    """Numbered evidence blocks separated by blank lines."""
    return "\n\n".join(
        format_article_block(i, article, abstract_preview)
        for i, article in enumerate(articles, start=1)
    )


def split_follow_ups(text: str) -> tuple[str, list[str]]:
    """
    Separate the narrative answer from its follow-up questions.

    Returns:
        (answer without the follow-up section, questions)
    """
    parts = _FOLLOW_UP_SPLIT.split(text, maxsplit=1)
    if len(parts) < 2:
        return text.strip(), []

    questions: list[str] = []
    for line in parts[1].splitlines():
        match = _NUMBERED_LINE.match(line.strip())
        if not match:
            continue
        question = match.group(1).strip()
        if question and len(question) < MAX_FOLLOW_UP_LENGTH:
            questions.append(question)
    return parts[0].strip(), questions


def parse_follow_up_questions(text: str) -> list[str]:
    """Numbered questions listed after ``FOLLOW-UP QUESTIONS:`` (any case)."""
    return split_follow_ups(text)[1]
