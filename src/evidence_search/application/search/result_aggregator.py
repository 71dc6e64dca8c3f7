"""
ResultAggregator - Multi-Source Result Reconciliation

Merges adapter result lists into one deduplicated, bounded list:
1. Flatten in plan order (primary sources first)
2. Deduplicate with a seen-set keyed by source_id (lower-cased title when
   the id is missing); the first occurrence wins, so source priority is the
   tie-break for which duplicate survives
3. Bound to max_results, preserving relevance order unless a citation sort
   is requested

Architecture Decision:
    ResultAggregator does NOT make API calls - purely processes existing
    results. Duplicates are dropped, not merged; enrichment refines the
    survivors afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from evidence_search.models import Article

DEFAULT_MAX_RESULTS = 20


@dataclass
class AggregationStats:
    """Statistics from aggregation process."""

    total_input: int = 0
    unique_articles: int = 0
    duplicates_removed: int = 0
    returned: int = 0
    by_source: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "total_input": self.total_input,
            "unique_articles": self.unique_articles,
            "duplicates_removed": self.duplicates_removed,
            "returned": self.returned,
            "by_source": dict(self.by_source),
        }


def deduplicate(articles: Iterable[Article]) -> list[Article]:
    """Drop later occurrences of an already seen dedup key."""
    seen: set[str] = set()
    unique: list[Article] = []
    for article in articles:
        key = article.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(article)
    return unique


def bound(
    articles: list[Article],
    max_results: int = DEFAULT_MAX_RESULTS,
    sort_by_citations: bool = False,
) -> list[Article]:
    """
    Truncate to ``max_results``.

    The citation sort is stable, so articles with equal counts keep their
    relevance order.
    """
    if sort_by_citations:
        articles = sorted(articles, key=lambda a: a.citation_count or 0, reverse=True)
    return articles[:max(0, max_results)]


class ResultAggregator:
    """
    Combines per-source result lists.

    Usage:
        aggregator = ResultAggregator(max_results=20)
        unique, stats = aggregator.aggregate([pubmed_results, openalex_results])
        top = aggregator.bound(unique)
    """

    def __init__(self, max_results: int = DEFAULT_MAX_RESULTS):
        self._max_results = max_results

    @property
    def max_results(self) -> int:
        return self._max_results

    def aggregate(self, article_lists: Iterable[Iterable[Article]]) -> tuple[list[Article], AggregationStats]:
        """
        Flatten and deduplicate.

        Args:
            article_lists: Result lists in priority order

        Returns:
            Tuple of (deduplicated articles, aggregation statistics)
        """
        stats = AggregationStats()

        all_articles: list[Article] = []
        for articles in article_lists:
            for article in articles:
                all_articles.append(article)
                source = article.source
                stats.by_source[source] = stats.by_source.get(source, 0) + 1

        stats.total_input = len(all_articles)
        unique = deduplicate(all_articles)
        stats.unique_articles = len(unique)
        stats.duplicates_removed = stats.total_input - stats.unique_articles
        stats.returned = stats.unique_articles
        return unique, stats

    def bound(
        self,
        articles: list[Article],
        max_results: int | None = None,
        sort_by_citations: bool = False,
        stats: AggregationStats | None = None,
    ) -> list[Article]:
        limit = self._max_results if max_results is None else max_results
        bounded = bound(articles, limit, sort_by_citations)
        if stats is not None:
            stats.returned = len(bounded)
        return bounded
