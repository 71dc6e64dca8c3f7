"""
MultiSourceSearcher - Routed, Concurrent, Cached Literature Search

Pipeline for one question:

    query ──▶ QueryRouter ──▶ adapters (concurrent, join-all)
                                  │
                                  ▼
                  flatten in plan order (primary first)
                                  │
                                  ▼
                 ResultAggregator (dedup) ──▶ EnrichmentPipeline
                                  │
                                  ▼
                         bound to max_results

The whole pipeline is memoised in SearchCache under kind "search".

Adapters never raise: a failing or timed-out provider contributes an empty
list and the rest of the plan still completes. Failures outside the
adapters propagate as classified EvidenceSearchError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Protocol

from evidence_search.application.search.query_router import QueryRouter, RoutingDecision
from evidence_search.application.search.result_aggregator import AggregationStats, ResultAggregator
from evidence_search.infrastructure.cache import SEARCH_TTL
from evidence_search.models import Article, SearchFilters, SearchSource
from evidence_search.shared.async_utils import gather_all, retry_with_backoff
from evidence_search.shared.exceptions import (
    EvidenceSearchError,
    InvalidParameterError,
    InvalidQueryError,
    classify_http_error,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from evidence_search.application.search.enrichment import EnrichmentPipeline
    from evidence_search.infrastructure.cache import SearchCache

logger = logging.getLogger(__name__)

DUAL_SOURCES = (SearchSource.PUBMED.value, SearchSource.EUROPE_PMC.value)
DEFAULT_SOURCE_LIMIT = 20


class SearchAdapter(Protocol):
    """A provider adapter: never raises, returns normalised Articles."""

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int | None = None,
        **options: Any,
    ) -> list[Article]: ...


@dataclass
class SearchResponse:
    """Result of a routed search."""

    query: str
    articles: list[Article]
    decision: RoutingDecision | None = None
    stats: AggregationStats = field(default_factory=AggregationStats)
    filters: SearchFilters = field(default_factory=SearchFilters)

    @property
    def total(self) -> int:
        return len(self.articles)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "query": self.query,
            "total": self.total,
            "filters": self.filters.to_dict(),
            "routing": self.decision.to_dict() if self.decision else None,
            "stats": self.stats.to_dict(),
            "articles": [article.to_dict() for article in self.articles],
        }


class MultiSourceSearcher:
    """
    Aggregation engine over the search adapters.

    Usage:
        searcher = MultiSourceSearcher(
            adapters={"pubmed": pubmed, "europepmc": epmc, ...},
            router=QueryRouter(),
            aggregator=ResultAggregator(max_results=20),
            enrichment=EnrichmentPipeline(crossref, unpaywall),
            cache=SearchCache(),
        )
        response = await searcher.search("aspirin stroke prevention elderly")
    """

    def __init__(
        self,
        adapters: Mapping[str, SearchAdapter],
        router: QueryRouter | None = None,
        aggregator: ResultAggregator | None = None,
        enrichment: EnrichmentPipeline | None = None,
        cache: SearchCache | None = None,
        search_ttl: float = SEARCH_TTL,
    ):
        self._adapters = dict(adapters)
        self._router = router or QueryRouter()
        self._aggregator = aggregator or ResultAggregator()
        self._enrichment = enrichment
        self._cache = cache
        self._search_ttl = search_ttl

    @property
    def sources(self) -> list[str]:
        return list(self._adapters)

    def route(self, query: str) -> RoutingDecision:
        """Routing decision only, without querying any provider."""
        return self._router.route(query)

    # ------------------------------------------------------------------
    # Search operations
    # ------------------------------------------------------------------

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        enrich: bool = True,
        sources: Iterable[str] | None = None,
        max_results: int | None = None,
    ) -> SearchResponse:
        """
        Routed multi-source search.

        Args:
            query: Medical question or search terms
            filters: Date range and study type filters
            enrich: Run CrossRef/Unpaywall enrichment on the results
            sources: Restrict the routing plan to these sources
            max_results: Override the aggregator's bound

        Returns:
            SearchResponse; an empty article list when every provider is empty

        Raises:
            InvalidQueryError: Empty query
            InvalidParameterError: Unknown source
            EvidenceSearchError: Failure outside the adapters
        """
        query = self._validate_query(query)
        filters = filters or SearchFilters()
        selected = self._validate_sources(sources)
        limit = self._aggregator.max_results if max_results is None else max_results

        async def compute() -> SearchResponse:
            return await retry_with_backoff(
                lambda: self._run_pipeline(query, filters, enrich, selected, limit)
            )

        if self._cache is None:
            return await compute()
        payload = {
            "query": query,
            "filters": filters.to_dict(),
            "enrich": enrich,
            "sources": sorted(selected) if selected is not None else None,
            "max_results": limit,
        }
        return await self._cache.get_or_compute("search", payload, compute, self._search_ttl)

    async def search_source(
        self,
        source: str,
        query: str,
        filters: SearchFilters | None = None,
        limit: int = DEFAULT_SOURCE_LIMIT,
    ) -> list[Article]:
        """Single adapter search, bypassing routing and enrichment."""
        query = self._validate_query(query)
        self._validate_sources([source])
        return await self._search_one(source, query, filters or SearchFilters(), limit, {})

    async def search_dual(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int = DEFAULT_SOURCE_LIMIT,
    ) -> SearchResponse:
        """PubMed and Europe PMC without routing or enrichment."""
        query = self._validate_query(query)
        filters = filters or SearchFilters()
        planned = [source for source in DUAL_SOURCES if source in self._adapters]

        results = await gather_all(*(self._search_one(s, query, filters, limit, {}) for s in planned))
        unique, stats = self._aggregator.aggregate(results)
        articles = self._aggregator.bound(unique, stats=stats)
        return SearchResponse(query=query, articles=articles, stats=stats, filters=filters)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run_pipeline(
        self,
        query: str,
        filters: SearchFilters,
        enrich: bool,
        selected: set[str] | None,
        max_results: int,
    ) -> SearchResponse:
        try:
            decision = QueryRouter.filter_sources(self._router.route(query), selected, filters.study_type)
            planned = [source for source in decision.sources if source in self._adapters]

            results = await gather_all(*(
                self._search_one(
                    source,
                    query,
                    filters,
                    decision.limit_for(source),
                    decision.options_for(source),
                )
                for source in planned
            ))

            unique, stats = self._aggregator.aggregate(results)
            if enrich and self._enrichment is not None and unique:
                unique = await self._enrichment.enrich(unique)
            articles = self._aggregator.bound(unique, max_results, stats=stats)
        except EvidenceSearchError:
            raise
        except Exception as e:
            raise classify_http_error(e, "search") from e

        logger.info(
            f"Search '{query[:50]}': {stats.total_input} results, "
            f"{stats.duplicates_removed} duplicates, returning {len(articles)}"
        )
        return SearchResponse(query=query, articles=articles, decision=decision, stats=stats, filters=filters)

    async def _search_one(
        self,
        source: str,
        query: str,
        filters: SearchFilters,
        limit: int,
        options: dict[str, Any],
    ) -> list[Article]:
        adapter = self._adapters.get(source)
        if adapter is None:
            return []

        # Routing may ask for a study type the user left open
        study_type = options.pop("study_type", None)
        if study_type and filters.study_type == "all":
            filters = replace(filters, study_type=study_type)

        try:
            articles = await adapter.search(query, filters, limit, **options)
        except Exception as e:
            logger.warning(f"{source} search failed: {e}")
            return []

        logger.info(f"{source}: {len(articles)} results")
        return articles

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_query(query: str | None) -> str:
        cleaned = (query or "").strip()
        if not cleaned:
            raise InvalidQueryError(query)
        return cleaned

    def _validate_sources(self, sources: Iterable[str] | None) -> set[str] | None:
        if sources is None:
            return None
        selected = set(sources)
        known = {s.value for s in SearchSource}
        unknown = selected - known
        if unknown:
            raise InvalidParameterError("sources", sorted(unknown), " | ".join(sorted(known)))
        return selected
