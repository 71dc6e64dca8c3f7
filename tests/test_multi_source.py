"""Tests for MultiSourceSearcher: routed fan-out, degradation, caching."""

from unittest.mock import AsyncMock

import httpx
import pytest

from evidence_search.application.search import (
    MultiSourceSearcher,
    QueryRouter,
    ResultAggregator,
    SearchResponse,
)
from evidence_search.infrastructure.cache import SearchCache
from evidence_search.infrastructure.sources import PubMedClient
from evidence_search.models import SearchFilters
from evidence_search.shared.exceptions import InvalidParameterError, InvalidQueryError

ASPIRIN_QUERY = "aspirin stroke prevention elderly"


def _adapter(articles=None, side_effect=None):
    adapter = AsyncMock()
    adapter.search = AsyncMock(return_value=articles or [], side_effect=side_effect)
    return adapter


@pytest.fixture
def adapters(article_factory):
    return {
        "pubmed": _adapter([article_factory(str(i), source="pubmed") for i in range(1, 13)]),
        "openalex": _adapter(
            [article_factory("1", source="openalex")]
            + [article_factory(f"W{i}", source="openalex") for i in range(9)]
        ),
        "europepmc": _adapter([article_factory(str(i), source="europepmc") for i in range(1, 6)]),
        "clinicaltrials": _adapter([article_factory(f"NCT0{i}", source="clinicaltrials") for i in range(3)]),
    }


@pytest.fixture
def searcher(adapters):
    return MultiSourceSearcher(adapters, router=QueryRouter(), aggregator=ResultAggregator(max_results=20))


# ============================================================
# Routed search
# ============================================================

class TestSearch:
    async def test_aspirin_end_to_end(self, searcher, adapters):
        filters = SearchFilters("5years", "rct")
        response = await searcher.search(ASPIRIN_QUERY, filters)

        assert response.decision.query_type == "condition"
        assert 0 < response.total <= 20
        ids = [a.source_id for a in response.articles]
        assert len(ids) == len(set(ids))
        assert all(a.title and a.source for a in response.articles)

        # Every planned adapter got the user's filters and its routed limit
        for source, limit in {"pubmed": 12, "openalex": 10, "europepmc": 5, "clinicaltrials": 3}.items():
            call = adapters[source].search.call_args
            assert call.args == (ASPIRIN_QUERY, filters, limit)

    async def test_primary_sources_win_duplicates(self, searcher):
        response = await searcher.search(ASPIRIN_QUERY)
        first = next(a for a in response.articles if a.source_id == "1")
        assert first.source == "pubmed"
        assert response.stats.duplicates_removed == 6
        assert response.stats.by_source == {"pubmed": 12, "openalex": 10, "europepmc": 5, "clinicaltrials": 3}

    async def test_bounded(self, searcher):
        response = await searcher.search(ASPIRIN_QUERY, max_results=7)
        assert response.total == 7
        assert response.stats.returned == 7

    async def test_failed_adapter_degrades(self, searcher, adapters):
        adapters["openalex"].search.side_effect = RuntimeError("provider exploded")
        response = await searcher.search(ASPIRIN_QUERY)
        assert response.total > 0
        assert all(a.source != "openalex" for a in response.articles)

    async def test_timed_out_client_degrades(self, adapters, mock_email):
        pubmed = PubMedClient(email=mock_email)
        pubmed._min_interval = 0
        pubmed._max_attempts = 1
        pubmed._client.get = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))
        adapters["pubmed"] = pubmed

        searcher = MultiSourceSearcher(adapters)
        response = await searcher.search(ASPIRIN_QUERY)

        assert response.total > 0
        assert {a.source for a in response.articles} == {"openalex", "europepmc", "clinicaltrials"}
        await pubmed.close()

    async def test_all_adapters_empty(self):
        searcher = MultiSourceSearcher({"pubmed": _adapter(), "europepmc": _adapter(), "openalex": _adapter()})
        response = await searcher.search("xyzzy")
        assert response.articles == []
        assert response.to_dict()["total"] == 0

    async def test_routed_study_type_applied_when_open(self, article_factory):
        adapters = {"pubmed": _adapter([article_factory("1")])}
        searcher = MultiSourceSearcher(adapters)
        await searcher.search("systematic review and meta-analysis of statins")
        filters = adapters["pubmed"].search.call_args.args[1]
        assert filters.study_type == "meta"

    async def test_user_study_type_kept(self, article_factory):
        adapters = {"pubmed": _adapter([article_factory("1")])}
        searcher = MultiSourceSearcher(adapters)
        await searcher.search("systematic review and meta-analysis of statins", SearchFilters(study_type="rct"))
        assert adapters["pubmed"].search.call_args.args[1].study_type == "rct"

    async def test_native_options_forwarded(self, article_factory):
        adapters = {"openalex": _adapter([article_factory("W1", source="openalex")])}
        searcher = MultiSourceSearcher(adapters)
        await searcher.search("molecular mechanism of aspirin")
        assert adapters["openalex"].search.call_args.kwargs == {"medical_only": True}

    async def test_clinical_study_type_narrows_plan(self, searcher, adapters):
        response = await searcher.search(ASPIRIN_QUERY, SearchFilters(study_type="clinical"))
        assert set(response.decision.sources) == {"pubmed", "clinicaltrials"}
        adapters["openalex"].search.assert_not_called()
        adapters["europepmc"].search.assert_not_called()

    async def test_source_selection(self, searcher, adapters):
        response = await searcher.search(ASPIRIN_QUERY, sources=["pubmed"])
        assert response.decision.sources == ["pubmed"]
        adapters["openalex"].search.assert_not_called()

    async def test_enrichment_applied(self, adapters, article_factory):
        enrichment = AsyncMock()
        enrichment.enrich = AsyncMock(side_effect=lambda articles: articles[:2])
        searcher = MultiSourceSearcher(adapters, enrichment=enrichment)

        response = await searcher.search(ASPIRIN_QUERY)
        assert response.total == 2

        enrichment.enrich.reset_mock()
        await searcher.search(ASPIRIN_QUERY, enrich=False)
        enrichment.enrich.assert_not_called()


class TestValidation:
    @pytest.mark.parametrize("query", ["", "   ", None])
    async def test_empty_query(self, searcher, query):
        with pytest.raises(InvalidQueryError):
            await searcher.search(query)

    async def test_unknown_source(self, searcher):
        with pytest.raises(InvalidParameterError):
            await searcher.search(ASPIRIN_QUERY, sources=["scopus"])

    def test_route_only(self, searcher, adapters):
        decision = searcher.route(ASPIRIN_QUERY)
        assert decision.query_type == "condition"
        adapters["pubmed"].search.assert_not_called()

    def test_sources_property(self, searcher):
        assert searcher.sources == ["pubmed", "openalex", "europepmc", "clinicaltrials"]


# ============================================================
# Caching
# ============================================================

class TestCaching:
    async def test_second_search_served_from_cache(self, adapters):
        cache = SearchCache()
        searcher = MultiSourceSearcher(adapters, cache=cache)

        first = await searcher.search(ASPIRIN_QUERY)
        second = await searcher.search(ASPIRIN_QUERY)

        assert isinstance(first, SearchResponse)
        assert second is first
        assert adapters["pubmed"].search.await_count == 1
        assert cache.get_stats()["hits"] == 1

    async def test_different_filters_miss(self, adapters):
        searcher = MultiSourceSearcher(adapters, cache=SearchCache())
        await searcher.search(ASPIRIN_QUERY)
        await searcher.search(ASPIRIN_QUERY, SearchFilters(date_range="5years"))
        assert adapters["pubmed"].search.await_count == 2


# ============================================================
# Single and dual source
# ============================================================

class TestSearchSource:
    async def test_single_source(self, searcher, adapters):
        articles = await searcher.search_source("europepmc", "aspirin", limit=3)
        assert len(articles) == 5
        assert adapters["europepmc"].search.call_args.args[2] == 3

    async def test_unknown_source(self, searcher):
        with pytest.raises(InvalidParameterError):
            await searcher.search_source("scopus", "aspirin")

    async def test_known_but_unconfigured_source(self, article_factory):
        searcher = MultiSourceSearcher({"pubmed": _adapter([article_factory("1")])})
        assert await searcher.search_source("openalex", "aspirin") == []


class TestSearchDual:
    async def test_pubmed_and_europepmc_only(self, searcher, adapters):
        response = await searcher.search_dual("aspirin")
        assert {a.source for a in response.articles} <= {"pubmed", "europepmc"}
        assert response.decision is None
        assert response.stats.duplicates_removed == 5
        adapters["openalex"].search.assert_not_called()
        adapters["clinicaltrials"].search.assert_not_called()
