"""Tests for EnrichmentPipeline: CrossRef, optional OpenAlex, then Unpaywall; batched and best-effort."""

import dataclasses
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from evidence_search.application.search.enrichment import EnrichmentPipeline


def _fake_crossref(pause=0.0):
    client = MagicMock()
    client.batch_pause = pause

    async def enrich_article(article):
        if not article.doi:
            return article
        return dataclasses.replace(article, citation_count=article.citation_count + 100, publisher="CrossRef Pub")

    client.enrich_article = AsyncMock(side_effect=enrich_article)
    return client


def _fake_unpaywall(pause=0.0):
    client = MagicMock()
    client.batch_pause = pause

    async def check_full_text(article):
        if not article.doi:
            return article
        return dataclasses.replace(article, full_text_available=True, is_open_access=True)

    client.check_full_text = AsyncMock(side_effect=check_full_text)
    return client


def _fake_openalex(pause=0.0):
    client = MagicMock()
    client.batch_pause = pause

    async def enrich_article(article):
        metadata = {**article.metadata, "concepts": ["Medicine"]}
        return dataclasses.replace(article, citation_count=max(article.citation_count, 150), metadata=metadata)

    client.enrich_article = AsyncMock(side_effect=enrich_article)
    return client


@pytest.fixture
def articles(article_factory):
    return [
        article_factory("1", doi="10.1000/a"),
        article_factory("2"),
        article_factory("3", doi="10.1000/c"),
    ]


class TestEnrich:
    async def test_both_passes_in_order(self, articles):
        crossref, unpaywall = _fake_crossref(), _fake_unpaywall()
        pipeline = EnrichmentPipeline(crossref, unpaywall, batch_size=2)

        enriched = await pipeline.enrich(articles)

        assert [a.source_id for a in enriched] == ["1", "2", "3"]
        assert enriched[0].citation_count == 100
        assert enriched[0].full_text_available is True
        assert enriched[1] is articles[1]
        # Unpaywall sees the CrossRef output
        first_unpaywall_input = unpaywall.check_full_text.call_args_list[0].args[0]
        assert first_unpaywall_input.publisher == "CrossRef Pub"

    async def test_no_doi_skips_everything(self, article_factory):
        crossref, unpaywall = _fake_crossref(), _fake_unpaywall()
        pipeline = EnrichmentPipeline(crossref, unpaywall)
        articles = [article_factory("1"), article_factory("2")]

        assert await pipeline.enrich(articles) is articles
        crossref.enrich_article.assert_not_called()
        unpaywall.check_full_text.assert_not_called()

    async def test_failing_step_returns_original(self, articles):
        crossref = _fake_crossref()
        crossref.enrich_article = AsyncMock(side_effect=RuntimeError("unexpected"))
        pipeline = EnrichmentPipeline(crossref, _fake_unpaywall())

        enriched = await pipeline.enrich(articles)

        assert enriched[0].citation_count == 0
        assert enriched[0].full_text_available is True

    async def test_missing_clients(self, articles):
        pipeline = EnrichmentPipeline()
        assert await pipeline.enrich(articles) == articles

    async def test_empty(self):
        assert await EnrichmentPipeline(_fake_crossref(), _fake_unpaywall()).enrich([]) == []


class TestBatching:
    async def test_provider_pause_between_batches(self, article_factory):
        articles = [article_factory(str(i), doi=f"10.1000/{i}") for i in range(3)]
        pipeline = EnrichmentPipeline(_fake_crossref(pause=0.03), None, batch_size=1)

        start = time.monotonic()
        await pipeline.enrich_with_crossref(articles)
        # Three batches, two pauses
        assert time.monotonic() - start >= 0.06

    async def test_every_article_visited(self, article_factory):
        articles = [article_factory(str(i), doi=f"10.1000/{i}") for i in range(7)]
        unpaywall = _fake_unpaywall()
        pipeline = EnrichmentPipeline(None, unpaywall, batch_size=3)

        result = await pipeline.enrich_with_unpaywall(articles)

        assert unpaywall.check_full_text.await_count == 7
        assert all(a.full_text_available for a in result)


class TestOpenAlexPass:
    async def test_disabled_by_default(self, articles):
        openalex = _fake_openalex()
        pipeline = EnrichmentPipeline(_fake_crossref(), _fake_unpaywall(), openalex=openalex)

        await pipeline.enrich(articles)
        openalex.enrich_article.assert_not_called()

    async def test_runs_between_crossref_and_unpaywall(self, articles):
        crossref, openalex, unpaywall = _fake_crossref(), _fake_openalex(), _fake_unpaywall()
        pipeline = EnrichmentPipeline(crossref, unpaywall, openalex=openalex, use_openalex=True)

        enriched = await pipeline.enrich(articles)

        assert openalex.enrich_article.await_count == 3
        # CrossRef raised the count to 100; OpenAlex keeps the maximum
        assert enriched[0].citation_count == 150
        assert enriched[0].metadata["concepts"] == ["Medicine"]
        assert openalex.enrich_article.call_args_list[0].args[0].publisher == "CrossRef Pub"
        assert unpaywall.check_full_text.call_args_list[0].args[0].metadata["concepts"] == ["Medicine"]

    async def test_articles_without_doi_still_reach_openalex(self, article_factory):
        openalex = _fake_openalex()
        pipeline = EnrichmentPipeline(_fake_crossref(), _fake_unpaywall(), openalex=openalex, use_openalex=True)
        articles = [article_factory("1"), article_factory("2")]

        enriched = await pipeline.enrich(articles)

        assert openalex.enrich_article.await_count == 2
        assert all(a.metadata["concepts"] == ["Medicine"] for a in enriched)

    async def test_failure_keeps_article(self, articles):
        openalex = _fake_openalex()
        openalex.enrich_article = AsyncMock(side_effect=RuntimeError("unexpected"))
        pipeline = EnrichmentPipeline(None, None, openalex=openalex, use_openalex=True)

        assert await pipeline.enrich(articles) == articles
