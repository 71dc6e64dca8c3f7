"""Tests for CrossRef enrichment client."""

from unittest.mock import AsyncMock

import pytest

from evidence_search.infrastructure.sources.crossref import (
    CROSSREF_API_BASE,
    CrossRefClient,
    merge_work,
    strip_jats,
)
from evidence_search.shared.exceptions import NetworkError


@pytest.fixture
def client(mock_email):
    c = CrossRefClient(email=mock_email)
    c._min_interval = 0
    c._initial_delay = 0.001
    return c


# ============================================================
# Pure helpers
# ============================================================

class TestStripJats:
    def test_strips_markup(self):
        assert strip_jats("<jats:p>CrossRef abstract &amp; text</jats:p>") == "CrossRef abstract & text"

    def test_empty(self):
        assert strip_jats(None) is None
        assert strip_jats("<jats:p></jats:p>") is None


class TestMergeWork:
    def test_all_fields(self, article_factory, crossref_work):
        article = article_factory(doi="10.1000/test.2023.001", citation_count=5)
        merged = merge_work(article, crossref_work)

        assert merged is not article
        assert merged.citation_count == 42
        assert merged.publisher == "Test Publisher"
        assert merged.license == "https://creativecommons.org/licenses/by/4.0/"
        assert merged.funding == "National Institutes of Health, Wellcome Trust"
        assert merged.orcids == ["https://orcid.org/0000-0001-2345-6789"]
        assert merged.full_text_links == [
            {
                "url": "https://publisher.example/full.pdf",
                "content_type": "application/pdf",
                "intended_application": "text-mining",
            }
        ]
        assert merged.abstract == "CrossRef abstract & text"
        # Original untouched
        assert article.citation_count == 5
        assert article.publisher is None

    def test_citation_count_never_decreases(self, article_factory, crossref_work):
        article = article_factory(citation_count=850)
        assert merge_work(article, crossref_work).citation_count == 850

    def test_source_abstract_kept(self, sample_article, crossref_work):
        merged = merge_work(sample_article, crossref_work)
        assert merged.abstract == sample_article.abstract

    def test_empty_work_keeps_values(self, article_factory):
        article = article_factory(publisher="Elsevier", license="cc-by", funding="NIH", orcids=["x"])
        merged = merge_work(article, {})
        assert merged.publisher == "Elsevier"
        assert merged.license == "cc-by"
        assert merged.funding == "NIH"
        assert merged.orcids == ["x"]
        assert merged.citation_count == 0


# ============================================================
# Client
# ============================================================

class TestGetWork:
    async def test_unwraps_message_and_adds_mailto(self, client, mock_http, json_response, crossref_work):
        mock = mock_http(client, json_response({"status": "ok", "message": crossref_work}))
        work = await client.get_work("https://doi.org/10.1000/test.2023.001")

        assert work["is-referenced-by-count"] == 42
        assert mock.call_args.args[0] == f"{CROSSREF_API_BASE}/works/10.1000/test.2023.001"
        assert mock.call_args.kwargs["params"]["mailto"] == "test@example.com"

    async def test_not_found(self, client, mock_http, http_response):
        mock_http(client, http_response(404))
        assert await client.get_work("10.1000/missing") is None

    async def test_citation_count(self, client, mock_http, json_response, crossref_work):
        mock_http(client, json_response({"message": crossref_work}))
        assert await client.get_citation_count("10.1000/test.2023.001") == 42

    async def test_citation_count_unknown_doi(self, client, mock_http, http_response):
        mock_http(client, http_response(404))
        assert await client.get_citation_count("10.1000/missing") == 0

    async def test_citation_count_failure(self, client):
        client._make_request = AsyncMock(side_effect=NetworkError(service="CrossRef"))
        assert await client.get_citation_count("10.1000/x") == 0


class TestEnrichArticle:
    async def test_enriches(self, client, mock_http, json_response, sample_article, crossref_work):
        mock_http(client, json_response({"message": crossref_work}))
        enriched = await client.enrich_article(sample_article)
        assert enriched.citation_count == 42
        assert enriched.funding == "National Institutes of Health, Wellcome Trust"

    async def test_no_doi_returns_same_object(self, client, article_factory):
        client._make_request = AsyncMock()
        article = article_factory(doi=None)
        assert await client.enrich_article(article) is article
        client._make_request.assert_not_called()

    async def test_unknown_doi_unchanged(self, client, mock_http, http_response, sample_article):
        mock_http(client, http_response(404))
        assert await client.enrich_article(sample_article) is sample_article

    async def test_failure_unchanged(self, client, sample_article):
        client._make_request = AsyncMock(side_effect=NetworkError(service="CrossRef"))
        assert await client.enrich_article(sample_article) is sample_article
