"""Tests for Unpaywall client."""

from unittest.mock import AsyncMock

import pytest

from evidence_search.infrastructure.sources.unpaywall import (
    UNPAYWALL_API_BASE,
    UnpaywallClient,
    describe_oa_type,
    merge_oa_record,
)
from evidence_search.shared.exceptions import ServiceUnavailableError


@pytest.fixture
def client(mock_email):
    c = UnpaywallClient(email=mock_email)
    c._min_interval = 0
    c._initial_delay = 0.001
    return c


class TestDescribeOaType:
    def test_known(self):
        assert describe_oa_type("gold") == "Gold OA (Published OA)"
        assert describe_oa_type("green") == "Green OA (Repository version)"

    def test_unknown(self):
        assert describe_oa_type("diamond") == "diamond"
        assert describe_oa_type(None) == "Unknown"


# ============================================================
# merge_oa_record
# ============================================================

class TestMergeOaRecord:
    def test_best_location(self, sample_article, unpaywall_record):
        merged = merge_oa_record(sample_article, unpaywall_record)
        assert merged.full_text_available is True
        assert merged.full_text_url == "https://publisher.example/article.pdf"
        assert merged.full_text_pdf_url == "https://publisher.example/article.pdf"
        assert merged.is_open_access is True
        assert merged.oa_status == "gold"
        assert merged.open_access_type == "Gold OA (Published OA)"
        assert merged.license == "cc-by"
        assert merged.metadata["full_text_landing_url"] == "https://publisher.example/article"
        assert len(merged.metadata["oa_locations"]) == 1
        assert sample_article.full_text_available is False

    def test_landing_page_when_no_pdf(self, sample_article, unpaywall_record):
        unpaywall_record["best_oa_location"]["url_for_pdf"] = None
        merged = merge_oa_record(sample_article, unpaywall_record)
        assert merged.full_text_url == "https://publisher.example/article"
        assert merged.full_text_pdf_url is None

    def test_closed_access(self, sample_article):
        merged = merge_oa_record(sample_article, {"is_oa": False, "best_oa_location": None})
        assert merged.is_open_access is False
        assert merged.oa_status == "closed"
        assert merged.full_text_available is False

    def test_closed_keeps_source_full_text(self, article_factory):
        article = article_factory(
            full_text_available=True,
            full_text_url="https://europepmc.org/article/PMC/1",
            is_open_access=True,
            oa_status="bronze",
        )
        merged = merge_oa_record(article, {"is_oa": False})
        assert merged.full_text_available is True
        assert merged.full_text_url == "https://europepmc.org/article/PMC/1"
        assert merged.is_open_access is True
        assert merged.oa_status == "bronze"


# ============================================================
# Client
# ============================================================

class TestGetOaStatus:
    async def test_request(self, client, mock_http, json_response, unpaywall_record):
        mock = mock_http(client, json_response(unpaywall_record))
        data = await client.get_oa_status("doi:10.1000/test.2023.001")
        assert data["oa_status"] == "gold"
        assert mock.call_args.args[0] == f"{UNPAYWALL_API_BASE}/10.1000/test.2023.001"
        assert mock.call_args.kwargs["params"] == {"email": "test@example.com"}

    async def test_not_found(self, client, mock_http, http_response):
        mock_http(client, http_response(404))
        assert await client.get_oa_status("10.1000/missing") is None

    async def test_invalid_doi(self, client, mock_http, http_response):
        mock = mock_http(client, http_response(422))
        assert await client.get_oa_status("not-a-doi") is None
        assert mock.await_count == 1

    async def test_get_pdf_url(self, client, mock_http, json_response, unpaywall_record):
        mock_http(client, json_response(unpaywall_record))
        assert await client.get_pdf_url("10.1000/test.2023.001") == "https://publisher.example/article.pdf"

    async def test_is_open_access(self, client, mock_http, json_response, unpaywall_record):
        mock_http(client, json_response(unpaywall_record))
        assert await client.is_open_access("10.1000/test.2023.001") is True

    async def test_is_open_access_closed(self, client, mock_http, json_response):
        mock_http(client, json_response({"is_oa": False, "best_oa_location": None}))
        assert await client.is_open_access("10.1000/closed") is False

    async def test_is_open_access_failure(self, client):
        client._make_request = AsyncMock(side_effect=ServiceUnavailableError(status_code=503))
        assert await client.is_open_access("10.1000/x") is False


class TestCheckFullText:
    async def test_enriches(self, client, mock_http, json_response, sample_article, unpaywall_record):
        mock_http(client, json_response(unpaywall_record))
        enriched = await client.check_full_text(sample_article)
        assert enriched.full_text_available is True
        assert enriched.is_open_access is True

    async def test_no_doi(self, client, article_factory):
        client._make_request = AsyncMock()
        article = article_factory(doi=None)
        assert await client.check_full_text(article) is article
        client._make_request.assert_not_called()

    async def test_not_found_unchanged(self, client, mock_http, http_response, sample_article):
        mock_http(client, http_response(404))
        assert await client.check_full_text(sample_article) is sample_article

    async def test_failure_unchanged(self, client, sample_article):
        client._make_request = AsyncMock(side_effect=ServiceUnavailableError(status_code=503))
        assert await client.check_full_text(sample_article) is sample_article
