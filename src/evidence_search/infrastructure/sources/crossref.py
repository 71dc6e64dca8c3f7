"""
CrossRef API Integration

Enriches already-normalized articles with CrossRef work metadata.
CrossRef is the official DOI registration agency for scholarly publications.

API Documentation: https://api.crossref.org/swagger-ui/index.html

Enrichment fields:
- Citation counts (is-referenced-by-count)
- Abstract (JATS markup stripped) when the source had none
- Publisher, license, funders
- Author ORCIDs
- Full-text links

Best Practices:
- Always include email in User-Agent (polite pool)
- Use mailto: parameter for higher rate limits
"""

from __future__ import annotations

import dataclasses
import html
import logging
import re
import urllib.parse
from typing import TYPE_CHECKING, Any

from evidence_search.infrastructure.sources.base_client import (
    _CONTINUE,
    DEFAULT_EMAIL,
    USER_AGENT,
    BaseAPIClient,
    normalize_doi,
)
from evidence_search.shared.exceptions import EvidenceSearchError

if TYPE_CHECKING:
    import httpx

    from evidence_search.models.article import Article

logger = logging.getLogger(__name__)

# CrossRef API endpoint
CROSSREF_API_BASE = "https://api.crossref.org"

DEFAULT_TIMEOUT = 5.0
MIN_INTERVAL = 0.05
BATCH_PAUSE = 0.2

_JATS_TAG = re.compile(r"<[^>]+>")


def strip_jats(abstract: str | None) -> str | None:
    """Remove JATS/XML tags and decode entities."""
    if not abstract:
        return None
    text = html.unescape(_JATS_TAG.sub("", abstract))
    return re.sub(r"\s+", " ", text).strip() or None


def merge_work(article: Article, work: dict[str, Any]) -> Article:
    """
    Return a copy of ``article`` refined with CrossRef work metadata.

    Fields supplied by the source adapter are kept when CrossRef has no
    value; the citation count only ever grows.
    """
    licenses = work.get("license") or []
    funders = [f.get("name") for f in work.get("funder") or [] if isinstance(f, dict) and f.get("name")]
    orcids = [a["ORCID"] for a in work.get("author") or [] if isinstance(a, dict) and a.get("ORCID")]
    links = [
        {
            "url": link.get("URL"),
            "content_type": link.get("content-type"),
            "intended_application": link.get("intended-application"),
        }
        for link in work.get("link") or []
        if isinstance(link, dict)
    ]

    return dataclasses.replace(
        article,
        citation_count=max(article.citation_count, work.get("is-referenced-by-count") or 0),
        abstract=article.abstract or strip_jats(work.get("abstract")),
        publisher=work.get("publisher") or article.publisher,
        license=(licenses[0].get("URL") if licenses and isinstance(licenses[0], dict) else None) or article.license,
        funding=", ".join(funders) or article.funding,
        orcids=orcids or article.orcids,
        full_text_links=links or article.full_text_links,
    )


class CrossRefClient(BaseAPIClient):
    """
    CrossRef API client for DOI metadata enrichment.

    Usage:
        client = CrossRefClient(email="your@email.com")

        # Raw work metadata
        work = await client.get_work("10.1001/jama.2024.12345")

        # Refine an Article (unchanged when it has no DOI or CrossRef has no record)
        article = await client.enrich_article(article)

    Note:
        Always provide your email for access to the "polite pool" with
        higher rate limits. Without email, requests are severely throttled.
    """

    _service_name = "CrossRef"
    batch_pause = BATCH_PAUSE

    def __init__(
        self,
        email: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        min_interval: float = MIN_INTERVAL,
    ):
        """
        Initialize CrossRef client.

        Args:
            email: Contact email for polite pool access (strongly recommended)
            timeout: Request timeout in seconds
            min_interval: Minimum seconds between requests
        """
        self._email = email or DEFAULT_EMAIL
        super().__init__(
            timeout=timeout,
            min_interval=min_interval,
            headers={
                "User-Agent": f"{USER_AGENT} (mailto:{self._email})",
                "Accept": "application/json",
            },
        )

    async def _execute_request(self, url: str, **kwargs: Any) -> Any:
        """Add mailto parameter for polite pool access."""
        params = dict(kwargs.pop("params", None) or {})
        params.setdefault("mailto", self._email)
        return await super()._execute_request(url, params=params, **kwargs)

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """Handle 404 (DOI not found)."""
        if response.status_code == 404:
            logger.debug(f"CrossRef: DOI not found - {url}")
            return None
        return _CONTINUE

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        """Extract 'message' key from CrossRef JSON responses."""
        data = response.json()
        return data.get("message", data) if isinstance(data, dict) else data

    async def get_work(self, doi: str) -> dict[str, Any] | None:
        """
        Get metadata for a single work by DOI.

        Args:
            doi: DOI string (with or without https://doi.org/ prefix)

        Returns:
            Work metadata dict or None if not found

        Raises:
            EvidenceSearchError: on transport or provider failure
        """
        doi = normalize_doi(doi)
        url = f"{CROSSREF_API_BASE}/works/{urllib.parse.quote(doi, safe='/')}"
        result = await self._make_request(url)
        return result if isinstance(result, dict) else None

    async def get_citation_count(self, doi: str) -> int:
        """Citation count for a DOI; 0 when unknown or on failure."""
        try:
            work = await self.get_work(doi)
        except EvidenceSearchError as e:
            logger.warning(f"Failed to get citation count for {doi}: {e}")
            return 0
        return (work or {}).get("is-referenced-by-count") or 0

    async def enrich_article(self, article: Article) -> Article:
        """
        Refine an article with CrossRef metadata.

        Best-effort: articles without a DOI, DOIs unknown to CrossRef and
        any failure all return the original article.
        """
        if not article.doi:
            return article

        try:
            work = await self.get_work(article.doi)
        except EvidenceSearchError as e:
            logger.warning(f"CrossRef enrichment failed for {article.doi}: {e}")
            return article

        if not work:
            return article

        enriched = merge_work(article, work)
        logger.debug(f"CrossRef enriched {article.doi}: {enriched.citation_count} citations")
        return enriched
