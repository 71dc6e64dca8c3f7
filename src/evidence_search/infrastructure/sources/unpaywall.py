"""
Unpaywall API Integration

Finds open access versions of already-normalized articles by DOI.
Unpaywall indexes OA copies from repositories, preprint servers, and publisher sites.

API Documentation: https://unpaywall.org/products/api

Rate Limits:
- 100,000 requests/day with email
- No API key required, just email
"""

from __future__ import annotations

import dataclasses
import logging
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

# Unpaywall API endpoint
UNPAYWALL_API_BASE = "https://api.unpaywall.org/v2"

DEFAULT_TIMEOUT = 5.0
MIN_INTERVAL = 0.1
BATCH_PAUSE = 0.1

OA_TYPE_DESCRIPTIONS = {
    "gold": "Gold OA (Published OA)",
    "hybrid": "Hybrid OA (OA in subscription journal)",
    "bronze": "Bronze OA (Free to read, no license)",
    "green": "Green OA (Repository version)",
    "closed": "Closed Access",
}


def describe_oa_type(oa_status: str | None) -> str:
    return OA_TYPE_DESCRIPTIONS.get(oa_status or "", oa_status or "Unknown")


def merge_oa_record(article: Article, data: dict[str, Any]) -> Article:
    """
    Return a copy of ``article`` refined with an Unpaywall record.

    Without a best OA location the article is marked closed, but a
    full-text link found by the source adapter is kept.
    """
    best = data.get("best_oa_location")
    if not isinstance(best, dict):
        return dataclasses.replace(
            article,
            is_open_access=bool(article.is_open_access),
            oa_status=article.oa_status or "closed",
        )

    locations = [
        {
            "url": loc.get("url"),
            "pdf_url": loc.get("url_for_pdf"),
            "version": loc.get("version"),
            "license": loc.get("license"),
            "host_type": loc.get("host_type"),
        }
        for loc in data.get("oa_locations") or []
        if isinstance(loc, dict)
    ]
    metadata = {**article.metadata, "oa_locations": locations}
    if best.get("url_for_landing_page"):
        metadata["full_text_landing_url"] = best["url_for_landing_page"]

    return dataclasses.replace(
        article,
        full_text_available=True,
        full_text_url=best.get("url_for_pdf") or best.get("url_for_landing_page") or best.get("url") or article.full_text_url,
        full_text_pdf_url=best.get("url_for_pdf") or article.full_text_pdf_url,
        open_access_type=describe_oa_type(data.get("oa_status")),
        license=best.get("license") or article.license,
        is_open_access=bool(data.get("is_oa")) or bool(article.is_open_access),
        oa_status=data.get("oa_status") or article.oa_status,
        metadata=metadata,
    )


class UnpaywallClient(BaseAPIClient):
    """
    Unpaywall API client for finding open access versions of articles.

    Usage:
        client = UnpaywallClient(email="your@email.com")

        # Raw OA record
        oa_info = await client.get_oa_status("10.1001/jama.2024.12345")

        # Refine an Article with full-text availability
        article = await client.check_full_text(article)

    Note:
        Email is required. Unpaywall uses it to track usage and
        contact you if there are issues.
    """

    _service_name = "Unpaywall"
    batch_pause = BATCH_PAUSE

    def __init__(
        self,
        email: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        min_interval: float = MIN_INTERVAL,
    ):
        """
        Initialize Unpaywall client.

        Args:
            email: Contact email (required by Unpaywall ToS)
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

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """Handle 404 (DOI not found) and 422 (invalid DOI format)."""
        if response.status_code == 404:
            logger.debug("Unpaywall: DOI not found")
            return None
        if response.status_code == 422:
            logger.warning("Unpaywall: Invalid DOI format")
            return None
        return _CONTINUE

    async def get_oa_status(self, doi: str) -> dict[str, Any] | None:
        """
        Get open access status and links for a DOI.

        Args:
            doi: DOI string (with or without https://doi.org/ prefix)

        Returns:
            Raw Unpaywall record or None if DOI not found

        Raises:
            EvidenceSearchError: on transport or provider failure
        """
        doi = normalize_doi(doi)
        url = f"{UNPAYWALL_API_BASE}/{urllib.parse.quote(doi, safe='/')}"
        data = await self._make_request(url, params={"email": self._email})
        return data if isinstance(data, dict) else None

    async def is_open_access(self, doi: str) -> bool:
        """True when Unpaywall reports the DOI as open access; False on failure."""
        try:
            data = await self.get_oa_status(doi)
        except EvidenceSearchError as e:
            logger.warning(f"Failed to check open access for {doi}: {e}")
            return False
        return bool((data or {}).get("is_oa"))

    async def get_pdf_url(self, doi: str) -> str | None:
        """Best OA PDF link for a DOI, or None."""
        try:
            data = await self.get_oa_status(doi)
        except EvidenceSearchError as e:
            logger.warning(f"Failed to get PDF URL for {doi}: {e}")
            return None
        return ((data or {}).get("best_oa_location") or {}).get("url_for_pdf")

    async def check_full_text(self, article: Article) -> Article:
        """
        Refine an article with full-text availability.

        Best-effort: articles without a DOI, DOIs unknown to Unpaywall and
        any failure all return the original article.
        """
        if not article.doi:
            return article

        try:
            data = await self.get_oa_status(article.doi)
        except EvidenceSearchError as e:
            logger.warning(f"Unpaywall check failed for {article.doi}: {e}")
            return article

        if not data:
            return article

        enriched = merge_oa_record(article, data)
        if enriched.full_text_available:
            logger.debug(f"Unpaywall: found full text for {article.doi} ({enriched.open_access_type})")
        return enriched
