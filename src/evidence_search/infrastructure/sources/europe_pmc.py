"""
Europe PMC Integration

Provides access to Europe PMC's RESTful API for literature search.

API Documentation: https://europepmc.org/RestfulWebService

Features:
- 33+ million publications from PubMed, Agricola, EPO, NICE, etc.
- 6.5 million open access full text articles
- Core result type includes abstracts and publication types
- No API key required
"""

from __future__ import annotations

import html
import logging
import re
from datetime import date
from typing import TYPE_CHECKING, Any

from evidence_search.infrastructure.sources.base_client import DEFAULT_EMAIL, USER_AGENT, BaseAPIClient
from evidence_search.models.article import UNKNOWN_DATE, UNKNOWN_JOURNAL, Article, SearchSource
from evidence_search.shared.exceptions import EvidenceSearchError

if TYPE_CHECKING:
    from evidence_search.models.article import SearchFilters

logger = logging.getLogger(__name__)

# Europe PMC API endpoints
EPMC_API_BASE = "https://www.ebi.ac.uk/europepmc/webservices/rest"
EPMC_SEARCH_URL = f"{EPMC_API_BASE}/search"
EPMC_WEB_URL = "https://europepmc.org/article"
PUBMED_URL = "https://pubmed.ncbi.nlm.nih.gov"

DEFAULT_TIMEOUT = 15.0
DEFAULT_LIMIT = 20
MIN_INTERVAL = 0.1

# Free-text publication-type terms appended to the query
STUDY_TYPE_TERMS = {
    "rct": "randomized controlled trial",
    "meta": "meta-analysis",
    "review": "review OR systematic review",
    "clinical": "clinical trial",
    "guideline": "guideline",
}

_TAG_PATTERN = re.compile(r"<[^>]+>")


def build_query(query: str, filters: SearchFilters | None = None, current_year: int | None = None) -> str:
    """
    Wrap the query and append Europe PMC field filters.

    Example:
        >>> build_query("statins", SearchFilters("5years", "meta"), current_year=2024)
        '(statins) AND (FIRST_PDATE:[2019 TO 2024]) AND (meta-analysis)'
    """
    search = f"({query})"
    if filters is None:
        return search

    if filters.years_back:
        end = current_year or date.today().year
        search += f" AND (FIRST_PDATE:[{end - filters.years_back} TO {end}])"

    term = STUDY_TYPE_TERMS.get(filters.study_type)
    if term:
        search += f" AND ({term})"
    return search


def clean_abstract(text: str | None) -> str | None:
    """Strip inline markup and decode entities."""
    if not text:
        return None
    cleaned = html.unescape(_TAG_PATTERN.sub(" ", text))
    return re.sub(r"\s+", " ", cleaned).strip() or None


class EuropePMCClient(BaseAPIClient):
    """
    Europe PMC API client.

    Usage:
        client = EuropePMCClient(email="your@email.com")
        results = await client.search("CRISPR gene editing", limit=10)
    """

    _service_name = "Europe PMC"

    def __init__(self, email: str | None = None, timeout: float = DEFAULT_TIMEOUT, min_interval: float = MIN_INTERVAL):
        """
        Initialize client.

        Args:
            email: Contact email (for good citizenship)
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

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int | None = None,
        *,
        sort: str = "relevance",
        **options: Any,
    ) -> list[Article]:
        """
        Search Europe PMC publications.

        Args:
            query: Search query (supports Europe PMC search syntax)
            filters: Date range and study type filters
            limit: Maximum results (max 1000 per request)
            sort: Sort order
            options: Routing options this provider does not support are
                     logged and ignored

        Returns:
            List of Articles (empty on failure)
        """
        if options:
            logger.debug(f"{self.service_name}: ignoring unsupported options {sorted(options)}")
        final_query = build_query(query, filters)
        params = {
            "query": final_query,
            "format": "json",
            "pageSize": min(limit or DEFAULT_LIMIT, 1000),
            "resultType": "core",
            "sort": sort,
        }
        logger.info(f"Europe PMC: final query {final_query!r}")

        try:
            data = await self._make_request(EPMC_SEARCH_URL, params=params)
        except EvidenceSearchError as e:
            logger.warning(f"Europe PMC search failed: {e}")
            return []

        if not isinstance(data, dict):
            return []

        results = (data.get("resultList") or {}).get("result") or []
        logger.info(f"Europe PMC: found {len(results)} articles")
        return [normalize_result(r) for r in results if isinstance(r, dict)]

    async def get_article(self, source: str, article_id: str) -> Article | None:
        """
        Get a single article (e.g. source="MED", article_id=PMID).

        Returns:
            Article or None
        """
        params = {
            "query": f"EXT_ID:{article_id} AND SRC:{source}",
            "format": "json",
            "resultType": "core",
            "pageSize": 1,
        }
        try:
            data = await self._make_request(EPMC_SEARCH_URL, params=params)
        except EvidenceSearchError as e:
            logger.warning(f"Europe PMC get_article {source}/{article_id} failed: {e}")
            return None

        results = ((data or {}).get("resultList") or {}).get("result") or []
        return normalize_result(results[0]) if results else None


def _authors(result: dict[str, Any]) -> list[str]:
    author_string = result.get("authorString")
    if author_string:
        return [a.strip().rstrip(".") for a in author_string.split(",") if a.strip().rstrip(".")]

    authors = []
    for a in (result.get("authorList") or {}).get("author") or []:
        if not isinstance(a, dict):
            continue
        name = a.get("fullName") or f"{a.get('firstName') or ''} {a.get('lastName') or ''}".strip()
        if name:
            authors.append(name)
    return authors


def build_url(result: dict[str, Any]) -> str:
    """PubMed by PMID, then PMC, then DOI, then the Europe PMC record."""
    if result.get("pmid"):
        return f"{PUBMED_URL}/{result['pmid']}/"
    if result.get("pmcid"):
        return f"{EPMC_WEB_URL}/PMC/{result['pmcid'].replace('PMC', '')}"
    if result.get("doi"):
        return f"https://doi.org/{result['doi']}"
    return f"{EPMC_WEB_URL}/{result.get('source')}/{result.get('id')}"


def normalize_result(result: dict[str, Any]) -> Article:
    """Normalize a Europe PMC core result into an Article."""
    journal_info = result.get("journalInfo") or {}
    journal = result.get("journalTitle") or (journal_info.get("journal") or {}).get("title") or UNKNOWN_JOURNAL
    full_text = result.get("isOpenAccess") == "Y" or result.get("inEPMC") == "Y"
    pmcid = result.get("pmcid")
    pub_types = (result.get("pubTypeList") or {}).get("pubType") or []
    if isinstance(pub_types, str):
        pub_types = [pub_types]

    return Article(
        source_id=result.get("pmid") or result.get("id"),
        title=result.get("title") or "",
        source=SearchSource.EUROPE_PMC.value,
        authors=_authors(result),
        journal=journal,
        publication_date=str(result.get("firstPublicationDate") or result.get("pubYear") or UNKNOWN_DATE),
        doi=result.get("doi") or None,
        abstract=clean_abstract(result.get("abstractText")),
        url=build_url(result),
        publication_types=list(pub_types),
        citation_count=result.get("citedByCount") or 0,
        full_text_available=full_text,
        full_text_url=f"{EPMC_WEB_URL}/PMC/{pmcid.replace('PMC', '')}" if full_text and pmcid else None,
        metadata={
            "europepmc_id": result.get("id"),
            "europepmc_source": result.get("source"),
            "pmcid": pmcid,
        },
    )
