"""
OpenAlex Integration

Provides open scholarly search via the OpenAlex API.

API Documentation: https://docs.openalex.org/

Features:
- Completely free and open (no API key required)
- Citation counts and open access status for every work
- Concept tagging (used for the medical-only filter)
- Abstracts delivered as inverted indices
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from datetime import date
from typing import TYPE_CHECKING, Any

from evidence_search.infrastructure.sources.base_client import DEFAULT_EMAIL, USER_AGENT, BaseAPIClient, normalize_doi
from evidence_search.models.article import UNKNOWN_JOURNAL, Article, SearchSource
from evidence_search.shared.exceptions import EvidenceSearchError

if TYPE_CHECKING:
    import httpx

    from evidence_search.models.article import SearchFilters

logger = logging.getLogger(__name__)

# OpenAlex API endpoints
OA_API_BASE = "https://api.openalex.org"
OA_WORKS_URL = f"{OA_API_BASE}/works"
OA_WEB_URL = "https://openalex.org"

DEFAULT_TIMEOUT = 10.0
DEFAULT_LIMIT = 20
DEFAULT_SORT = "cited_by_count:desc"
HIGH_IMPACT_LIMIT = 10
MIN_INTERVAL = 0.1
BATCH_PAUSE = 0.1  # seconds between enrichment batches

# Medicine | Health concept IDs
MEDICAL_CONCEPTS = "C71924100|C86803240"

MAX_ABSTRACT_CHARS = 2000
# Positions above this are dropped when rebuilding an abstract.
MAX_ABSTRACT_POSITIONS = 5000


def reconstruct_abstract(inverted_index: Mapping[str, Any] | None) -> str | None:
    """
    Rebuild abstract text from an OpenAlex inverted index.

    Words are placed at their positions in a list sized to the highest
    position seen, empty slots are skipped, and the result is truncated
    to MAX_ABSTRACT_CHARS.
    """
    if not inverted_index or not isinstance(inverted_index, Mapping):
        return None

    placements: list[tuple[int, str]] = []
    for word, positions in inverted_index.items():
        if not isinstance(positions, list):
            continue
        for pos in positions:
            if isinstance(pos, int) and 0 <= pos < MAX_ABSTRACT_POSITIONS:
                placements.append((pos, str(word)))

    if not placements:
        return None

    words: list[str | None] = [None] * (max(pos for pos, _ in placements) + 1)
    for pos, word in placements:
        words[pos] = word

    text = " ".join(w for w in words if w)
    return text[:MAX_ABSTRACT_CHARS] or None


def build_filter(
    year_from: int | None = None,
    year_to: int | None = None,
    open_access_only: bool = False,
    work_type: str | None = None,
    medical_only: bool = False,
) -> str | None:
    """Translate search options into an OpenAlex comma-joined filter expression."""
    filters = []

    if year_from or year_to:
        start = year_from or 1900
        end = year_to or date.today().year
        filters.append(f"publication_year:{start}-{end}")
    if open_access_only:
        filters.append("is_oa:true")
    if work_type:
        filters.append(f"type:{work_type}")
    if medical_only:
        filters.append(f"concepts.id:{MEDICAL_CONCEPTS}")

    return ",".join(filters) if filters else None


def _strip_prefix(value: str | None, prefix: str) -> str | None:
    if not value:
        return None
    return value.removeprefix(prefix).rstrip("/") or None


class OpenAlexClient(BaseAPIClient):
    """
    OpenAlex API client.

    Usage:
        client = OpenAlexClient(email="your@email.com")
        results = await client.search("CRISPR gene editing", limit=10, open_access_only=True)
    """

    _service_name = "OpenAlex"
    batch_pause = BATCH_PAUSE

    def __init__(self, email: str | None = None, timeout: float = DEFAULT_TIMEOUT, min_interval: float = MIN_INTERVAL):
        """
        Initialize client.

        Args:
            email: Email for polite pool (higher rate limits)
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
        year_from: int | None = None,
        year_to: int | None = None,
        open_access_only: bool = False,
        work_type: str | None = None,
        medical_only: bool = False,
        sort: str | None = None,
        page: int = 1,
        **options: Any,
    ) -> list[Article]:
        """
        Search OpenAlex works.

        Args:
            query: Search query (searches title, abstract, fulltext)
            filters: Date range is translated to publication_year, a review
                     study-type filter to type:review
            limit: Maximum results (max 200 per page)
            year_from / year_to: Explicit publication year bounds
            open_access_only: Only return open access works
            work_type: OpenAlex work type (article, review, ...)
            medical_only: Restrict to Medicine/Health concepts
            sort: Sort order (default: most cited first)
            page: Result page
            options: Routing options this provider does not support are
                     logged and ignored

        Returns:
            List of Articles (empty on failure)
        """
        if options:
            logger.debug(f"{self.service_name}: ignoring unsupported options {sorted(options)}")
        if filters is not None:
            if filters.years_back and not year_from:
                year_from = date.today().year - filters.years_back
            if filters.study_type == "review" and not work_type:
                work_type = "review"

        params: dict[str, Any] = {
            "mailto": self._email,
            "search": query,
            "per_page": min(limit or DEFAULT_LIMIT, 200),
            "page": page,
            "sort": sort or DEFAULT_SORT,
        }
        filter_expr = build_filter(year_from, year_to, open_access_only, work_type, medical_only)
        if filter_expr:
            params["filter"] = filter_expr

        logger.info(f"OpenAlex: searching for {query!r}")

        try:
            data = await self._make_request(OA_WORKS_URL, params=params)
        except EvidenceSearchError as e:
            logger.warning(f"OpenAlex search failed: {e}")
            return []

        if not isinstance(data, dict):
            return []

        works = data.get("results") or []
        logger.info(f"OpenAlex: found {len(works)} works")
        return [normalize_work(w) for w in works if isinstance(w, dict)]

    async def search_medical(self, query: str, filters: SearchFilters | None = None, limit: int | None = None) -> list[Article]:
        return await self.search(query, filters, limit, medical_only=True)

    async def search_recent(self, query: str, filters: SearchFilters | None = None, limit: int | None = None) -> list[Article]:
        """Works from the last two years, newest first."""
        return await self.search(
            query, filters, limit, year_from=date.today().year - 2, sort="publication_date:desc"
        )

    async def search_high_impact(
        self, query: str, filters: SearchFilters | None = None, limit: int | None = None
    ) -> list[Article]:
        """Most cited works first, ten by default."""
        return await self.search(query, filters, limit or HIGH_IMPACT_LIMIT, sort=DEFAULT_SORT)

    async def get_work(self, work_id: str) -> Article | None:
        """
        Get work by ID (OpenAlex ID, DOI, or PMID).

        Args:
            work_id: Work identifier (e.g., "10.1234/example", "12345678", "W2741809807")

        Returns:
            Article or None
        """
        if work_id.startswith("10."):
            work_id = f"https://doi.org/{work_id}"
        elif work_id.isdigit():
            work_id = f"pmid:{work_id}"
        elif not work_id.startswith("W"):
            work_id = f"W{work_id}"

        try:
            data = await self._make_request(f"{OA_WORKS_URL}/{work_id}", params={"mailto": self._email})
        except EvidenceSearchError as e:
            logger.warning(f"Failed to get work {work_id}: {e}")
            return None

        if not isinstance(data, dict):
            return None
        return normalize_work(data)

    async def enrich_article(self, article: Article) -> Article:
        """
        Refine an article with OpenAlex citation and concept data.

        The work is looked up by DOI, else by PMID. Open-access details
        already on the article win over OpenAlex's. Best-effort: without an
        identifier, a match or on any failure the original article is returned.
        """
        if article.source == SearchSource.OPENALEX.value:
            return article

        identifier = normalize_doi(article.doi) if article.doi else _pmid_of(article)
        if not identifier:
            return article

        work = await self.get_work(identifier)
        if work is None:
            return article

        enriched = merge_openalex_work(article, work)
        logger.debug(f"OpenAlex enriched {identifier}: {enriched.citation_count} citations")
        return enriched

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        if response.status_code == 404:
            logger.debug(f"OpenAlex: work not found - {url}")
            return None
        return super()._handle_expected_status(response, url)


def normalize_work(work: dict[str, Any]) -> Article:
    """
    Normalize an OpenAlex work into an Article.

    source_id prefers the PMID cross-reference so that the same paper found
    through PubMed or Europe PMC deduplicates against it; otherwise it is
    the short OpenAlex ID.
    """
    ids = work.get("ids") or {}
    openalex_id = _strip_prefix(work.get("id"), f"{OA_WEB_URL}/")
    pmid = _strip_prefix(ids.get("pmid"), "https://pubmed.ncbi.nlm.nih.gov/")
    doi = _strip_prefix(work.get("doi") or ids.get("doi"), "https://doi.org/")

    authors = [
        name
        for a in work.get("authorships") or []
        if isinstance(a, dict) and (name := (a.get("author") or {}).get("display_name"))
    ]

    location = work.get("primary_location") or {}
    venue = location.get("source") or {}
    journal = venue.get("display_name") or (work.get("host_venue") or {}).get("display_name") or UNKNOWN_JOURNAL

    open_access = work.get("open_access") or {}
    is_oa = bool(open_access.get("is_oa"))
    oa_url = open_access.get("oa_url") or None

    year = work.get("publication_year")
    pub_date = work.get("publication_date") or (str(year) if year else "Unknown date")

    work_type = work.get("type") or "article"
    concepts = [c.get("display_name") for c in (work.get("concepts") or [])[:5] if isinstance(c, dict)]

    return Article(
        source_id=pmid or openalex_id,
        title=work.get("title") or work.get("display_name") or "",
        source=SearchSource.OPENALEX.value,
        authors=authors,
        journal=journal,
        publication_date=pub_date,
        publication_year=year if isinstance(year, int) else None,
        doi=doi,
        abstract=reconstruct_abstract(work.get("abstract_inverted_index")),
        url=work.get("doi") or f"{OA_WEB_URL}/{openalex_id}",
        publication_types=[work_type],
        citation_count=work.get("cited_by_count") or 0,
        full_text_available=is_oa and bool(oa_url),
        full_text_url=oa_url,
        publisher=venue.get("host_organization_name") or None,
        is_open_access=is_oa,
        oa_status=open_access.get("oa_status") or None,
        metadata={
            "openalex_id": openalex_id,
            "pmid": pmid,
            "concepts": concepts,
            "work_type": work_type,
            "cited_by_percentile": (work.get("cited_by_percentile_year") or {}).get("max"),
        },
    )


def _pmid_of(article: Article) -> str | None:
    pmid = article.metadata.get("pmid")
    if pmid:
        return str(pmid)
    if article.source == SearchSource.PUBMED.value and article.source_id and article.source_id.isdigit():
        return article.source_id
    return None


def merge_openalex_work(article: Article, work: Article) -> Article:
    """
    Return a copy of ``article`` refined with a normalized OpenAlex work.

    Adds concepts and the citation percentile; the citation count only
    ever grows and existing open-access information is kept.
    """
    metadata = {
        **article.metadata,
        "openalex_id": work.metadata.get("openalex_id"),
        "concepts": work.metadata.get("concepts") or [],
        "cited_by_percentile": work.metadata.get("cited_by_percentile"),
    }
    return dataclasses.replace(
        article,
        citation_count=max(article.citation_count, work.citation_count),
        is_open_access=article.is_open_access or work.is_open_access,
        oa_status=article.oa_status or work.oa_status,
        full_text_available=article.full_text_available or work.full_text_available,
        full_text_url=article.full_text_url or work.full_text_url,
        metadata=metadata,
    )
