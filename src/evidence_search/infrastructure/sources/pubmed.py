"""
PubMed E-utilities Integration

Three-step search against NCBI E-utilities:
1. esearch  (JSON) - relevance-ranked PMIDs for the filtered query
2. esummary (JSON) - title, authors, journal, dates, publication types
3. efetch   (XML)  - abstracts, parsed with Biopython's Entrez parser

Abstract retrieval is best-effort: when efetch fails the articles are
returned without abstracts.

Rate Limits:
- 3 requests/second without API key
- 10 requests/second with NCBI_API_KEY
"""

from __future__ import annotations

import asyncio
import io
import logging
from typing import TYPE_CHECKING, Any

from Bio import Entrez

from evidence_search.infrastructure.sources.base_client import DEFAULT_EMAIL, BaseAPIClient
from evidence_search.models.article import UNKNOWN_DATE, UNKNOWN_JOURNAL, Article, SearchSource
from evidence_search.shared.exceptions import EvidenceSearchError

if TYPE_CHECKING:
    import httpx

    from evidence_search.models.article import SearchFilters

logger = logging.getLogger(__name__)

EUTILS_BASE = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils"
ESEARCH_URL = f"{EUTILS_BASE}/esearch.fcgi"
ESUMMARY_URL = f"{EUTILS_BASE}/esummary.fcgi"
EFETCH_URL = f"{EUTILS_BASE}/efetch.fcgi"
PUBMED_URL = "https://pubmed.ncbi.nlm.nih.gov"

DEFAULT_TIMEOUT = 15.0
DEFAULT_LIMIT = 20
MIN_INTERVAL = 0.34  # ~3 requests/second (NCBI limit without API key)
MIN_INTERVAL_WITH_KEY = 0.1
ABSTRACT_ATTEMPTS = 2

# Longer queries risk HTTP 414 once filters are appended
MAX_QUERY_LENGTH = 300

STUDY_TYPE_CLAUSES = {
    "rct": "Randomized Controlled Trial[ptyp]",
    "meta": "Meta-Analysis[ptyp]",
    "review": "Review[ptyp] OR Systematic Review[ptyp]",
    "clinical": "Clinical Trial[ptyp]",
    "guideline": "Guideline[ptyp] OR Practice Guideline[ptyp]",
}


def truncate_query(query: str, max_length: int = MAX_QUERY_LENGTH) -> str:
    """
    Cut an over-long query to max_length characters.

    The cut moves back to the last word boundary only when that keeps more
    than 80% of the allowed length.
    """
    if len(query) <= max_length:
        return query

    truncated = query[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.8:
        truncated = truncated[:last_space]
    logger.warning(f"PubMed: query truncated from {len(query)} to {len(truncated.strip())} chars")
    return truncated.strip()


def build_search_term(query: str, filters: SearchFilters | None = None) -> str:
    """
    Build the esearch term with PubMed date and publication-type clauses.

    Example:
        >>> build_search_term("aspirin stroke", SearchFilters("5years", "rct"))
        'aspirin stroke AND ("last 5 years"[PDat]) AND Randomized Controlled Trial[ptyp]'
    """
    term = truncate_query(query)
    if filters is None:
        return term

    if filters.years_back:
        term += f' AND ("last {filters.years_back} years"[PDat])'

    clause = STUDY_TYPE_CLAUSES.get(filters.study_type)
    if clause:
        term += f" AND {clause}"
    return term


def parse_abstracts(xml_data: bytes) -> dict[str, str]:
    """Map PMID -> abstract text from an efetch PubmedArticleSet document."""
    record = Entrez.read(io.BytesIO(xml_data))
    abstracts: dict[str, str] = {}

    for article in record.get("PubmedArticle", []):
        citation = article.get("MedlineCitation", {})
        pmid = str(citation.get("PMID", ""))
        abstract = citation.get("Article", {}).get("Abstract", {})
        parts = [str(part).strip() for part in abstract.get("AbstractText", [])]
        text = " ".join(p for p in parts if p)
        if pmid and text:
            abstracts[pmid] = text

    return abstracts


def extract_doi(summary: dict[str, Any]) -> str | None:
    """DOI from articleids, falling back to a 'doi:' elocationid."""
    for article_id in summary.get("articleids") or []:
        if isinstance(article_id, dict) and article_id.get("idtype") == "doi" and article_id.get("value"):
            return article_id["value"]

    elocation = summary.get("elocationid") or ""
    if elocation.lower().startswith("doi:"):
        return elocation[4:].strip() or None
    return None


def normalize_summary(pmid: str, summary: dict[str, Any], abstract: str | None = None) -> Article:
    """Normalize an esummary record into an Article."""
    authors = [a.get("name") for a in summary.get("authors") or [] if isinstance(a, dict) and a.get("name")]
    pmc_id = next(
        (a.get("value") for a in summary.get("articleids") or [] if isinstance(a, dict) and a.get("idtype") == "pmc"),
        None,
    )

    return Article(
        source_id=pmid,
        title=summary.get("title") or "",
        source=SearchSource.PUBMED.value,
        authors=authors,
        journal=summary.get("fulljournalname") or summary.get("source") or UNKNOWN_JOURNAL,
        publication_date=summary.get("pubdate") or UNKNOWN_DATE,
        doi=extract_doi(summary),
        abstract=abstract,
        url=f"{PUBMED_URL}/{pmid}/",
        publication_types=list(summary.get("pubtype") or []),
        metadata={"pmc_id": pmc_id} if pmc_id else {},
    )


class PubMedClient(BaseAPIClient):
    """
    PubMed E-utilities client.

    Usage:
        client = PubMedClient(email="your@email.com")
        articles = await client.search("remimazolam sedation", SearchFilters("5years", "rct"))
    """

    _service_name = "PubMed"

    def __init__(
        self,
        email: str | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize client.

        Args:
            email: Contact email sent with every E-utilities request
            api_key: Optional NCBI API key for higher rate limits (10/sec vs 3/sec)
            timeout: Request timeout in seconds
        """
        self._email = email or DEFAULT_EMAIL
        self._api_key = api_key
        super().__init__(
            timeout=timeout,
            min_interval=MIN_INTERVAL_WITH_KEY if api_key else MIN_INTERVAL,
        )

    def _base_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"db": "pubmed", "tool": "evidence-search", "email": self._email}
        if self._api_key:
            params["api_key"] = self._api_key
        return params

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int | None = None,
        **options: Any,
    ) -> list[Article]:
        """
        Search PubMed.

        Args:
            query: Search query (PubMed syntax allowed)
            filters: Date range and study type filters
            limit: Maximum results (default 20)
            options: Routing options this provider does not support are
                     logged and ignored

        Returns:
            List of Articles in relevance order (empty on failure)
        """
        if options:
            logger.debug(f"{self.service_name}: ignoring unsupported options {sorted(options)}")
        term = build_search_term(query, filters)
        logger.info(f"PubMed: final search term {term!r}")

        try:
            ids = await self.search_ids(term, limit or DEFAULT_LIMIT)
            if not ids:
                return []
            summaries = await self.fetch_summaries(ids)
        except EvidenceSearchError as e:
            logger.warning(f"PubMed search failed: {e}")
            return []

        abstracts = await self.fetch_abstracts(ids)

        articles = [
            normalize_summary(pmid, summaries[pmid], abstracts.get(pmid))
            for pmid in ids
            if isinstance(summaries.get(pmid), dict)
        ]
        logger.info(f"PubMed: returning {len(articles)} articles")
        return articles

    async def search_ids(self, term: str, retmax: int = DEFAULT_LIMIT) -> list[str]:
        """esearch: PMIDs in relevance order."""
        params = {**self._base_params(), "term": term, "retmax": retmax, "retmode": "json", "sort": "relevance"}
        data = await self._make_request(ESEARCH_URL, params=params)
        return list(((data or {}).get("esearchresult") or {}).get("idlist") or [])

    async def fetch_summaries(self, ids: list[str]) -> dict[str, Any]:
        """esummary: document summaries keyed by PMID."""
        params = {**self._base_params(), "id": ",".join(ids), "retmode": "json"}
        data = await self._make_request(ESUMMARY_URL, params=params)
        return (data or {}).get("result") or {}

    async def fetch_abstracts(self, ids: list[str]) -> dict[str, str]:
        """efetch: abstracts keyed by PMID; failures yield an empty mapping."""
        params = {**self._base_params(), "id": ",".join(ids), "retmode": "xml", "rettype": "abstract"}
        try:
            xml_data = await self._make_request(
                EFETCH_URL, params=params, expect_json=False, max_attempts=ABSTRACT_ATTEMPTS
            )
        except EvidenceSearchError as e:
            logger.warning(f"PubMed: failed to fetch abstracts: {e}")
            return {}

        if not xml_data:
            return {}
        try:
            return await asyncio.to_thread(parse_abstracts, xml_data)
        except Exception as e:
            logger.warning(f"PubMed: failed to parse abstracts: {e}")
            return {}

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        if expect_json:
            return response.json()
        return response.content
