"""
Enrichment Pipeline

Refines aggregated articles in two passes: CrossRef (citations, license,
funding, ORCIDs, full-text links) and then Unpaywall (open-access full text).
An optional OpenAlex pass between them adds concepts and citation
percentiles, looking works up by DOI or PMID.

Each pass runs in sequential batches with concurrent lookups inside a
batch and a provider-specific pause between batches. Enrichment is
best-effort: an article that cannot be enriched is passed through as is.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from evidence_search.shared.async_utils import batch_process

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from evidence_search.infrastructure.sources import CrossRefClient, OpenAlexClient, UnpaywallClient
    from evidence_search.models import Article

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


def _guarded(
    step: Callable[[Article], Awaitable[Article]],
    name: str,
) -> Callable[[Article], Awaitable[Article]]:
    async def run(article: Article) -> Article:
        try:
            return await step(article)
        except Exception as e:
            logger.warning(f"{name} enrichment skipped for {article.source_id}: {e}")
            return article
    return run


class EnrichmentPipeline:
    """
    CrossRef, optionally OpenAlex, then Unpaywall, batched.

    Usage:
        pipeline = EnrichmentPipeline(crossref, unpaywall, batch_size=10)
        enriched = await pipeline.enrich(articles)
    """

    def __init__(
        self,
        crossref: CrossRefClient | None = None,
        unpaywall: UnpaywallClient | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        openalex: OpenAlexClient | None = None,
        use_openalex: bool = False,
    ):
        self._crossref = crossref
        self._unpaywall = unpaywall
        self._batch_size = batch_size
        self._openalex = openalex if use_openalex else None

    async def enrich_with_crossref(self, articles: list[Article]) -> list[Article]:
        if self._crossref is None or not articles:
            return articles
        return await batch_process(
            articles,
            _guarded(self._crossref.enrich_article, "CrossRef"),
            batch_size=self._batch_size,
            pause=self._crossref.batch_pause,
        )

    async def enrich_with_openalex(self, articles: list[Article]) -> list[Article]:
        if self._openalex is None or not articles:
            return articles
        return await batch_process(
            articles,
            _guarded(self._openalex.enrich_article, "OpenAlex"),
            batch_size=self._batch_size,
            pause=self._openalex.batch_pause,
        )

    async def enrich_with_unpaywall(self, articles: list[Article]) -> list[Article]:
        if self._unpaywall is None or not articles:
            return articles
        return await batch_process(
            articles,
            _guarded(self._unpaywall.check_full_text, "Unpaywall"),
            batch_size=self._batch_size,
            pause=self._unpaywall.batch_pause,
        )

    async def enrich(self, articles: list[Article]) -> list[Article]:
        """
        Run every configured pass and keep the input order.

        Articles without a DOI come back unchanged, except that the OpenAlex
        pass can still match them by PMID.
        """
        with_doi = sum(1 for a in articles if a.doi)
        if not with_doi and self._openalex is None:
            return articles

        enriched = await self.enrich_with_crossref(articles)
        enriched = await self.enrich_with_openalex(enriched)
        enriched = await self.enrich_with_unpaywall(enriched)

        full_text = sum(1 for a in enriched if a.full_text_available)
        logger.info(f"Enrichment complete: {with_doi}/{len(articles)} with DOI, {full_text} with full text")
        return enriched
