"""
Application DI Container (dependency-injector).

Centralizes service creation and lifecycle management. Adapters are
singletons, so their rate-limit state is shared by everything in the
process.

Usage::

    from evidence_search.config import Settings
    from evidence_search.container import ApplicationContainer, close_resources, init_resources

    container = ApplicationContainer()
    container.config.from_dict(Settings.from_env().to_container_config())
    await init_resources(container)

    searcher = container.searcher()
    response = await searcher.search("aspirin stroke prevention elderly")

    await close_resources(container)

    # In tests, override any provider:
    container.pubmed.override(providers.Object(fake_pubmed))
"""

from __future__ import annotations

import logging

from dependency_injector import containers, providers

from evidence_search.application.search import (
    EnrichmentPipeline,
    MultiSourceSearcher,
    QueryRouter,
    ResultAggregator,
)
from evidence_search.application.synthesis import AnswerSynthesizer
from evidence_search.infrastructure.cache import SearchCache
from evidence_search.infrastructure.llm import AnthropicClient
from evidence_search.infrastructure.sources import (
    ClinicalTrialsClient,
    CrossRefClient,
    EuropePMCClient,
    OpenAlexClient,
    PubMedClient,
    UnpaywallClient,
)

logger = logging.getLogger(__name__)


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for Evidence Search.

    Manages creation and lifecycle of all core services:
    - search adapters: ``pubmed``, ``europepmc``, ``openalex``, ``clinicaltrials``
    - enrichment adapters: ``crossref``, ``unpaywall``
    - ``cache``: TTL cache for searches and answers
    - ``router`` / ``aggregator`` / ``enrichment`` / ``searcher``: search pipeline
    - ``llm`` / ``synthesizer``: answer generation
    """

    config = providers.Configuration()

    # Search adapters
    pubmed = providers.Singleton(
        PubMedClient,
        email=config.ncbi_email,
        api_key=config.ncbi_api_key,
    )
    europepmc = providers.Singleton(EuropePMCClient, email=config.europepmc_email)
    openalex = providers.Singleton(OpenAlexClient, email=config.openalex_email)
    clinicaltrials = providers.Singleton(ClinicalTrialsClient)

    # Enrichment adapters
    crossref = providers.Singleton(CrossRefClient, email=config.crossref_email)
    unpaywall = providers.Singleton(UnpaywallClient, email=config.unpaywall_email)

    cache = providers.Singleton(
        SearchCache,
        enabled=config.cache_enabled,
        sweep_interval=config.cache_sweep_interval.as_float(),
    )

    router = providers.Singleton(QueryRouter)
    aggregator = providers.Singleton(
        ResultAggregator,
        max_results=config.max_search_results.as_int(),
    )
    enrichment = providers.Singleton(
        EnrichmentPipeline,
        crossref=crossref,
        unpaywall=unpaywall,
        batch_size=config.enrichment_batch_size.as_int(),
        openalex=openalex,
        use_openalex=config.openalex_enrichment,
    )

    searcher = providers.Singleton(
        MultiSourceSearcher,
        adapters=providers.Dict(
            pubmed=pubmed,
            europepmc=europepmc,
            openalex=openalex,
            clinicaltrials=clinicaltrials,
        ),
        router=router,
        aggregator=aggregator,
        enrichment=enrichment,
        cache=cache,
        search_ttl=config.cache_search_ttl.as_float(),
    )

    llm = providers.Singleton(
        AnthropicClient,
        api_key=config.anthropic_api_key,
        model=config.anthropic_model,
    )
    synthesizer = providers.Singleton(
        AnswerSynthesizer,
        llm=llm,
        cache=cache,
        max_articles=config.max_evidence_articles.as_int(),
        answer_ttl=config.cache_answer_ttl.as_float(),
    )


HTTP_CLIENT_PROVIDERS = ("pubmed", "europepmc", "openalex", "clinicaltrials", "crossref", "unpaywall", "llm")


async def init_resources(container: ApplicationContainer) -> None:
    """Start the cache's background sweep of expired entries."""
    cache = container.cache()
    if cache.enabled:
        await cache.start()
    logger.debug("Container resources initialized")


async def close_resources(container: ApplicationContainer) -> None:
    """Stop the cache sweep and close every HTTP client."""
    await container.cache().stop()
    for name in HTTP_CLIENT_PROVIDERS:
        client = getattr(container, name)()
        close = getattr(client, "close", None)
        if close is not None:
            await close()
    logger.debug("Container resources closed")


__all__ = ["ApplicationContainer", "close_resources", "init_resources"]
