"""
Evidence Search - Multi-Source Medical Literature Search

Aggregates biomedical literature and clinical-trial records from PubMed,
Europe PMC, OpenAlex and ClinicalTrials.gov, enriches them with CrossRef
and Unpaywall, and prepares a bounded, citation-numbered evidence set for
language-model answer synthesis.

Usage:
    from evidence_search import ApplicationContainer, Settings

    container = ApplicationContainer()
    container.config.from_dict(Settings.from_env().to_container_config())

    response = await container.searcher().search("aspirin stroke prevention elderly")
    for article in response.articles:
        print(f"{article.source}:{article.source_id} {article.title}")

Features:
    - Keyword-scored routing of each question to the most useful providers
    - Concurrent fan-out with per-provider rate spacing and retry
    - Cross-source deduplication and best-effort enrichment
    - TTL cache in front of searches and answers
"""

from .application import (
    AnswerSynthesizer,
    MultiSourceSearcher,
    QueryRouter,
    RoutingDecision,
    SearchResponse,
    SynthesizedAnswer,
)
from .config import Settings
from .container import ApplicationContainer
from .models import Article, SearchFilters, SearchSource, StudyType

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "Settings",
    "ApplicationContainer",
    # Models
    "Article",
    "SearchFilters",
    "SearchSource",
    "StudyType",
    # Search
    "QueryRouter",
    "RoutingDecision",
    "MultiSourceSearcher",
    "SearchResponse",
    # Synthesis
    "AnswerSynthesizer",
    "SynthesizedAnswer",
]
