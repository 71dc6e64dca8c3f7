"""
Application Layer - Use Cases and Business Logic Orchestration

Contains:
- search: Routing, multi-source aggregation and enrichment
- synthesis: Evidence selection and answer generation
"""

from .search import (
    AggregationStats,
    EnrichmentPipeline,
    MultiSourceSearcher,
    QueryRouter,
    ResultAggregator,
    RoutingDecision,
    SearchResponse,
)
from .synthesis import AnswerSynthesizer, SynthesizedAnswer

__all__ = [
    # Search
    "QueryRouter",
    "RoutingDecision",
    "ResultAggregator",
    "AggregationStats",
    "EnrichmentPipeline",
    "MultiSourceSearcher",
    "SearchResponse",
    # Synthesis
    "AnswerSynthesizer",
    "SynthesizedAnswer",
]
