"""
Multi-Source Search

Key Components:
- QueryRouter: Keyword-scored selection of providers per question
- ResultAggregator: Deduplication and bounding of merged results
- EnrichmentPipeline: Batched CrossRef/Unpaywall refinement
- MultiSourceSearcher: Routed, concurrent, cached search

Architecture:
    User Query
        │
        ▼
    ┌──────────────────┐
    │   QueryRouter    │  ← Category + per-source limits
    └────────┬─────────┘
             │
    ┌────────┼────────┬──────────┐
    ▼        ▼        ▼          ▼
  PubMed  EuropePMC OpenAlex ClinicalTrials  ← Parallel queries
    │        │        │          │
    └────────┴────────┴──────────┘
             │
             ▼
    ┌──────────────────┐
    │ ResultAggregator │  ← Dedup (first occurrence wins)
    └────────┬─────────┘
             │
             ▼
    ┌──────────────────┐
    │EnrichmentPipeline│  ← CrossRef, then Unpaywall
    └────────┬─────────┘
             │
             ▼
         Article[]
"""

from __future__ import annotations

from .enrichment import EnrichmentPipeline
from .multi_source import MultiSourceSearcher, SearchAdapter, SearchResponse
from .query_router import (
    ROUTING_RULES,
    SOURCE_STRATEGIES,
    QueryRouter,
    RoutingDecision,
    RoutingRule,
)
from .result_aggregator import (
    AggregationStats,
    ResultAggregator,
    bound,
    deduplicate,
)

__all__ = [
    # Routing
    "QueryRouter",
    "RoutingDecision",
    "RoutingRule",
    "ROUTING_RULES",
    "SOURCE_STRATEGIES",
    # Aggregation
    "ResultAggregator",
    "AggregationStats",
    "deduplicate",
    "bound",
    # Enrichment
    "EnrichmentPipeline",
    # Engine
    "MultiSourceSearcher",
    "SearchAdapter",
    "SearchResponse",
]
