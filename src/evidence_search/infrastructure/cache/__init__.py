"""
Cache Infrastructure

Provides the TTL cache in front of the search and answer pipelines.
"""

from __future__ import annotations

from evidence_search.infrastructure.cache.search_cache import (
    ANSWER_TTL,
    ARTICLE_TTL,
    SEARCH_TTL,
    CacheEntry,
    CacheStats,
    SearchCache,
    make_key,
)

__all__ = [
    "ANSWER_TTL",
    "ARTICLE_TTL",
    "SEARCH_TTL",
    "CacheEntry",
    "CacheStats",
    "SearchCache",
    "make_key",
]
