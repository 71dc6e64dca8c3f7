"""
Environment-driven settings.

Every value has a working default, so ``Settings.from_env()`` succeeds in an
empty environment; only answer synthesis needs ``ANTHROPIC_API_KEY``.

Environment variables:
    CONTACT_EMAIL           Contact address for polite-pool APIs
    NCBI_EMAIL, OPENALEX_EMAIL, UNPAYWALL_EMAIL, CROSSREF_EMAIL
                            Per-provider overrides of CONTACT_EMAIL
    NCBI_API_KEY            NCBI API key (raises PubMed rate limit)
    CACHE_ENABLED           "false" disables the result cache
    CACHE_SEARCH_TTL        Seconds a search result stays cached
    CACHE_ANSWER_TTL        Seconds a synthesized answer stays cached
    CACHE_SWEEP_INTERVAL    Seconds between expired-entry sweeps
    MAX_SEARCH_RESULTS      Bound on aggregated results
    MAX_EVIDENCE_ARTICLES   Articles passed to answer synthesis
    ENRICHMENT_BATCH_SIZE   Concurrent lookups per enrichment batch
    ENRICH_WITH_OPENALEX    "true" adds the OpenAlex enrichment pass
    ANTHROPIC_API_KEY       Language-model API key
    ANTHROPIC_MODEL         Language-model name
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from evidence_search.application.search.enrichment import DEFAULT_BATCH_SIZE
from evidence_search.application.search.result_aggregator import DEFAULT_MAX_RESULTS
from evidence_search.application.synthesis.evidence import MAX_EVIDENCE_ARTICLES
from evidence_search.infrastructure.cache.search_cache import ANSWER_TTL, SEARCH_TTL, SWEEP_INTERVAL
from evidence_search.infrastructure.llm.anthropic_client import DEFAULT_MODEL
from evidence_search.infrastructure.sources.base_client import DEFAULT_EMAIL
from evidence_search.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_FALSE_VALUES = ("0", "false", "no", "off")


def _str(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name, "").strip()
    return value or None


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = _str(env, name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")
    return value


def _bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = _str(env, name)
    if raw is None:
        return default
    return raw.lower() not in _FALSE_VALUES


@dataclass(frozen=True)
class Settings:
    """Process configuration."""

    contact_email: str = DEFAULT_EMAIL
    ncbi_email: str | None = None
    openalex_email: str | None = None
    unpaywall_email: str | None = None
    crossref_email: str | None = None
    ncbi_api_key: str | None = None

    cache_enabled: bool = True
    cache_search_ttl: int = SEARCH_TTL
    cache_answer_ttl: int = ANSWER_TTL
    cache_sweep_interval: int = int(SWEEP_INTERVAL)

    max_search_results: int = DEFAULT_MAX_RESULTS
    max_evidence_articles: int = MAX_EVIDENCE_ARTICLES
    enrichment_batch_size: int = DEFAULT_BATCH_SIZE
    openalex_enrichment: bool = False

    anthropic_api_key: str | None = None
    anthropic_model: str = DEFAULT_MODEL

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> Settings:
        """
        Read settings from ``env`` (defaults to ``os.environ``).

        Raises:
            ConfigurationError: A numeric variable is not a non-negative integer
        """
        env = os.environ if env is None else env
        settings = cls(
            contact_email=_str(env, "CONTACT_EMAIL") or DEFAULT_EMAIL,
            ncbi_email=_str(env, "NCBI_EMAIL"),
            openalex_email=_str(env, "OPENALEX_EMAIL"),
            unpaywall_email=_str(env, "UNPAYWALL_EMAIL"),
            crossref_email=_str(env, "CROSSREF_EMAIL"),
            ncbi_api_key=_str(env, "NCBI_API_KEY"),
            cache_enabled=_bool(env, "CACHE_ENABLED", True),
            cache_search_ttl=_int(env, "CACHE_SEARCH_TTL", SEARCH_TTL),
            cache_answer_ttl=_int(env, "CACHE_ANSWER_TTL", ANSWER_TTL),
            cache_sweep_interval=_int(env, "CACHE_SWEEP_INTERVAL", int(SWEEP_INTERVAL)),
            max_search_results=_int(env, "MAX_SEARCH_RESULTS", DEFAULT_MAX_RESULTS),
            max_evidence_articles=_int(env, "MAX_EVIDENCE_ARTICLES", MAX_EVIDENCE_ARTICLES),
            enrichment_batch_size=_int(env, "ENRICHMENT_BATCH_SIZE", DEFAULT_BATCH_SIZE),
            openalex_enrichment=_bool(env, "ENRICH_WITH_OPENALEX", False),
            anthropic_api_key=_str(env, "ANTHROPIC_API_KEY"),
            anthropic_model=_str(env, "ANTHROPIC_MODEL") or DEFAULT_MODEL,
        )
        if settings.contact_email == DEFAULT_EMAIL:
            logger.warning("CONTACT_EMAIL not set, using the default contact address for polite-pool APIs")
        return settings

    def to_container_config(self) -> dict[str, Any]:
        """Flat mapping for ``ApplicationContainer.config.from_dict``."""
        return {
            "ncbi_email": self.ncbi_email or self.contact_email,
            "openalex_email": self.openalex_email or self.contact_email,
            "unpaywall_email": self.unpaywall_email or self.contact_email,
            "crossref_email": self.crossref_email or self.contact_email,
            "europepmc_email": self.contact_email,
            "ncbi_api_key": self.ncbi_api_key,
            "cache_enabled": self.cache_enabled,
            "cache_search_ttl": self.cache_search_ttl,
            "cache_answer_ttl": self.cache_answer_ttl,
            "cache_sweep_interval": self.cache_sweep_interval,
            "max_search_results": self.max_search_results,
            "max_evidence_articles": self.max_evidence_articles,
            "enrichment_batch_size": self.enrichment_batch_size,
            "openalex_enrichment": self.openalex_enrichment,
            "anthropic_api_key": self.anthropic_api_key,
            "anthropic_model": self.anthropic_model,
        }
