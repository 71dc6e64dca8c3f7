"""
QueryRouter - Keyword-Scored Source Selection

Decides which providers to query for a question and how many results to ask
each of them for.

Scoring:
    The query is lower-cased and every category sums the word counts of the
    keyword phrases it contains (substring match), so "clinical practice"
    contributes 2 and "trial" contributes 1. The highest total wins; ties go
    to the category declared first in ROUTING_RULES. No match at all means
    the "general" plan with low confidence.

Architecture Decision:
    QueryRouter is stateless and does not call any external APIs. Both tiers
    of a category's sources are always queried; confidence only tunes the
    per-source limits.

Example:
    >>> router = QueryRouter()
    >>> decision = router.route("phase 3 trial of semaglutide")
    >>> decision.query_type
    'trial'
    >>> decision.sources
    ['clinicaltrials', 'pubmed', 'openalex']
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

GENERAL = "general"

# A "clinical" study-type filter restricts the plan to these sources
CLINICAL_STUDY_TYPE = "clinical"
CLINICAL_TRIAL_SOURCES = ("clinicaltrials", "pubmed")


# =============================================================================
# Routing Tables
# =============================================================================

@dataclass(frozen=True)
class RoutingRule:
    """One topical category: source tiers and the phrases that signal it."""

    primary: tuple[str, ...]
    secondary: tuple[str, ...]
    keywords: tuple[str, ...]

    @property
    def sources(self) -> list[str]:
        """Primary then secondary, order-preserving and deduplicated."""
        return list(dict.fromkeys(self.primary + self.secondary))


# Declaration order is the tie-break order.
ROUTING_RULES: dict[str, RoutingRule] = {
    "trial": RoutingRule(
        primary=("clinicaltrials",),
        secondary=("pubmed", "openalex"),
        keywords=(
            "trial", "trials", "clinical trial", "study protocol",
            "recruiting", "enrollment", "phase 1", "phase 2",
            "phase 3", "phase 4", "randomized controlled",
            "intervention study", "treatment study", "placebo",
            "double blind", "multicenter trial",
        ),
    ),
    "recent": RoutingRule(
        primary=("openalex", "europepmc"),
        secondary=("pubmed",),
        keywords=(
            "recent", "latest", "new", "emerging", "novel",
            "current", "2024", "2025", "up to date",
            "breakthrough", "advancement", "innovation",
        ),
    ),
    "synthesis": RoutingRule(
        primary=("pubmed", "europepmc"),
        secondary=("openalex",),
        keywords=(
            "meta-analysis", "systematic review", "cochrane",
            "evidence synthesis", "pooled analysis", "literature review",
            "consensus", "guideline", "best practice",
        ),
    ),
    "drug": RoutingRule(
        primary=("pubmed", "clinicaltrials"),
        secondary=("europepmc", "openalex"),
        keywords=(
            "drug", "medication", "pharmaceutical", "treatment",
            "therapy", "pharmacology", "dosage", "adverse effects",
            "side effects", "contraindication", "prescription",
        ),
    ),
    "condition": RoutingRule(
        primary=("pubmed", "openalex"),
        secondary=("europepmc", "clinicaltrials"),
        keywords=(
            "disease", "condition", "syndrome", "disorder",
            "pathology", "diagnosis", "symptoms", "etiology",
            "epidemiology", "prevalence", "incidence", "prevention",
        ),
    ),
    "mechanism": RoutingRule(
        primary=("openalex", "pubmed"),
        secondary=("europepmc",),
        keywords=(
            "mechanism", "pathway", "molecular", "cellular",
            "biochemistry", "genetics", "pathophysiology",
            "receptor", "signaling", "gene expression",
            "protein", "enzyme", "metabolism",
        ),
    ),
    "guidelines": RoutingRule(
        primary=("pubmed",),
        secondary=("openalex", "europepmc"),
        keywords=(
            "guideline", "recommendation", "protocol",
            "clinical practice", "standard of care",
            "treatment algorithm", "management",
            "diagnostic criteria", "screening",
        ),
    ),
}

GENERAL_RULE = RoutingRule(
    primary=("pubmed", "europepmc"),
    secondary=("openalex",),
    keywords=(),
)


def _recent_year_from() -> int:
    return datetime.now(timezone.utc).year - 2


# Per-category source strategies: result limit, primary flag, and native
# options passed through to the adapter. Sources missing here are skipped.
SOURCE_STRATEGIES: dict[str, dict[str, dict[str, Any]]] = {
    "trial": {
        "clinicaltrials": {"limit": 15, "primary": True},
        "pubmed": {"limit": 10, "study_type": "clinical"},
        "openalex": {"limit": 5, "work_type": "article"},
    },
    "recent": {
        "openalex": {"limit": 15, "primary": True, "sort": "publication_date:desc", "recent_years": True},
        "europepmc": {"limit": 10, "primary": True},
        "pubmed": {"limit": 5},
    },
    "synthesis": {
        "pubmed": {"limit": 15, "primary": True, "study_type": "meta"},
        "europepmc": {"limit": 10, "primary": True},
        "openalex": {"limit": 5},
    },
    "drug": {
        "pubmed": {"limit": 12, "primary": True},
        "clinicaltrials": {"limit": 8, "primary": True},
        "europepmc": {"limit": 5},
        "openalex": {"limit": 5},
    },
    "condition": {
        "pubmed": {"limit": 12, "primary": True},
        "openalex": {"limit": 10, "primary": True},
        "europepmc": {"limit": 5},
        "clinicaltrials": {"limit": 3},
    },
    "mechanism": {
        "openalex": {"limit": 15, "primary": True, "medical_only": True},
        "pubmed": {"limit": 10, "primary": True},
        "europepmc": {"limit": 5},
    },
    "guidelines": {
        "pubmed": {"limit": 15, "primary": True},
        "openalex": {"limit": 8},
        "europepmc": {"limit": 7},
    },
    GENERAL: {
        "pubmed": {"limit": 10, "primary": True},
        "europepmc": {"limit": 8, "primary": True},
        "openalex": {"limit": 7},
    },
}

_STRATEGY_CONTROL_KEYS = frozenset({"limit", "primary"})


def get_search_strategies(query_type: str) -> dict[str, dict[str, Any]]:
    """Strategy table for a category, falling back to 'general'."""
    return SOURCE_STRATEGIES.get(query_type, SOURCE_STRATEGIES[GENERAL])


def score_query(query: str) -> dict[str, int]:
    """
    Keyword score per category, in declaration order.

    A matching phrase contributes its word count.
    """
    lowered = (query or "").lower()
    return {
        query_type: sum(len(keyword.split()) for keyword in rule.keywords if keyword in lowered)
        for query_type, rule in ROUTING_RULES.items()
    }


def confidence_for(score: int) -> str:
    """Map a winning score to low / medium / high."""
    if score >= 3:
        return "high"
    if score <= 1:
        return "low"
    return "medium"


# =============================================================================
# Routing Decision
# =============================================================================

@dataclass
class RoutingDecision:
    """
    Routing plan for one query. Created per query, never persisted.

    ``sources`` is the execution order: primary-strategy sources first,
    otherwise in rule order.
    """

    query_type: str
    sources: list[str]
    confidence: str
    score: int = 0
    per_source_limit: dict[str, int] = field(default_factory=dict)
    source_options: dict[str, dict[str, Any]] = field(default_factory=dict)
    primary_sources: list[str] = field(default_factory=list)
    reasoning: str = ""
    alternative_types: list[str] = field(default_factory=list)

    def limit_for(self, source: str, default: int = 10) -> int:
        return self.per_source_limit.get(source, default)

    def options_for(self, source: str) -> dict[str, Any]:
        return dict(self.source_options.get(source, {}))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "query_type": self.query_type,
            "sources": list(self.sources),
            "confidence": self.confidence,
            "score": self.score,
            "per_source_limit": dict(self.per_source_limit),
            "source_options": {k: dict(v) for k, v in self.source_options.items()},
            "primary_sources": list(self.primary_sources),
            "reasoning": self.reasoning,
            "alternative_types": list(self.alternative_types),
        }


# =============================================================================
# Router
# =============================================================================

class QueryRouter:
    """
    Routes a question to providers.

    Usage:
        router = QueryRouter()
        decision = router.route("aspirin stroke prevention elderly")
        for source in decision.sources:
            limit = decision.limit_for(source)
    """

    def analyze(self, query: str) -> tuple[str, int, list[str]]:
        """
        Pick the winning category.

        Returns:
            (query_type, score, alternative_types) where alternatives are the
            next two scoring categories.
        """
        scores = score_query(query)
        # sorted() is stable, so equal scores keep declaration order
        ranked = [
            (query_type, score)
            for query_type, score in sorted(scores.items(), key=lambda item: item[1], reverse=True)
            if score > 0
        ]
        if not ranked:
            return GENERAL, 0, []
        best_type, best_score = ranked[0]
        return best_type, best_score, [query_type for query_type, _ in ranked[1:3]]

    def route(self, query: str) -> RoutingDecision:
        """
        Build the routing plan for ``query``.

        Total: empty and whitespace-only queries resolve to 'general'.
        """
        query_type, score, alternatives = self.analyze(query)
        rule = ROUTING_RULES.get(query_type, GENERAL_RULE)
        strategies = get_search_strategies(query_type)

        planned = [source for source in rule.sources if source in strategies]
        primary_first = sorted(planned, key=lambda s: not strategies[s].get("primary", False))

        per_source_limit = {source: int(strategies[source]["limit"]) for source in primary_first}
        source_options = {source: self._native_options(strategies[source]) for source in primary_first}

        if query_type == GENERAL:
            confidence = "low"
            reasoning = f"No specific query type detected, using {', '.join(primary_first)}"
        else:
            confidence = confidence_for(score)
            reasoning = f"Detected {query_type} query (score: {score}), using {', '.join(rule.sources)}"

        decision = RoutingDecision(
            query_type=query_type,
            sources=primary_first,
            confidence=confidence,
            score=score,
            per_source_limit=per_source_limit,
            source_options=source_options,
            primary_sources=list(rule.primary),
            reasoning=reasoning,
            alternative_types=alternatives,
        )
        logger.info(
            f"Routing: {decision.query_type} ({decision.confidence} confidence) -> "
            f"{', '.join(decision.sources)}"
        )
        return decision

    def recommend(self, query: str) -> dict[str, Any]:
        """Routing summary suitable for showing to the user."""
        decision = self.route(query)
        return {
            "query_type": decision.query_type,
            "primary": decision.primary_sources or ["pubmed"],
            "all": list(decision.sources),
            "reason": decision.reasoning,
            "confidence": decision.confidence,
        }

    @staticmethod
    def filter_sources(
        decision: RoutingDecision,
        selected: Iterable[str] | None,
        study_type: str | None = None,
    ) -> RoutingDecision:
        """
        Narrow a decision to caller-selected sources.

        An explicit selection wins. Without one, a "clinical" study-type
        filter keeps only the trial registry and PubMed; otherwise the
        decision is returned as is. Selected sources that the plan does
        not contain are ignored.
        """
        if selected is not None:
            wanted = set(selected)
        elif study_type == CLINICAL_STUDY_TYPE:
            wanted = set(CLINICAL_TRIAL_SOURCES)
        else:
            return decision
        sources = [source for source in decision.sources if source in wanted]
        return replace(
            decision,
            sources=sources,
            per_source_limit={s: v for s, v in decision.per_source_limit.items() if s in wanted},
            source_options={s: v for s, v in decision.source_options.items() if s in wanted},
        )

    @staticmethod
    def _native_options(strategy: dict[str, Any]) -> dict[str, Any]:
        options = {k: v for k, v in strategy.items() if k not in _STRATEGY_CONTROL_KEYS}
        if options.pop("recent_years", False):
            options["year_from"] = _recent_year_from()
        return options
