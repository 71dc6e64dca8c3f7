"""
ClinicalTrials.gov API Client

Provides access to ongoing and completed clinical trials.
This is a FREE public API with no registration required.

API Documentation: https://clinicaltrials.gov/data-api/api

Features:
- Search trials by condition/intervention
- Filter by overall status and phase
- Normalize trials into the canonical Article shape

Usage:
    >>> client = ClinicalTrialsClient()
    >>> trials = await client.search("remimazolam sedation phase 3 trial", limit=5)
    >>> for trial in trials:
    ...     print(f"{trial.source_id}: {trial.title} ({trial.metadata['status']})")
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from evidence_search.infrastructure.sources.base_client import BaseAPIClient
from evidence_search.models.article import UNKNOWN_DATE, Article, SearchSource
from evidence_search.shared.exceptions import EvidenceSearchError

if TYPE_CHECKING:
    import httpx

    from evidence_search.models.article import SearchFilters

logger = logging.getLogger(__name__)

# Base URL for ClinicalTrials.gov API v2
BASE_URL = "https://clinicaltrials.gov/api/v2"
STUDY_URL = "https://clinicaltrials.gov/study"
DEFAULT_TIMEOUT = 15.0
DEFAULT_LIMIT = 20
MIN_INTERVAL = 0.2

# Removed from free-text queries to isolate the medical condition.
TRIAL_STOP_PHRASES = (
    "phase 1",
    "phase 2",
    "phase 3",
    "phase 4",
    "clinical trials",
    "clinical trial",
    "trials",
    "trial",
    "studies",
    "study",
    "rct",
    "randomized controlled",
)
_STOP_PHRASE_PATTERN = re.compile(
    r"\b(?:" + "|".join(re.escape(p) for p in TRIAL_STOP_PHRASES) + r")\b",
    re.IGNORECASE,
)

TRIAL_QUERY_KEYWORDS = (
    "trial",
    "clinical trial",
    "study",
    "recruiting",
    "enrollment",
    "nct",
    "phase 1",
    "phase 2",
    "phase 3",
    "phase 4",
    "randomized controlled",
    "rct",
    "intervention study",
    "treatment study",
)

LATE_PHASES = "PHASE3|PHASE4"


def extract_condition(query: str) -> str:
    """Strip quotes and trial-related stop-phrases, leaving the condition."""
    condition = query.replace('"', "").strip()
    condition = _STOP_PHRASE_PATTERN.sub("", condition)
    return re.sub(r"\s+", " ", condition).strip()


def is_trial_query(query: str) -> bool:
    """True when the query is likely asking about clinical trials."""
    lower = query.lower()
    return any(keyword in lower for keyword in TRIAL_QUERY_KEYWORDS)


def build_quality_tags(status: str, phase: str, has_results: bool, enrollment: int) -> list[str]:
    """Short quality labels shown next to a trial."""
    tags: list[str] = []

    for marker, label in (("PHASE4", "Phase 4"), ("PHASE3", "Phase 3"), ("PHASE2", "Phase 2"), ("PHASE1", "Phase 1")):
        if marker in phase:
            tags.append(label)
            break

    if status == "COMPLETED":
        tags.append("Completed")
    elif status in ("RECRUITING", "ACTIVE_NOT_RECRUITING"):
        tags.append("Active")

    if has_results:
        tags.append("Results Available")

    if enrollment > 1000:
        tags.append(f"Large (n={enrollment})")
    elif enrollment > 100:
        tags.append(f"n={enrollment}")

    return tags


class ClinicalTrialsClient(BaseAPIClient):
    """Client for ClinicalTrials.gov public API."""

    _service_name = "ClinicalTrials.gov"

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, min_interval: float = MIN_INTERVAL):
        """
        Initialize client.

        Args:
            timeout: Request timeout in seconds
            min_interval: Minimum seconds between requests
        """
        super().__init__(
            base_url=BASE_URL,
            timeout=timeout,
            min_interval=min_interval,
            headers={"Accept": "application/json"},
        )

    async def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        limit: int | None = None,
        *,
        condition: str | None = None,
        intervention: str | None = None,
        status: str | None = None,
        phase: str | None = None,
        **options: Any,
    ) -> list[Article]:
        """
        Search for clinical trials.

        Args:
            query: Free-text query; trial stop-phrases are removed
            filters: Accepted for interface parity; trials are not filtered
                     by publication date or publication type
            limit: Maximum number of results (default 20)
            condition: Explicit condition (overrides the extracted one)
            intervention: Intervention search term
            status: Overall status filter (e.g. "RECRUITING", "COMPLETED")
            phase: Phase filter (e.g. "PHASE3|PHASE4")
            options: Routing options this provider does not support are
                     logged and ignored

        Returns:
            List of trials as Articles (empty on failure)
        """
        if options:
            logger.debug(f"{self.service_name}: ignoring unsupported options {sorted(options)}")
        cond = condition or extract_condition(query)
        params: dict[str, Any] = {
            "pageSize": limit or DEFAULT_LIMIT,
            "format": "json",
        }
        if cond:
            params["query.cond"] = cond
        if intervention:
            params["query.term"] = intervention
        if status:
            params["filter.overallStatus"] = status
        if phase:
            params["filter.phase"] = phase

        logger.info(f"ClinicalTrials: searching condition={cond!r} (original: {query!r})")

        try:
            data = await self._make_request("/studies", params=params)
        except EvidenceSearchError as e:
            logger.warning(f"ClinicalTrials search failed: {e}")
            return []

        if not isinstance(data, dict):
            return []

        studies = data.get("studies") or []
        logger.info(f"ClinicalTrials: found {len(studies)} trials")
        return [normalize_trial(s) for s in studies if isinstance(s, dict)]

    async def search_by_condition(self, condition: str, limit: int | None = None) -> list[Article]:
        return await self.search(condition, limit=limit, condition=condition)

    async def search_by_intervention(self, intervention: str, limit: int | None = None) -> list[Article]:
        return await self.search("", limit=limit, intervention=intervention)

    async def search_completed_with_results(self, query: str, limit: int | None = None) -> list[Article]:
        return await self.search(query, limit=limit, status="COMPLETED")

    async def search_late_phase(self, query: str, limit: int | None = None) -> list[Article]:
        """Phase 3/4 trials, the most relevant ones for clinical practice."""
        return await self.search(query, limit=limit, phase=LATE_PHASES)

    async def search_recruiting(self, query: str, limit: int | None = None) -> list[Article]:
        return await self.search(query, limit=limit, status="RECRUITING")

    async def get_trial(self, nct_id: str) -> Article | None:
        """
        Get a single trial by NCT ID.

        Args:
            nct_id: NCT identifier (e.g., "NCT05123456")

        Returns:
            Trial as an Article or None
        """
        try:
            data = await self._make_request(f"/studies/{nct_id}", params={"format": "json"})
        except EvidenceSearchError as e:
            logger.warning(f"ClinicalTrials get_trial {nct_id} failed: {e}")
            return None

        if not isinstance(data, dict):
            return None
        # The single-study endpoint returns the study itself; tolerate a list wrapper.
        if "studies" in data:
            studies = data.get("studies") or []
            return normalize_trial(studies[0]) if studies else None
        return normalize_trial(data)

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        if response.status_code == 404:
            logger.debug(f"ClinicalTrials: study not found - {url}")
            return None
        return super()._handle_expected_status(response, url)


def normalize_trial(study: dict[str, Any]) -> Article:
    """Normalize a ClinicalTrials.gov study into an Article."""
    proto = study.get("protocolSection") or {}
    ident = proto.get("identificationModule") or {}
    status_mod = proto.get("statusModule") or {}
    design = proto.get("designModule") or {}
    sponsor = proto.get("sponsorCollaboratorsModule") or {}
    desc = proto.get("descriptionModule") or {}
    conditions = proto.get("conditionsModule") or {}
    arms = proto.get("armsInterventionsModule") or {}
    outcomes = proto.get("outcomesModule") or {}

    nct_id = ident.get("nctId") or None
    title = ident.get("briefTitle") or ident.get("officialTitle") or ""

    overall_status = status_mod.get("overallStatus") or "Unknown"
    phases = design.get("phases") or []
    phase = ", ".join(phases) or "N/A"
    enrollment = (design.get("enrollmentInfo") or {}).get("count") or 0
    lead_sponsor = (sponsor.get("leadSponsor") or {}).get("name") or "Unknown"

    brief_summary = desc.get("briefSummary") or ""
    detailed = desc.get("detailedDescription") or ""
    abstract = brief_summary or detailed[:500] or None

    start_date = (status_mod.get("startDateStruct") or {}).get("date")
    completion_date = (
        (status_mod.get("completionDateStruct") or {}).get("date")
        or (status_mod.get("primaryCompletionDateStruct") or {}).get("date")
    )
    has_results = bool(study.get("resultsSection"))

    publications = [
        {"pmid": ref.get("pmid"), "citation": ref.get("citation")}
        for ref in ((study.get("derivedSection") or {}).get("references") or [])
        if isinstance(ref, dict)
    ]

    return Article(
        source_id=nct_id,
        title=title,
        source=SearchSource.CLINICAL_TRIALS.value,
        authors=[lead_sponsor],
        journal=f"ClinicalTrials.gov ({phase})",
        publication_date=start_date or UNKNOWN_DATE,
        abstract=abstract,
        url=f"{STUDY_URL}/{nct_id}" if nct_id else STUDY_URL,
        publication_types=["Clinical Trial"],
        metadata={
            "status": overall_status,
            "phase": phase,
            "study_design": design.get("studyType") or "Interventional",
            "enrollment": enrollment,
            "conditions": list(conditions.get("conditions") or []),
            "interventions": [i.get("name") for i in arms.get("interventions") or [] if isinstance(i, dict)],
            "primary_outcomes": [o.get("measure") for o in outcomes.get("primaryOutcomes") or [] if isinstance(o, dict)],
            "lead_sponsor": lead_sponsor,
            "has_results": has_results,
            "start_date": start_date,
            "completion_date": completion_date,
            "last_update": (status_mod.get("lastUpdatePostDateStruct") or {}).get("date"),
            "publications": publications,
            "quality_tags": build_quality_tags(overall_status, phase, has_results, enrollment),
        },
    )
