"""
Article - Canonical Record for Multi-Source Evidence Search

Every source adapter (PubMed, Europe PMC, OpenAlex, ClinicalTrials.gov)
normalizes its provider payload into this shape, and every enrichment
adapter (CrossRef, Unpaywall) returns a refined copy of it.

Architecture Decision:
    Dataclasses instead of Pydantic: provider payloads are validated
    field-by-field inside each adapter's normalization function, so the
    model itself stays a plain, cheap value object.

Example:
    >>> article = Article(
    ...     source_id="12345678",
    ...     title="Aspirin for primary prevention",
    ...     source="pubmed",
    ...     publication_date="2021 Mar 4",
    ...     publication_types=["Journal Article", "Meta-Analysis"],
    ... )
    >>> article.publication_year
    2021
    >>> article.study_type
    <StudyType.META_ANALYSIS: 'Meta-Analysis'>
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from evidence_search.shared.exceptions import InvalidParameterError

NO_TITLE = "No title available"
UNKNOWN_AUTHORS = "Unknown authors"
UNKNOWN_JOURNAL = "Unknown journal"
UNKNOWN_DATE = "Unknown date"

_YEAR_PATTERN = re.compile(r"\d{4}")


class SearchSource(Enum):
    """Provider tags used throughout routing, aggregation and output."""
    PUBMED = "pubmed"
    EUROPE_PMC = "europepmc"
    OPENALEX = "openalex"
    CLINICAL_TRIALS = "clinicaltrials"

    @property
    def display_name(self) -> str:
        return _SOURCE_DISPLAY_NAMES[self]


_SOURCE_DISPLAY_NAMES = {
    SearchSource.PUBMED: "PubMed",
    SearchSource.EUROPE_PMC: "Europe PMC",
    SearchSource.OPENALEX: "OpenAlex",
    SearchSource.CLINICAL_TRIALS: "ClinicalTrials.gov",
}


class StudyType(Enum):
    """Closed study-type classification shown next to each article."""
    META_ANALYSIS = "Meta-Analysis"
    SYSTEMATIC_REVIEW = "Systematic Review"
    RCT = "RCT"
    CLINICAL_TRIAL = "Clinical Trial"
    REVIEW = "Review"
    GUIDELINE = "Guideline"
    CASE_REPORT = "Case Report"
    OBSERVATIONAL = "Observational Study"
    RESEARCH_ARTICLE = "Research Article"


# Checked in order; the first matching marker decides the study type.
_STUDY_TYPE_PRECEDENCE: tuple[tuple[StudyType, tuple[str, ...]], ...] = (
    (StudyType.META_ANALYSIS, ("meta-analysis",)),
    (StudyType.SYSTEMATIC_REVIEW, ("systematic review",)),
    (StudyType.RCT, ("randomized controlled trial",)),
    (StudyType.CLINICAL_TRIAL, ("clinical trial",)),
    (StudyType.REVIEW, ("review",)),
    (StudyType.GUIDELINE, ("guideline",)),
    (StudyType.CASE_REPORT, ("case report",)),
    (StudyType.OBSERVATIONAL, ("observational study",)),
)


def classify_study_type(publication_types: Iterable[str] | None) -> StudyType | None:
    """
    Classify raw publication-type strings into a StudyType.

    Returns None when no publication types are known, and
    RESEARCH_ARTICLE when types exist but none is recognized.
    """
    types = [str(t).lower() for t in publication_types or [] if t]
    if not types:
        return None

    for study_type, markers in _STUDY_TYPE_PRECEDENCE:
        if any(marker in t for t in types for marker in markers):
            return study_type
    return StudyType.RESEARCH_ARTICLE


def extract_year(value: str | int | None) -> int | None:
    """Extract the first four-digit year from a raw date string."""
    if value is None:
        return None
    match = _YEAR_PATTERN.search(str(value))
    return int(match.group(0)) if match else None


def is_recent_year(year: int | None, current_year: int | None = None) -> bool:
    """An article is recent when published this year or last year."""
    if not year:
        return False
    current = current_year or date.today().year
    return (current - year) <= 1


@dataclass
class Article:
    """
    Canonical article record shared by every stage of the pipeline.

    Key Identifiers:
    - source_id: provider primary key (PMID, NCT number, DOI, OpenAlex ID)
    - doi: join key for CrossRef/Unpaywall enrichment

    Derived on construction:
    - title falls back to NO_TITLE when empty
    - publication_year from publication_date
    - study_type from publication_types (only when not given)
    """
    # === Core Identity ===
    source_id: str | None
    title: str
    source: str

    # === Bibliographic ===
    authors: list[str] = field(default_factory=list)
    journal: str = UNKNOWN_JOURNAL
    publication_date: str = UNKNOWN_DATE
    publication_year: int | None = None
    doi: str | None = None
    abstract: str | None = None
    url: str = ""
    publication_types: list[str] = field(default_factory=list)
    study_type: StudyType | None = None

    # === Metrics / Access ===
    citation_count: int = 0
    full_text_available: bool = False
    full_text_url: str | None = None

    # === Enrichment (CrossRef / Unpaywall) ===
    publisher: str | None = None
    license: str | None = None
    funding: str | None = None
    orcids: list[str] = field(default_factory=list)
    full_text_links: list[dict[str, Any]] = field(default_factory=list)
    full_text_pdf_url: str | None = None
    is_open_access: bool | None = None
    oa_status: str | None = None
    open_access_type: str | None = None

    # === Source-specific extras ===
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.title or not str(self.title).strip():
            self.title = NO_TITLE
        if self.publication_year is None:
            self.publication_year = extract_year(self.publication_date)
        if self.study_type is None:
            self.study_type = classify_study_type(self.publication_types)

    # ===================================================================
    # Properties
    # ===================================================================

    @property
    def is_recent(self) -> bool:
        return is_recent_year(self.publication_year)

    @property
    def author_preview(self) -> str:
        """First three authors, comma separated."""
        if not self.authors:
            return UNKNOWN_AUTHORS
        return ", ".join(self.authors[:3])

    @property
    def all_authors(self) -> str:
        if not self.authors:
            return UNKNOWN_AUTHORS
        return ", ".join(self.authors)

    @property
    def dedup_key(self) -> str:
        """Deduplication key: source_id when present, else lower-cased title."""
        if self.source_id:
            return str(self.source_id)
        return self.title.lower()

    # ===================================================================
    # Serialization
    # ===================================================================

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        data = asdict(self)
        data["study_type"] = self.study_type.value if self.study_type else None
        data["is_recent"] = self.is_recent
        data["author_preview"] = self.author_preview
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Article:
        """Rebuild an Article from :meth:`to_dict` output."""
        values = {k: v for k, v in data.items() if k in _ARTICLE_FIELDS}
        study_type = values.get("study_type")
        if isinstance(study_type, str):
            values["study_type"] = StudyType(study_type)
        return cls(**values)


_ARTICLE_FIELDS = frozenset(Article.__dataclass_fields__)


# =============================================================================
# Search Filters
# =============================================================================

DATE_RANGES: dict[str, int | None] = {
    "all": None,
    "1year": 1,
    "5years": 5,
    "10years": 10,
}

STUDY_TYPE_FILTERS = ("all", "rct", "meta", "review", "clinical", "guideline")


@dataclass(frozen=True)
class SearchFilters:
    """
    User-selected filters; each adapter translates them to native syntax.

    date_range: all | 1year | 5years | 10years
    study_type: all | rct | meta | review | clinical | guideline
    """
    date_range: str = "all"
    study_type: str = "all"

    def __post_init__(self) -> None:
        if self.date_range not in DATE_RANGES:
            raise InvalidParameterError("date_range", self.date_range, " | ".join(DATE_RANGES))
        if self.study_type not in STUDY_TYPE_FILTERS:
            raise InvalidParameterError("study_type", self.study_type, " | ".join(STUDY_TYPE_FILTERS))

    @property
    def years_back(self) -> int | None:
        """Number of years covered by date_range (None for 'all')."""
        return DATE_RANGES[self.date_range]

    @property
    def is_default(self) -> bool:
        return self.date_range == "all" and self.study_type == "all"

    def to_dict(self) -> dict[str, str]:
        return {"date_range": self.date_range, "study_type": self.study_type}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> SearchFilters:
        """Accept snake_case or camelCase keys; missing values mean 'all'."""
        if not data:
            return cls()
        date_range = data.get("date_range", data.get("dateRange")) or "all"
        study_type = data.get("study_type", data.get("studyType")) or "all"
        return cls(date_range=str(date_range), study_type=str(study_type))
