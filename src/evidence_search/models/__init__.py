"""
Data Models for Evidence Search

Standardized structures for articles gathered from PubMed, Europe PMC,
OpenAlex and ClinicalTrials.gov, and the filters applied to searches.
"""

from .article import (
    Article,
    SearchFilters,
    SearchSource,
    StudyType,
    classify_study_type,
    extract_year,
    is_recent_year,
)

__all__ = [
    "Article",
    "SearchFilters",
    "SearchSource",
    "StudyType",
    "classify_study_type",
    "extract_year",
    "is_recent_year",
]
