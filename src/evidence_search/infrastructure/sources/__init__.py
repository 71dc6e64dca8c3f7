"""
External Sources

Search adapters normalize provider payloads into Articles:
- PubMed (NCBI E-utilities)
- Europe PMC
- OpenAlex
- ClinicalTrials.gov

Enrichment adapters refine Articles that carry a DOI:
- CrossRef (citations, license, funding, ORCIDs, links)
- Unpaywall (open access full text)
"""

from __future__ import annotations

from evidence_search.infrastructure.sources.base_client import BaseAPIClient, normalize_doi
from evidence_search.infrastructure.sources.clinical_trials import ClinicalTrialsClient
from evidence_search.infrastructure.sources.crossref import CrossRefClient
from evidence_search.infrastructure.sources.europe_pmc import EuropePMCClient
from evidence_search.infrastructure.sources.openalex import OpenAlexClient
from evidence_search.infrastructure.sources.pubmed import PubMedClient
from evidence_search.infrastructure.sources.unpaywall import UnpaywallClient

__all__ = [
    "BaseAPIClient",
    "normalize_doi",
    # Search adapters
    "PubMedClient",
    "EuropePMCClient",
    "OpenAlexClient",
    "ClinicalTrialsClient",
    # Enrichment adapters
    "CrossRefClient",
    "UnpaywallClient",
]
