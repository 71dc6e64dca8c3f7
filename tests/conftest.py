"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import httpx
import pytest

from evidence_search.models import Article

# ============================================================
# HTTP Response Helpers
# ============================================================


def _make_response(
    status_code: int = 200,
    json_data: Any = None,
    content: bytes | None = None,
    url: str = "https://example.org/api",
    method: str = "GET",
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """Build an httpx.Response bound to a request so raise_for_status works."""
    request = httpx.Request(method, url)
    if content is not None:
        return httpx.Response(status_code, content=content, request=request, headers=headers)
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, request=request, headers=headers)
    return httpx.Response(status_code, request=request, headers=headers)


@pytest.fixture
def json_response():
    """Factory fixture: json_response(data, status_code=200)."""
    def factory(data: Any = None, status_code: int = 200, **kwargs: Any) -> httpx.Response:
        return _make_response(status_code, json_data=data, **kwargs)
    return factory


def _mock_http(client: Any, *responses: Any, method: str = "get") -> AsyncMock:
    mock = AsyncMock(side_effect=list(responses))
    setattr(client._client, method, mock)
    client._min_interval = 0
    return mock


@pytest.fixture
def http_response():
    """Factory fixture: http_response(status_code, json_data=None, content=None, ...)."""
    return _make_response


@pytest.fixture
def mock_http():
    """Factory fixture: mock_http(client, *responses) replaces client._client.get with an AsyncMock."""
    return _mock_http


@pytest.fixture
def mock_email():
    """Provide a mock contact email."""
    return "test@example.com"


# ============================================================
# Article Fixtures
# ============================================================


def _make_article(source_id: str | None = "12345678", source: str = "pubmed", **kwargs: Any) -> Article:
    defaults: dict[str, Any] = {
        "title": f"Article {source_id}",
        "authors": ["Smith J", "Doe J"],
        "journal": "Journal of Test Medicine",
        "publication_date": "2023 Jan 15",
    }
    defaults.update(kwargs)
    return Article(source_id=source_id, source=source, **defaults)


@pytest.fixture
def sample_article():
    """A PubMed article with a DOI and an abstract."""
    return _make_article(
        "12345678",
        title="Aspirin for Primary Prevention of Stroke in Older Adults",
        authors=["Smith J", "Doe J", "Johnson A", "Lee K"],
        doi="10.1000/test.2023.001",
        abstract="Background: Aspirin is widely used. Results: No reduction in stroke was observed.",
        publication_types=["Journal Article", "Randomized Controlled Trial"],
        url="https://pubmed.ncbi.nlm.nih.gov/12345678/",
    )


@pytest.fixture
def article_factory():
    """Factory fixture building Articles with sensible defaults."""
    return _make_article


# ============================================================
# Provider Payload Fixtures
# ============================================================


@pytest.fixture
def esearch_payload():
    """Mock response from NCBI ESearch (JSON)."""
    return {"esearchresult": {"count": "2", "idlist": ["11111111", "22222222"]}}


@pytest.fixture
def esummary_payload():
    """Mock response from NCBI ESummary (JSON)."""
    return {
        "result": {
            "uids": ["11111111", "22222222"],
            "11111111": {
                "uid": "11111111",
                "title": "Aspirin in the elderly: a randomized trial",
                "authors": [{"name": "McNeil JJ"}, {"name": "Woods RL"}],
                "fulljournalname": "The New England journal of medicine",
                "source": "N Engl J Med",
                "pubdate": "2018 Oct 18",
                "pubtype": ["Journal Article", "Randomized Controlled Trial"],
                "articleids": [
                    {"idtype": "pubmed", "value": "11111111"},
                    {"idtype": "doi", "value": "10.1056/NEJMoa1800722"},
                    {"idtype": "pmc", "value": "PMC6427978"},
                ],
                "elocationid": "doi: 10.1056/NEJMoa1800722",
            },
            "22222222": {
                "uid": "22222222",
                "title": "Antiplatelet therapy: a review",
                "authors": [],
                "source": "Stroke",
                "pubdate": "2021",
                "pubtype": ["Review"],
                "articleids": [{"idtype": "pubmed", "value": "22222222"}],
                "elocationid": "doi:10.1161/STROKE.2021.1",
            },
        }
    }


@pytest.fixture
def europepmc_payload():
    """Mock Europe PMC core search response."""
    return {
        "hitCount": 2,
        "resultList": {
            "result": [
                {
                    "id": "11111111",
                    "source": "MED",
                    "pmid": "11111111",
                    "pmcid": "PMC6427978",
                    "doi": "10.1056/NEJMoa1800722",
                    "title": "Aspirin in the elderly: a randomized trial",
                    "authorString": "McNeil JJ, Woods RL, Nelson MR.",
                    "journalInfo": {"journal": {"title": "The New England journal of medicine"}},
                    "firstPublicationDate": "2018-10-18",
                    "pubYear": "2018",
                    "abstractText": "<h4>Background</h4>Aspirin &amp; stroke in <i>older</i> adults.",
                    "pubTypeList": {"pubType": ["Randomized Controlled Trial", "Journal Article"]},
                    "isOpenAccess": "N",
                    "inEPMC": "Y",
                    "citedByCount": 850,
                },
                {
                    "id": "PPR123",
                    "source": "PPR",
                    "title": "A preprint on antiplatelet therapy",
                    "authorList": {"author": [{"fullName": "Garcia M"}, {"firstName": "Ann", "lastName": "Lee"}]},
                    "pubYear": "2024",
                    "pubTypeList": {"pubType": "Preprint"},
                    "isOpenAccess": "N",
                    "inEPMC": "N",
                },
            ]
        },
    }


@pytest.fixture
def openalex_work():
    """Mock OpenAlex work."""
    return {
        "id": "https://openalex.org/W2890000000",
        "doi": "https://doi.org/10.1056/NEJMoa1800722",
        "title": "Effect of Aspirin on Disability-free Survival in the Healthy Elderly",
        "publication_year": 2018,
        "publication_date": "2018-09-16",
        "type": "article",
        "ids": {
            "openalex": "https://openalex.org/W2890000000",
            "doi": "https://doi.org/10.1056/NEJMoa1800722",
            "pmid": "https://pubmed.ncbi.nlm.nih.gov/11111111",
        },
        "authorships": [
            {"author": {"display_name": "John J. McNeil"}},
            {"author": {"display_name": "Robyn L. Woods"}},
        ],
        "primary_location": {
            "source": {
                "display_name": "New England Journal of Medicine",
                "host_organization_name": "Massachusetts Medical Society",
            }
        },
        "open_access": {"is_oa": True, "oa_status": "bronze", "oa_url": "https://www.nejm.org/doi/pdf/10.1056/NEJMoa1800722"},
        "cited_by_count": 1200,
        "cited_by_percentile_year": {"min": 99, "max": 100},
        "concepts": [{"display_name": "Medicine"}, {"display_name": "Aspirin"}],
        "abstract_inverted_index": {"Aspirin": [0], "did": [1], "not": [2], "prolong": [3], "survival.": [4]},
    }


@pytest.fixture
def trial_study():
    """Mock ClinicalTrials.gov v2 study."""
    return {
        "protocolSection": {
            "identificationModule": {
                "nctId": "NCT01038583",
                "briefTitle": "ASPirin in Reducing Events in the Elderly",
                "officialTitle": "Aspirin in Reducing Events in the Elderly (ASPREE)",
            },
            "statusModule": {
                "overallStatus": "COMPLETED",
                "startDateStruct": {"date": "2010-03"},
                "completionDateStruct": {"date": "2017-06-12"},
                "lastUpdatePostDateStruct": {"date": "2023-01-05"},
            },
            "designModule": {
                "studyType": "INTERVENTIONAL",
                "phases": ["PHASE4"],
                "enrollmentInfo": {"count": 19114},
            },
            "sponsorCollaboratorsModule": {"leadSponsor": {"name": "Monash University"}},
            "descriptionModule": {
                "briefSummary": "Determine whether daily low-dose aspirin extends disability-free life.",
                "detailedDescription": "Long description " * 60,
            },
            "conditionsModule": {"conditions": ["Stroke", "Dementia"]},
            "armsInterventionsModule": {"interventions": [{"name": "Aspirin"}, {"name": "Placebo"}]},
            "outcomesModule": {"primaryOutcomes": [{"measure": "Disability-free survival"}]},
        },
        "resultsSection": {"participantFlowModule": {}},
        "derivedSection": {"references": [{"pmid": "11111111", "citation": "McNeil JJ et al. NEJM 2018"}]},
    }


@pytest.fixture
def crossref_work():
    """Mock CrossRef work message."""
    return {
        "DOI": "10.1000/test.2023.001",
        "is-referenced-by-count": 42,
        "publisher": "Test Publisher",
        "license": [{"URL": "https://creativecommons.org/licenses/by/4.0/"}],
        "funder": [{"name": "National Institutes of Health"}, {"name": "Wellcome Trust"}],
        "author": [
            {"given": "John", "family": "Smith", "ORCID": "https://orcid.org/0000-0001-2345-6789"},
            {"given": "Jane", "family": "Doe"},
        ],
        "link": [
            {
                "URL": "https://publisher.example/full.pdf",
                "content-type": "application/pdf",
                "intended-application": "text-mining",
            }
        ],
        "abstract": "<jats:p>CrossRef abstract &amp; text</jats:p>",
    }


@pytest.fixture
def unpaywall_record():
    """Mock Unpaywall record with a best OA location."""
    return {
        "doi": "10.1000/test.2023.001",
        "is_oa": True,
        "oa_status": "gold",
        "best_oa_location": {
            "url": "https://publisher.example/article",
            "url_for_pdf": "https://publisher.example/article.pdf",
            "url_for_landing_page": "https://publisher.example/article",
            "license": "cc-by",
            "version": "publishedVersion",
            "host_type": "publisher",
        },
        "oa_locations": [
            {
                "url": "https://publisher.example/article",
                "url_for_pdf": "https://publisher.example/article.pdf",
                "version": "publishedVersion",
                "license": "cc-by",
                "host_type": "publisher",
            }
        ],
    }
