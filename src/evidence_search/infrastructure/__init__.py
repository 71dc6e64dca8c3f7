"""
Infrastructure Layer - External Systems Integration

Contains:
- sources: Search and enrichment adapters (PubMed, Europe PMC, OpenAlex,
  ClinicalTrials.gov, CrossRef, Unpaywall)
- cache: TTL cache for search results and answers
- llm: Language-model client used for answer synthesis
"""
