"""
Command-line entry point.

    python -m evidence_search "aspirin stroke prevention elderly" --date-range 5years --study-type rct
    python -m evidence_search "statins for elderly" --answer

Prints the search response (and optionally the synthesized answer) as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any

from evidence_search.config import Settings
from evidence_search.container import ApplicationContainer, close_resources, init_resources
from evidence_search.models import SearchFilters, SearchSource
from evidence_search.models.article import DATE_RANGES, STUDY_TYPE_FILTERS
from evidence_search.shared.exceptions import EvidenceSearchError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="evidence_search",
        description="Search medical literature across PubMed, Europe PMC, OpenAlex and ClinicalTrials.gov",
    )
    parser.add_argument("query", help="Medical question or search terms")
    parser.add_argument("--date-range", default="all", choices=list(DATE_RANGES), help="Publication date window")
    parser.add_argument("--study-type", default="all", choices=list(STUDY_TYPE_FILTERS), help="Study type filter")
    parser.add_argument(
        "--source",
        action="append",
        choices=[s.value for s in SearchSource],
        help="Restrict to a source (repeatable); default is the routed plan",
    )
    parser.add_argument("--no-enrich", action="store_true", help="Skip CrossRef/Unpaywall enrichment")
    parser.add_argument("--max-results", type=int, default=None, help="Maximum number of results")
    parser.add_argument("--answer", action="store_true", help="Also synthesize an answer (needs ANTHROPIC_API_KEY)")
    return parser


async def run(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    container = ApplicationContainer()
    container.config.from_dict(settings.to_container_config())
    await init_resources(container)

    try:
        filters = SearchFilters(date_range=args.date_range, study_type=args.study_type)
        response = await container.searcher().search(
            args.query,
            filters,
            enrich=not args.no_enrich,
            sources=args.source,
            max_results=args.max_results,
        )
        output = response.to_dict()

        if args.answer:
            answer = await container.synthesizer().generate(args.query, response.articles)
            output["answer"] = answer.to_dict()

        output["cache"] = container.cache().get_stats()
        return output
    finally:
        await close_resources(container)


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)

    try:
        output = asyncio.run(run(args, Settings.from_env()))
    except EvidenceSearchError as e:
        logger.error(f"Search failed: {e}")
        print(json.dumps({"error": e.to_dict()}, indent=2, default=str))
        return 1

    print(json.dumps(output, indent=2, ensure_ascii=False, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
