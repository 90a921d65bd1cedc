"""Still Manual - workflow automation analysis

Simple CLI for running an analysis without the web frontend.
"""

import argparse
import asyncio
import sys

from app.models.schemas import VALID_SOURCES, AnalyzeRequest
from app.services.analysis_pipeline import AnalysisPipeline
from app.services.errors import AnalysisError


async def run_analysis(query: str, mode: str, sources: list[str]) -> int:
    """Run one analysis and print what was stored."""
    print(f"Query: {query}")
    print(f"Mode: {mode} | Sources: {', '.join(sources)}")
    print("-" * 50)

    try:
        pipeline = AnalysisPipeline.from_settings()
        outcome = await pipeline.run(AnalyzeRequest(query=query, mode=mode, sources=sources))
    except AnalysisError as e:
        print(f"\n[!] Error ({e.status_code}): {e.message}")
        if e.detail:
            print(f"    {e.detail}")
        return 1

    print(f"\n[*] Stored {len(outcome.records)} problem(s):")
    for i, record in enumerate(outcome.records, 1):
        print(f"\n  {i}. {record.get('title') or 'N/A'} [{record.get('domain') or 'N/A'}]")
        print(f"     Role: {record.get('role') or 'General'}")
        print(f"     Source: {record.get('source_type')} {record.get('source_url')}")
        warnings = record.get("quality_warnings") or []
        if warnings:
            print(f"     Warnings: {', '.join(warnings)}")

    print(f"\n[*] Sources ({len(outcome.sources)}):")
    for source in outcome.sources:
        print(f"  - [{source.source}] {source.title}: {source.url}")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Still Manual workflow analysis")
    parser.add_argument("--query", "-q", required=True, help="Workflow or topic to analyze")
    parser.add_argument(
        "--mode", "-m", choices=["solver", "builder"], default="solver",
        help="solver: one deep analysis, builder: discover several problems",
    )
    parser.add_argument(
        "--source", "-s", action="append", choices=list(VALID_SOURCES), dest="sources",
        help="Platform to search (repeatable, default: reddit)",
    )

    args = parser.parse_args()

    sys.exit(asyncio.run(run_analysis(args.query, args.mode, args.sources or ["reddit"])))


if __name__ == "__main__":
    main()
