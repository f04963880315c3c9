"""deepscout - deep research retrieval engine

Simple CLI for running research queries.
"""

import argparse
import asyncio
import json

from deepscout.agents.orchestrator import ResearchOrchestrator
from deepscout.config import settings
from deepscout.llm_client import complete_json
from deepscout.research_core.images.selector import config_from_settings
from deepscout.services.research_cache import ResearchCache
from deepscout.tools.content_extractor import PageContentService
from deepscout.tools.page_fetcher import fetch_page
from deepscout.tools.search_provider import WebSearchClient


def build_orchestrator() -> ResearchOrchestrator:
    return ResearchOrchestrator(
        search=WebSearchClient().search,
        enrich=PageContentService().enrich,
        fetch_page=fetch_page,
        complete_json=complete_json,
        cache=ResearchCache(ttl_seconds=settings.research_cache_ttl_seconds),
        image_config=config_from_settings(),
    )


async def run_research(query: str, mode: str = "quick", as_json: bool = False):
    """Run research on the given query."""
    orchestrator = build_orchestrator()

    if as_json:
        bundle = await orchestrator.run(query, mode)
        print(json.dumps(bundle.to_dict(), indent=2, ensure_ascii=False, default=str))
        return

    print(f"Research query: {query} ({mode})")
    print("-" * 50)

    async for event in orchestrator.research(query, mode):
        event_type = event.event.value
        data = event.data

        if event_type == "search":
            print(f"\n[~] {event.message}")

        elif event_type == "planning":
            plan = data.get("plan", {})
            print(f"\n[*] Research Plan ({data.get('stage')}):")
            for i, question in enumerate(plan.get("sub_questions", []), 1):
                print(f"  {i}. {question[:80]}")
            for follow_up in plan.get("follow_up_queries", []):
                print(f"  > {follow_up[:80]}")

        elif event_type == "ranking":
            sources = data.get("sources", [])
            print(f"\n[+] Ranked {len(sources)} sources:")
            for source in sources:
                print(
                    f"  [{source.get('source_id')}] {source.get('hybrid_score', 0):.3f} "
                    f"{source.get('title', '')[:70]}"
                )
                print(f"       {source.get('url')}")

        elif event_type == "images":
            images = data.get("images", [])
            print(f"\n[+] {len(images)} images:")
            for image in images:
                tag = " (thumbnail)" if image.get("fallback") else ""
                print(f"  - {image.get('image_url')}{tag}")

        elif event_type == "complete":
            bundle = data.get("bundle", {})
            telemetry = bundle.get("telemetry", {})
            print("\n[*] Research Complete!")
            print(f"   Runtime: {telemetry.get('total_ms')}ms")
            print(f"   Cached: {bundle.get('cached')}")
            if bundle.get("answer_summary"):
                print(f"\n{'='*50}")
                print("SUMMARY:")
                print(f"{'='*50}")
                print(bundle["answer_summary"])


def main():
    parser = argparse.ArgumentParser(description="deepscout deep research engine")
    parser.add_argument("--query", "-q", required=True, help="Research query")
    parser.add_argument(
        "--mode", "-m", choices=["quick", "exhaustive"], default="quick", help="Research depth"
    )
    parser.add_argument("--json", action="store_true", help="Print the final bundle as JSON")

    args = parser.parse_args()

    asyncio.run(run_research(args.query, args.mode, args.json))


if __name__ == "__main__":
    main()
