from __future__ import annotations

import time
from typing import Any

import httpx

from app.models.schemas import SearchResult
from app.services import logger as log_service

SITE_FILTERS = {
    "reddit": "site:reddit.com",
    "twitter": "site:twitter.com OR site:x.com",
    "quora": "site:quora.com",
}

# Phrases people use when a workflow hurts; biases results toward real complaints.
FRICTION_PHRASES = {
    "solver": '("I wish there was" OR "how do I automate" OR "is there a tool")',
    "builder": '("I wish" OR "automate" OR "tool for" OR "still manual")',
}

RESULT_LIMITS = {
    "solver": {"reddit": 3, "twitter": 2, "quora": 2},
    "builder": {"reddit": 5, "twitter": 4, "quora": 3},
}

DEFAULT_SNIPPET_CHARS = 500


def build_search_query(query: str, source: str, mode: str) -> str:
    """Combine the site filter, user query and friction phrases for one source."""
    site_filter = SITE_FILTERS.get(source, "")
    phrases = FRICTION_PHRASES["solver" if mode == "solver" else "builder"]
    return " ".join(part for part in (site_filter, query.strip(), phrases) if part)


def result_limit(source: str, mode: str) -> int:
    limits = RESULT_LIMITS["builder" if mode == "builder" else "solver"]
    return limits.get(source, 2)


def _map_results(
    payload: Any, source: str, snippet_chars: int
) -> list[SearchResult]:
    if not isinstance(payload, dict):
        raise ValueError("Unexpected search response shape")
    raw_results = payload.get("data") or []
    if not isinstance(raw_results, list):
        raise ValueError("Unexpected search response shape")

    mapped: list[SearchResult] = []
    for item in raw_results:
        if not isinstance(item, dict):
            continue
        content = item.get("markdown") or item.get("description") or ""
        mapped.append(
            SearchResult(
                url=item.get("url") or "",
                title=item.get("title") or "Untitled",
                snippet=str(content)[:snippet_chars],
                source=source,
            )
        )
    return mapped


async def search_source(
    query: str,
    source: str,
    mode: str,
    *,
    api_key: str,
    base_url: str,
    timeout: float = 30.0,
    snippet_chars: int = DEFAULT_SNIPPET_CHARS,
) -> list[SearchResult]:
    """Search one discussion platform through Firecrawl.

    Failures are logged and reported as an empty list so that one platform
    being down does not fail a multi-source search.
    """
    search_query = build_search_query(query, source, mode)
    body = {
        "query": search_query,
        "limit": result_limit(source, mode),
        "scrapeOptions": {"formats": ["markdown"]},
    }
    endpoint = base_url.rstrip("/") + "/v1/search"

    t0 = time.monotonic()
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(
                endpoint,
                json=body,
                headers={
                    "Authorization": f"Bearer {api_key}",
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()
            payload = response.json()
        results = _map_results(payload, source, snippet_chars)
    except (httpx.HTTPError, ValueError) as e:
        log_service.log_search_call(
            source=source,
            query=search_query,
            duration_ms=int((time.monotonic() - t0) * 1000),
            status="error",
            error=str(e) or type(e).__name__,
        )
        return []

    log_service.log_search_call(
        source=source,
        query=search_query,
        results_count=len(results),
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    return results
