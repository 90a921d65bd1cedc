from __future__ import annotations

import asyncio

from app.models.schemas import SearchResult
from app.services import logger as log_service
from app.tools import firecrawl_search


async def _search_with_timeout(
    query: str,
    source: str,
    mode: str,
    *,
    api_key: str,
    base_url: str,
    timeout: float,
    snippet_chars: int,
) -> list[SearchResult]:
    try:
        return await asyncio.wait_for(
            firecrawl_search.search_source(
                query,
                source,
                mode,
                api_key=api_key,
                base_url=base_url,
                timeout=timeout,
                snippet_chars=snippet_chars,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        log_service.log_search_call(
            source=source,
            query=query,
            duration_ms=int(timeout * 1000),
            status="timeout",
            error=f"no response within {timeout:g}s",
        )
        return []


async def search_all(
    query: str,
    sources: list[str],
    mode: str,
    *,
    api_key: str,
    base_url: str,
    timeout: float = 20.0,
    snippet_chars: int = firecrawl_search.DEFAULT_SNIPPET_CHARS,
) -> list[SearchResult]:
    """Search every requested source concurrently and flatten the results.

    Waits for all sources. A source that errors or exceeds ``timeout``
    contributes nothing; the others are never cancelled on its account.
    """
    raw_results = await asyncio.gather(
        *(
            _search_with_timeout(
                query,
                source,
                mode,
                api_key=api_key,
                base_url=base_url,
                timeout=timeout,
                snippet_chars=snippet_chars,
            )
            for source in sources
        ),
        return_exceptions=True,
    )

    merged: list[SearchResult] = []
    for source, item in zip(sources, raw_results):
        if isinstance(item, BaseException):
            log_service.log_search_call(
                source=source,
                query=query,
                status="error",
                error=str(item) or type(item).__name__,
            )
            continue
        merged.extend(item)
    return merged
