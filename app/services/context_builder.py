"""Render search results into the discussion block handed to the model."""
from __future__ import annotations

from app.models.schemas import CitedSource, SearchResult

DEFAULT_MAX_RESULTS = 5
DEFAULT_SNIPPET_CHARS = 500
BLOCK_SEPARATOR = "\n\n---\n\n"


def build_context(
    results: list[SearchResult],
    *,
    max_results: int = DEFAULT_MAX_RESULTS,
    snippet_chars: int = DEFAULT_SNIPPET_CHARS,
) -> str:
    blocks = [
        f"[{r.source.upper()} {i}]\n{r.title}\n{r.url}\n{r.snippet[:snippet_chars]}"
        for i, r in enumerate(results[: max(max_results, 0)], start=1)
    ]
    return BLOCK_SEPARATOR.join(blocks)


def cited_sources(
    results: list[SearchResult], *, max_results: int = DEFAULT_MAX_RESULTS
) -> list[CitedSource]:
    return [
        CitedSource(url=r.url, title=r.title, source=r.source)
        for r in results[: max(max_results, 0)]
    ]
