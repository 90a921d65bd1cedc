from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from app import llm_client
from app.config import PipelineCredentials, Settings, settings as default_settings
from app.models.schemas import VALID_MODES, VALID_SOURCES, AnalyzeRequest, CitedSource
from app.services import context_builder, normalizer, search_executor, supabase
from app.services import logger as log_service
from app.services.errors import InputError, NoDiscussionsFoundError
from app.services.prompt_store import build_prompts

MAX_QUERY_CHARS = 500
DEFAULT_MODE = "solver"
DEFAULT_SOURCES = ["reddit"]


@dataclass
class AnalysisOutcome:
    records: list[dict[str, Any]]
    sources: list[CitedSource] = field(default_factory=list)


@dataclass(frozen=True)
class AnalysisInput:
    query: str
    mode: str
    sources: list[str]


def validate_request(request: AnalyzeRequest) -> AnalysisInput:
    query = (request.query or "").strip()
    if not query:
        raise InputError("Query required")
    if len(query) > MAX_QUERY_CHARS:
        raise InputError(f"Query too long (max {MAX_QUERY_CHARS} characters)")

    mode = (request.mode or DEFAULT_MODE).strip().lower()
    if mode not in VALID_MODES:
        raise InputError("Mode must be 'solver' or 'builder'")

    sources = [s for s in dict.fromkeys(request.sources or []) if s in VALID_SOURCES]
    return AnalysisInput(query=query, mode=mode, sources=sources or list(DEFAULT_SOURCES))


class AnalysisPipeline:
    """Search, prompt, analyze and store for one incoming request."""

    def __init__(self, credentials: PipelineCredentials, config: Settings | None = None):
        credentials.validate()
        self.credentials = credentials
        self.config = config or default_settings
        self._db = None

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "AnalysisPipeline":
        config = config or default_settings
        return cls(PipelineCredentials.from_settings(config), config)

    @property
    def db(self):
        if self._db is None:
            self._db = supabase.get_client(
                self.credentials.storage_url, self.credentials.storage_service_key
            )
        return self._db

    async def run(self, request: AnalyzeRequest) -> AnalysisOutcome:
        params = validate_request(request)
        t0 = time.monotonic()
        log_service.log_event(
            event_type="analysis_started",
            message="Analysis started",
            mode=params.mode,
            sources=params.sources,
            query=params.query[:100],
        )

        search_results = await search_executor.search_all(
            params.query,
            params.sources,
            params.mode,
            api_key=self.credentials.search_api_key,
            base_url=self.config.firecrawl_base_url,
            timeout=self.config.search_timeout_seconds,
            snippet_chars=self.config.search_snippet_chars,
        )
        if not search_results:
            raise NoDiscussionsFoundError(detail=f"no results for sources {params.sources}")

        max_results = self.config.context_max_results
        context = context_builder.build_context(
            search_results,
            max_results=max_results,
            snippet_chars=self.config.search_snippet_chars,
        )
        prompts = build_prompts(
            params.mode,
            params.query,
            context,
            structured_action=self.config.solver_structured_action,
        )

        raw_text = await llm_client.invoke(
            prompts.system,
            prompts.user,
            api_key=self.credentials.ai_api_key,
            base_url=self.config.ai_base_url,
            model=self.config.ai_model,
            timeout=self.config.ai_timeout_seconds,
        )
        records = normalizer.normalize_response(raw_text, search_results)
        inserted = await supabase.insert_analyses(self.db, records, search_query=params.query)

        log_service.log_event(
            event_type="analysis_completed",
            message="Analysis completed",
            mode=params.mode,
            results_count=len(search_results),
            records_count=len(inserted),
            runtime_ms=int((time.monotonic() - t0) * 1000),
        )
        return AnalysisOutcome(
            records=inserted,
            sources=context_builder.cited_sources(search_results, max_results=max_results),
        )
