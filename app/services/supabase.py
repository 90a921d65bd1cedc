from __future__ import annotations

import asyncio
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from supabase import Client, create_client

from app.config import settings
from app.models.schemas import NormalizedAnalysis
from app.services import logger as log_service
from app.services.errors import PersistenceError

PROBLEMS_TABLE = "curated_problems"
SAVED_SEARCHES_TABLE = "saved_searches"
PROBLEM_LIST_LIMIT = 50

SUBREDDIT_PATTERN = re.compile(r"reddit\.com/r/([^/?#]+)", re.IGNORECASE)


def get_client(url: str, key: str) -> Client:
    return create_client(url, key)


_client: Client | None = None


def client() -> Client:
    """Service-role client built from settings."""
    global _client
    if _client is None:
        _client = get_client(settings.supabase_url, settings.supabase_service_role_key)
    return _client


async def _execute(query: Any) -> Any:
    """Run blocking Supabase query execution in a worker thread."""
    return await asyncio.to_thread(query.execute)


# --- Analyses ---


async def insert_analyses(
    db: Client, records: list[NormalizedAnalysis], *, search_query: str
) -> list[dict[str, Any]]:
    """Insert every record in one batch and return the stored rows."""
    rows = [record.to_row(search_query) for record in records]
    try:
        result = await _execute(db.table(PROBLEMS_TABLE).insert(rows))
    except Exception as e:
        log_service.log_db_operation(
            operation="insert",
            table=PROBLEMS_TABLE,
            status="error",
            details=f"{len(rows)} rows",
            error=str(e),
        )
        raise PersistenceError(detail=str(e)) from e

    inserted = result.data or []
    log_service.log_db_operation(
        operation="insert",
        table=PROBLEMS_TABLE,
        status="success",
        details=f"{len(inserted)} rows",
    )
    return inserted


async def list_problems(
    db: Client, *, source: str | None = None, limit: int = PROBLEM_LIST_LIMIT
) -> list[dict[str, Any]]:
    query = db.table(PROBLEMS_TABLE).select("*")
    if source:
        query = query.eq("source_type", source)
    result = await _execute(query.order("created_at", desc=True).limit(limit))
    return result.data or []


def extract_subreddits(rows: list[dict[str, Any]], *, top: int = 5) -> list[dict[str, Any]]:
    """Count which subreddits stored reddit problems came from."""
    counts: Counter[str] = Counter()
    for row in rows:
        if row.get("source_type") != "reddit":
            continue
        match = SUBREDDIT_PATTERN.search(row.get("source_url") or "")
        if match:
            counts[match.group(1)] += 1
    return [{"name": name, "count": count} for name, count in counts.most_common(top)]


# --- Saved searches ---


async def create_saved_search(
    db: Client,
    user_id: UUID,
    *,
    search_type: str,
    query: str,
    sources: list[str],
    alert_enabled: bool = False,
    alert_frequency: str = "never",
) -> dict[str, Any]:
    row = {
        "user_id": str(user_id),
        "search_type": search_type,
        "query": query,
        "sources": sources,
        "alert_enabled": alert_enabled,
        "alert_frequency": alert_frequency,
    }
    result = await _execute(db.table(SAVED_SEARCHES_TABLE).insert(row))
    return result.data[0]


async def get_saved_searches(db: Client, user_id: UUID) -> list[dict[str, Any]]:
    result = await _execute(
        db.table(SAVED_SEARCHES_TABLE)
        .select("*")
        .eq("user_id", str(user_id))
        .order("created_at", desc=True)
    )
    return result.data or []


async def update_saved_search(
    db: Client, user_id: UUID, search_id: UUID, **updates: Any
) -> dict[str, Any] | None:
    allowed = {"alert_enabled", "alert_frequency", "query", "sources", "last_run_at"}
    changes = {k: v for k, v in updates.items() if k in allowed and v is not None}
    if not changes:
        result = await _execute(
            db.table(SAVED_SEARCHES_TABLE)
            .select("*")
            .eq("id", str(search_id))
            .eq("user_id", str(user_id))
        )
    else:
        result = await _execute(
            db.table(SAVED_SEARCHES_TABLE)
            .update(changes)
            .eq("id", str(search_id))
            .eq("user_id", str(user_id))
        )
    return result.data[0] if result.data else None


async def mark_saved_search_run(
    db: Client, user_id: UUID, search_id: UUID
) -> dict[str, Any] | None:
    return await update_saved_search(
        db,
        user_id,
        search_id,
        last_run_at=datetime.now(timezone.utc).isoformat(),
    )


async def delete_saved_search(db: Client, user_id: UUID, search_id: UUID) -> None:
    await _execute(
        db.table(SAVED_SEARCHES_TABLE)
        .delete()
        .eq("id", str(search_id))
        .eq("user_id", str(user_id))
    )
