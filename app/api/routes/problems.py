from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from supabase import Client

from app.api.deps import get_db
from app.models.schemas import VALID_SOURCES, SubredditCount
from app.services import supabase as db
from app.services.errors import InputError

router = APIRouter(prefix="/api/problems", tags=["problems"])


@router.get("")
async def list_problems(
    source: str | None = Query(default=None),
    client: Client = Depends(get_db),
) -> list[dict[str, Any]]:
    """Most recent analyzed problems, optionally for one source."""
    if source in ("", "all"):
        source = None
    if source is not None and source not in VALID_SOURCES:
        raise InputError(f"Unknown source: {source}")
    return await db.list_problems(client, source=source)


@router.get("/subreddits", response_model=list[SubredditCount])
async def top_subreddits(client: Client = Depends(get_db)):
    rows = await db.list_problems(client, source="reddit")
    return [SubredditCount(**item) for item in db.extract_subreddits(rows)]
