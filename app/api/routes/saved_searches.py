from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from supabase import Client

from app.api.deps import get_current_user_id, get_db
from app.models.schemas import SavedSearchCreate, SavedSearchResponse, SavedSearchUpdate
from app.services import supabase as db
from app.services.errors import NotFoundError

router = APIRouter(prefix="/api/saved-searches", tags=["saved-searches"])


@router.post("", response_model=SavedSearchResponse, status_code=201)
async def save_search(
    body: SavedSearchCreate,
    user_id: UUID = Depends(get_current_user_id),
    client: Client = Depends(get_db),
):
    return await db.create_saved_search(
        client,
        user_id,
        search_type=body.search_type,
        query=body.query.strip(),
        sources=list(dict.fromkeys(body.sources)),
        alert_enabled=body.alert_enabled,
        alert_frequency=body.alert_frequency,
    )


@router.get("", response_model=list[SavedSearchResponse])
async def list_saved_searches(
    user_id: UUID = Depends(get_current_user_id),
    client: Client = Depends(get_db),
):
    return await db.get_saved_searches(client, user_id)


@router.patch("/{search_id}", response_model=SavedSearchResponse)
async def update_saved_search(
    search_id: UUID,
    body: SavedSearchUpdate,
    user_id: UUID = Depends(get_current_user_id),
    client: Client = Depends(get_db),
):
    row = await db.update_saved_search(client, user_id, search_id, **body.model_dump())
    if row is None:
        raise NotFoundError("Saved search not found", detail=f"saved search {search_id}")
    return row


@router.post("/{search_id}/run", response_model=SavedSearchResponse)
async def mark_run(
    search_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    client: Client = Depends(get_db),
):
    """Record that a saved search was just re-run."""
    row = await db.mark_saved_search_run(client, user_id, search_id)
    if row is None:
        raise NotFoundError("Saved search not found", detail=f"saved search {search_id}")
    return row


@router.delete("/{search_id}", status_code=204)
async def delete_saved_search(
    search_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    client: Client = Depends(get_db),
):
    await db.delete_saved_search(client, user_id, search_id)
