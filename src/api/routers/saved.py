"""GET/POST /saved, DELETE /saved/{id} -- user-curated saved queries."""
from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from src.db.saved_queries import add_saved_query, delete_saved_query, list_saved_queries

router = APIRouter()


class SaveRequest(BaseModel):
    name: str = Field(..., description="Display name")
    query_text: str = Field(..., description="SQL text")


class SavedQueryItem(BaseModel):
    id: int
    name: str
    query_text: str
    created_at: str | None = None


@router.get("", response_model=list[SavedQueryItem])
def list_endpoint():
    """Newest first; entries without a timestamp come last."""
    return [SavedQueryItem(**q.to_dict()) for q in list_saved_queries()]


@router.post("", response_model=SavedQueryItem, status_code=201)
def save_endpoint(req: SaveRequest):
    saved = add_saved_query(req.name, req.query_text)
    return SavedQueryItem(**saved.to_dict())


@router.delete("/{query_id}")
def delete_endpoint(query_id: int):
    if not delete_saved_query(query_id):
        raise HTTPException(status_code=404, detail=f"Saved query {query_id} not found")
    return {"deleted": query_id}
