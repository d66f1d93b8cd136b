"""
lobbywatch.api.routes.maps — Map statistics
============================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from lobbywatch.api.deps import get_session
from lobbywatch.services.map_stats import get_map_stats

router = APIRouter(tags=["maps"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class MapStats(BaseModel):
    """Parallel arrays, one entry per weekly period."""

    date: list[str]
    lobbies_hosted: list[int]
    lobbies_started: list[int]
    participants_total: list[int]
    participants_unique_total: list[int]
    pending_time_average: list[float]


# ---------------------------------------------------------------------------
# GET /maps/{region_id}/{map_id}/stats
# ---------------------------------------------------------------------------
@router.get("/maps/{region_id}/{map_id}/stats", response_model=MapStats)
def map_stats(
    region_id: int,
    map_id: int,
    session: Session = Depends(get_session),
):
    return get_map_stats(session, region_id, map_id)
