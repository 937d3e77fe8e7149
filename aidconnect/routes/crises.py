"""
crises.py — Active crisis list routes.

Routes:
  GET  /api/v1/crises              — currently loaded crises
  POST /api/v1/crises/refresh      — re-fetch from NASA EONET
  GET  /api/v1/crises/{crisis_id}  — one crisis or 404

The list is loaded once at startup (see main.py lifespan) and replaced
wholesale on every successful refresh.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from aidconnect.core.dependencies import get_feed
from aidconnect.models.crisis import Crisis
from aidconnect.services.crisis_feed import CrisisFeed, CrisisFeedError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/crises", tags=["crises"])


@router.get("", response_model=list[Crisis])
async def list_crises(feed: CrisisFeed = Depends(get_feed)):
    return feed.active_crises


@router.post("/refresh", response_model=list[Crisis])
async def refresh_crises(feed: CrisisFeed = Depends(get_feed)):
    """Pull the latest open events. On failure the previous list stays loaded."""
    try:
        return await feed.refresh()
    except CrisisFeedError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/{crisis_id}", response_model=Crisis)
async def get_crisis(crisis_id: str, feed: CrisisFeed = Depends(get_feed)):
    crisis = feed.get(crisis_id)
    if crisis is None:
        raise HTTPException(status_code=404, detail=f"Crisis with ID {crisis_id} not found.")
    return crisis
