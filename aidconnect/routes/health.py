"""
Health check endpoint.

Used by:
  - Docker HEALTHCHECK instruction
  - Load balancers / orchestrators
  - Front-end to check API connectivity

Reports whether the model client is in mock mode and how many crises are
loaded, so callers can tell "API down" from "API up but feed empty".
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from aidconnect.core.config import settings
from aidconnect.core.dependencies import get_feed
from aidconnect.services.crisis_feed import CrisisFeed

logger = logging.getLogger(__name__)
router = APIRouter()


class HealthResponse(BaseModel):
    status: str  # Always "ok" if the API process is alive
    version: str
    environment: str
    ai_mock_mode: bool
    active_crises: int


@router.get("", response_model=HealthResponse, summary="API health check")
async def health_check(feed: CrisisFeed = Depends(get_feed)) -> HealthResponse:
    """
    Returns the liveness status of the API.

    The API is healthy (HTTP 200) even with an empty crisis list — the
    feed may simply not have loaded yet.
    """
    return HealthResponse(
        status="ok",
        version="0.1.0",
        environment=settings.environment,
        ai_mock_mode=settings.ai_mock_mode,
        active_crises=len(feed.active_crises),
    )
