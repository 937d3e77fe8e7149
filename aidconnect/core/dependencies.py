"""
FastAPI dependencies for the pipeline objects.

The crisis feed and the orchestrator live on app.state (created in
main.py) rather than as module globals, so tests can swap them with
app.dependency_overrides or by assigning new instances.

Usage in a route:
    async def my_route(orchestrator: PredictionOrchestrator = Depends(get_orchestrator)):
        ...
"""

from fastapi import Request

from aidconnect.services.crisis_feed import CrisisFeed
from aidconnect.services.orchestrator import PredictionOrchestrator


def get_feed(request: Request) -> CrisisFeed:
    return request.app.state.crisis_feed


def get_orchestrator(request: Request) -> PredictionOrchestrator:
    return request.app.state.orchestrator
