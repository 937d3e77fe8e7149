"""
predictions.py — Live crisis impact prediction routes.

Routes:
  GET  /api/v1/predictions              — observable snapshot (busy flag,
                                          error slot, predictions, states)
  WS   /api/v1/predictions/stream       — pushes a snapshot on every change
  GET  /api/v1/predictions/{crisis_id}  — cached prediction + stale flag
  POST /api/v1/predictions/{crisis_id}  — startPrediction (?refresh=true to
                                          bypass a fresh cache entry)

HOW THE DATA FLOWS
──────────────────
1. The map client selects a crisis and calls POST /api/v1/predictions/{id}.
2. A fresh cached prediction comes straight back. Otherwise the
   orchestrator runs (or joins) the pipeline: five signal sources in
   parallel → prompt → one Gemini call → decode → cache.
3. Clients holding the WebSocket see FETCHING, then SUCCESS / FAILED,
   then the updated prediction map, without polling.

Payloads use the camelCase prediction keys (predictionNarrative, ...).

TESTING
────────
  pytest tests/test_predictions_api.py -v

  curl -X POST "http://localhost:8000/api/v1/predictions/EONET_1234?refresh=true"
  wscat -c ws://localhost:8000/api/v1/predictions/stream
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect

from aidconnect.core.dependencies import get_feed, get_orchestrator
from aidconnect.core.rate_limit import limiter
from aidconnect.models.prediction import CrisisPrediction, PredictionEnvelope, PredictionSnapshot
from aidconnect.services.crisis_feed import CrisisFeed
from aidconnect.services.orchestrator import PredictionOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/predictions", tags=["predictions"])

# Slow WebSocket consumers only need the latest state; older snapshots are dropped.
_STREAM_BUFFER = 16


@router.get("", response_model=PredictionSnapshot)
async def prediction_snapshot(orchestrator: PredictionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.snapshot()


@router.websocket("/stream")
async def prediction_stream(websocket: WebSocket):
    """
    Push the observable snapshot as JSON: once on connect, then on every
    orchestrator state change.
    """
    orchestrator: PredictionOrchestrator = websocket.app.state.orchestrator
    await websocket.accept()

    queue: asyncio.Queue[PredictionSnapshot] = asyncio.Queue(maxsize=_STREAM_BUFFER)

    def _push(snapshot: PredictionSnapshot) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(snapshot)

    unsubscribe = orchestrator.subscribe(_push)

    async def _send_updates() -> None:
        await websocket.send_text(orchestrator.snapshot().model_dump_json(by_alias=True))
        while True:
            snapshot = await queue.get()
            await websocket.send_text(snapshot.model_dump_json(by_alias=True))

    async def _watch_disconnect() -> None:
        # Clients send nothing; receiving only surfaces the close frame.
        while True:
            await websocket.receive_text()

    tasks = [asyncio.ensure_future(_send_updates()), asyncio.ensure_future(_watch_disconnect())]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if isinstance(exc, WebSocketDisconnect):
                # Client closed the map view
                logger.info("Prediction WebSocket client disconnected")
            elif exc is not None:
                logger.warning("Prediction WebSocket error: %s", exc)
    finally:
        for task in tasks:
            task.cancel()
        unsubscribe()


@router.get("/{crisis_id}", response_model=PredictionEnvelope)
async def get_prediction(
    crisis_id: str,
    orchestrator: PredictionOrchestrator = Depends(get_orchestrator),
):
    prediction = orchestrator.store.get(crisis_id)
    if prediction is None:
        raise HTTPException(status_code=404, detail=f"No prediction for crisis {crisis_id} yet.")
    return PredictionEnvelope(
        prediction=prediction,
        stale=orchestrator.store.is_stale(crisis_id, orchestrator.staleness_seconds),
    )


@router.post("/{crisis_id}", response_model=CrisisPrediction)
@limiter.limit("10/minute")
async def start_prediction(
    request: Request,
    crisis_id: str,
    refresh: bool = Query(default=False, description="Ignore a fresh cached prediction"),
    feed: CrisisFeed = Depends(get_feed),
    orchestrator: PredictionOrchestrator = Depends(get_orchestrator),
):
    """
    Start (or join) a prediction for one crisis and wait for the result.

    - 200: the prediction (cached if fresh, otherwise newly generated)
    - 404: the crisis id is not in the active list
    - 502: the model call failed; detail carries the error message
    """
    if feed.get(crisis_id) is None:
        raise HTTPException(status_code=404, detail=f"Crisis with ID {crisis_id} not found.")

    prediction = await orchestrator.start_prediction(crisis_id, refresh=refresh)
    if prediction is None:
        detail = orchestrator.error_for(crisis_id) or "Prediction failed."
        # The feed may have been refreshed while the run was in flight
        status = 404 if feed.get(crisis_id) is None else 502
        raise HTTPException(status_code=status, detail=detail)
    return prediction
