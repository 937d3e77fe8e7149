"""
Tests for the /api/v1/predictions routes, the WebSocket stream and the
rate limit on POST.

The orchestrator on app.state runs with stub sources and a stub model
(see conftest.py), so POST requests never leave the process.
"""

from unittest.mock import patch

from fastapi.testclient import TestClient

from aidconnect.ai.errors import ModelHTTPError


async def _start(client, crisis_id="EQ-1", **params):
    return await client.post(f"/api/v1/predictions/{crisis_id}", params=params)


# ══ POST /api/v1/predictions/{id} ═════════════════════════════════════════════


class TestStartPrediction:
    async def test_returns_camel_case_prediction(self, client):
        r = await _start(client)
        assert r.status_code == 200
        data = r.json()
        assert data["id"] == "EQ-1"
        assert data["predictionNarrative"] == "test"
        assert data["next6HoursOutlook"] == ""
        assert data["riskHeatmapPoints"] == [{"latitude": 10.1, "longitude": 20.1, "intensity": 0.8}]
        assert data["predictedSpreadPolygons"] is None

    async def test_unknown_crisis_404_without_model_call(self, client, stub_model):
        r = await _start(client, "NOPE")
        assert r.status_code == 404
        assert r.json()["detail"] == "Crisis with ID NOPE not found."
        assert stub_model.calls == 0

    async def test_cached_prediction_reused(self, client, stub_model):
        await _start(client)
        await _start(client)
        assert stub_model.calls == 1

    async def test_refresh_query_forces_new_call(self, client, stub_model):
        await _start(client)
        r = await _start(client, refresh="true")
        assert r.status_code == 200
        assert stub_model.calls == 2

    async def test_model_failure_is_502_with_message(self, client, stub_model):
        stub_model.error = ModelHTTPError(500, "boom")
        r = await _start(client)
        assert r.status_code == 502
        assert r.json()["detail"] == "Failed to get prediction: Model request failed with status 500: boom"

    async def test_crisis_removed_mid_run_is_404(self, client, feed, orchestrator):
        async def vanish(crisis_id, refresh=False):
            feed.set_crises([])
            return None

        with patch.object(orchestrator, "start_prediction", side_effect=vanish):
            r = await _start(client)

        assert r.status_code == 404


# ══ GET routes ═════════════════════════════════════════════════════════════════


class TestReadPredictions:
    async def test_get_before_any_run_is_404(self, client):
        r = await client.get("/api/v1/predictions/EQ-1")
        assert r.status_code == 404

    async def test_get_after_run_returns_envelope(self, client):
        await _start(client)
        r = await client.get("/api/v1/predictions/EQ-1")
        assert r.status_code == 200
        data = r.json()
        assert data["stale"] is False
        assert data["prediction"]["predictionNarrative"] == "test"

    async def test_snapshot_empty(self, client):
        data = (await client.get("/api/v1/predictions")).json()
        assert data["is_fetching"] is False
        assert data["prediction_error"] is None
        assert data["predictions"] == {}

    async def test_snapshot_after_failure_and_success(self, client, stub_model):
        stub_model.error = ModelHTTPError(500, "boom")
        await _start(client)
        failed = (await client.get("/api/v1/predictions")).json()
        assert failed["states"] == {"EQ-1": "failed"}
        assert failed["prediction_error"].startswith("Failed to get prediction")

        stub_model.error = None
        await _start(client)
        ok = (await client.get("/api/v1/predictions")).json()
        assert ok["states"] == {"EQ-1": "success"}
        assert ok["prediction_error"] is None
        assert ok["predictions"]["EQ-1"]["predictionNarrative"] == "test"


# ══ WebSocket stream ═══════════════════════════════════════════════════════════


class TestPredictionStream:
    def test_initial_snapshot_then_state_changes(self, app_state):
        with TestClient(app_state) as tc:
            with tc.websocket_connect("/api/v1/predictions/stream") as ws:
                initial = ws.receive_json()
                assert initial["is_fetching"] is False
                assert initial["predictions"] == {}

                assert tc.post("/api/v1/predictions/EQ-1").status_code == 200

                fetching = ws.receive_json()
                done = ws.receive_json()

        assert fetching["is_fetching"] is True
        assert fetching["states"] == {"EQ-1": "fetching"}
        assert done["is_fetching"] is False
        assert done["states"] == {"EQ-1": "success"}
        assert done["predictions"]["EQ-1"]["predictionNarrative"] == "test"

    def test_disconnect_unsubscribes(self, app_state, orchestrator):
        with TestClient(app_state) as tc:
            with tc.websocket_connect("/api/v1/predictions/stream") as ws:
                ws.receive_json()
                assert len(orchestrator._listeners) == 1
        assert orchestrator._listeners == []


# ══ Rate limiting ══════════════════════════════════════════════════════════════


class TestRateLimit:
    async def test_429_when_limit_exceeded(self, client):
        from aidconnect.core.rate_limit import limiter

        with patch.object(limiter.limiter, "hit", return_value=False):
            r = await _start(client)

        assert r.status_code == 429
        assert "error" in r.json()

    async def test_within_limit_succeeds(self, client):
        for _ in range(3):
            assert (await _start(client)).status_code == 200

    async def test_limiter_attached_to_app_state(self, app_state):
        from aidconnect.core.rate_limit import limiter

        assert app_state.state.limiter is limiter
