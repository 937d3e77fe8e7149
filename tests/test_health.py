"""
Tests for GET /health and the API root.
"""


class TestHealth:
    async def test_health_returns_200(self, client):
        r = await client.get("/health")
        assert r.status_code == 200

    async def test_health_reports_loaded_crises(self, client):
        data = (await client.get("/health")).json()
        assert data["status"] == "ok"
        assert data["active_crises"] == 1
        assert data["ai_mock_mode"] is True
        assert data["environment"] == "test"

    async def test_root_metadata(self, client):
        data = (await client.get("/")).json()
        assert data["status"] == "running"
        assert data["name"] == "GlobalAid Connect Prediction API"
