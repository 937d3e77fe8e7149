"""
Unit tests for GeminiClient and SerperAdapter.

Real-mode behaviour is exercised against httpx.MockTransport so no API
key or network is needed. Mock-mode tests only check the canned
responses are wired to the right keys.
"""

import json

import httpx
import pytest

from aidconnect.ai.errors import EmptyModelAnswerError, ModelHTTPError, ModelTransportError
from aidconnect.ai.gemini_client import GeminiClient
from aidconnect.ai.prediction_client import decode_answer
from aidconnect.ai.serper_adapter import SerperAdapter
from aidconnect.models.prediction import PredictionRequest


def _gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


def _real_client(handler) -> GeminiClient:
    return GeminiClient(api_key="test-key", mock_mode=False, transport=httpx.MockTransport(handler))


# ─── Mock mode ────────────────────────────────────────────────────────────────


class TestGeminiClientMockMode:
    def setup_method(self):
        self.client = GeminiClient(mock_mode=True)

    async def test_prediction_key_returns_decodable_json(self):
        text = await self.client.generate(PredictionRequest(prompt="p"), response_key="crisis_prediction")
        answer = decode_answer(text)
        assert answer.prediction_narrative.startswith("[MOCK]")
        assert len(answer.risk_heatmap_points) == 2

    async def test_context_key_returns_plain_text(self):
        text = await self.client.generate(PredictionRequest(prompt="p"), response_key="crisis_context")
        assert text.startswith("[MOCK]")
        assert "{" not in text

    async def test_unknown_key_returns_default(self):
        text = await self.client.generate(PredictionRequest(prompt="p"), response_key="nonexistent_key")
        assert "MOCK" in text

    def test_missing_key_falls_back_to_mock(self):
        client = GeminiClient(api_key="", mock_mode=False)
        assert client.mock_mode is True


# ─── Real mode over a fake transport ──────────────────────────────────────────


class TestGeminiClientRealMode:
    async def test_returns_first_candidate_text(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["key"] = request.headers.get("x-goog-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_body('{"predictionNarrative": "ok"}'))

        client = _real_client(handler)
        text = await client.generate(PredictionRequest(prompt="forecast please"))

        assert text == '{"predictionNarrative": "ok"}'
        assert seen["url"].endswith(f"/models/{client.model}:generateContent")
        assert seen["key"] == "test-key"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "forecast please"
        assert seen["body"]["generationConfig"]["responseMimeType"] == "application/json"

    async def test_non_2xx_raises_http_error_with_status_and_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="backend overloaded")

        with pytest.raises(ModelHTTPError) as exc:
            await _real_client(handler).generate(PredictionRequest(prompt="p"))

        assert exc.value.status_code == 500
        assert exc.value.body == "backend overloaded"
        assert "500" in exc.value.message

    async def test_empty_candidates_raises_empty_answer(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"candidates": []})

        with pytest.raises(EmptyModelAnswerError):
            await _real_client(handler).generate(PredictionRequest(prompt="p"))

    async def test_blank_text_raises_empty_answer(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=_gemini_body("   "))

        with pytest.raises(EmptyModelAnswerError):
            await _real_client(handler).generate(PredictionRequest(prompt="p"))

    async def test_non_json_body_raises_empty_answer(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>proxy page</html>")

        with pytest.raises(EmptyModelAnswerError):
            await _real_client(handler).generate(PredictionRequest(prompt="p"))

    async def test_transport_failure_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ModelTransportError):
            await _real_client(handler).generate(PredictionRequest(prompt="p"))


# ─── SerperAdapter ────────────────────────────────────────────────────────────


class TestSerperAdapter:
    def test_disabled_without_key(self):
        assert SerperAdapter(api_key="").enabled is False

    async def test_disabled_search_returns_empty(self):
        assert await SerperAdapter(api_key="").news_search("flood") == []

    async def test_posts_recent_news_query(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.headers["X-API-KEY"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"news": [
                {"title": "Quake hits coast", "snippet": "Hundreds displaced.", "source": "Wire"},
                {"title": "", "snippet": ""},
                "not an article",
            ]})

        adapter = SerperAdapter(api_key="serper-key", transport=httpx.MockTransport(handler))
        headlines = await adapter.news_search("Coastal Earthquake", num_results=3)

        assert seen["path"] == "/news"
        assert seen["key"] == "serper-key"
        assert seen["body"] == {"q": "Coastal Earthquake", "num": 3, "tbs": "qdr:d"}
        assert [h.as_line() for h in headlines] == ["Quake hits coast: Hundreds displaced."]

    async def test_recency_can_be_disabled(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"news": []})

        adapter = SerperAdapter(api_key="k", transport=httpx.MockTransport(handler))
        await adapter.news_search("storm", recency=None)
        assert "tbs" not in seen["body"]

    async def test_http_error_returns_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, text="bad key")

        adapter = SerperAdapter(api_key="serper-key", transport=httpx.MockTransport(handler))
        assert await adapter.news_search("anything") == []

    async def test_unexpected_payload_returns_empty(self):
        adapter = SerperAdapter(
            api_key="k", transport=httpx.MockTransport(lambda r: httpx.Response(200, json=["x"]))
        )
        assert await adapter.news_search("anything") == []
