"""
GeminiClient — Async wrapper around the Gemini generateContent REST endpoint.

Talks to the API with httpx rather than the SDK so every failure keeps
its raw upstream status code and body (see ai/errors.py).

Supports two runtime modes (set via AI_MOCK_MODE env var):
  - MOCK mode (default): returns deterministic canned responses.
    Use for tests and local dev without API keys.
  - REAL mode: makes actual Gemini API calls.
    Requires GEMINI_API_KEY to be set.

Extension pattern: add new mock response keys to _MOCK_RESPONSES and
reference them in generate() calls via the response_key parameter.

The client performs no retries: a prediction call is expensive and not
safe to repeat blindly. Callers decide whether to re-trigger.
"""

import logging
from typing import Any, Optional

import httpx

from aidconnect.ai.errors import EmptyModelAnswerError, ModelHTTPError, ModelTransportError
from aidconnect.core.config import settings
from aidconnect.models.prediction import PredictionRequest

logger = logging.getLogger(__name__)


# Canned responses for mock mode.
# Keys map to response_key arguments in generate() calls.
_MOCK_RESPONSES: dict[str, str] = {
    "default": (
        "[MOCK] This is a placeholder Gemini response. "
        "Set AI_MOCK_MODE=false and provide GEMINI_API_KEY for real responses."
    ),
    "crisis_context": (
        "[MOCK] Events of this type have recurred in the region over the past decade, "
        "typically peaking within 48 hours of onset before gradually subsiding. "
        "Known vulnerabilities include ageing road infrastructure, limited hospital "
        "surge capacity and informal settlements in low-lying areas."
    ),
    "crisis_prediction": (
        '{"id": "mock", "timestamp": "2000-01-01T00:00:00Z", '
        '"predictionNarrative": "[MOCK] Conditions are expected to remain stable over the next '
        'day with localised worsening near the affected zone.", '
        '"next6HoursOutlook": "Limited spread; response teams maintain current positions.", '
        '"next24HoursOutlook": "Gradual stabilisation if weather conditions hold.", '
        '"estimatedNewAffectedPopulation": 1200, '
        '"criticalInfrastructureAtRisk": ["Regional hospital access road", "Primary power substation"], '
        '"recommendedImmediateActions": ["Pre-position medical supplies", '
        '"Issue precautionary evacuation advisory for low-lying areas"], '
        '"riskHeatmapPoints": [{"latitude": 0.1, "longitude": 0.1, "intensity": 0.7}, '
        '{"latitude": -0.1, "longitude": 0.05, "intensity": 0.4}], '
        '"predictedSpreadPolygons": null}'
    ),
}


def _first_candidate_text(data: Any) -> Optional[str]:
    """Return candidates[0].content.parts[0].text, or None if any level is missing."""
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None


class GeminiClient:
    """
    Central generative-model interface for the prediction pipeline.

    Don't instantiate per-request; use the module-level `gemini_client`
    singleton (tests construct their own with a fake transport).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        mock_mode: Optional[bool] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.mock_mode = settings.ai_mock_mode if mock_mode is None else mock_mode
        self.model = model or settings.gemini_model
        self.timeout = timeout if timeout is not None else settings.http_timeout_seconds
        self._transport = transport

        if not self.mock_mode and not self.api_key:
            logger.warning(
                "GEMINI_API_KEY not set — falling back to mock mode. "
                "Set AI_MOCK_MODE=true to silence this warning."
            )
            self.mock_mode = True

        if self.mock_mode:
            logger.info("GeminiClient initialised in MOCK mode")
        else:
            logger.info("GeminiClient initialised in REAL mode (model: %s)", self.model)

    @property
    def endpoint(self) -> str:
        return f"{settings.gemini_base_url}/models/{self.model}:generateContent"

    async def generate(self, request: PredictionRequest, response_key: str = "default") -> str:
        """
        Send one prompt and return the first candidate's first text part.

        Args:
            request:      Prompt plus generation parameters.
            response_key: Mock response key (ignored in real mode).

        Raises:
            ModelTransportError:   network failure or timeout.
            ModelHTTPError:        non-2xx status (keeps status code + body).
            EmptyModelAnswerError: 2xx without any candidate text.
        """
        if self.mock_mode:
            return _MOCK_RESPONSES.get(response_key, _MOCK_RESPONSES["default"])

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.endpoint,
                    headers={
                        "x-goog-api-key": self.api_key,
                        "Content-Type": "application/json",
                    },
                    json=request.to_payload(),
                )
        except httpx.HTTPError as exc:
            logger.error("Gemini transport error (model=%s): %s", self.model, exc)
            raise ModelTransportError(f"Could not reach the model backend: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Gemini API error: %s — %s", response.status_code, response.text[:200]
            )
            raise ModelHTTPError(response.status_code, response.text)

        try:
            data = response.json()
        except ValueError as exc:
            raise EmptyModelAnswerError("Model response body was not JSON.") from exc

        text = _first_candidate_text(data)
        if not isinstance(text, str) or not text.strip():
            raise EmptyModelAnswerError("No valid content from the model.")
        return text


# Module-level singleton — import and use this everywhere
gemini_client = GeminiClient()
