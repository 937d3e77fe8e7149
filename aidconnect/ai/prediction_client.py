"""
prediction_client.py — One prediction call: prompt in, CrisisPrediction out.

Flow
────
  1. Wrap the prompt in a PredictionRequest (temperature 0.3, 2048 tokens,
     JSON response directive) and send it through GeminiClient.
  2. Reduce the answer to its outermost {...} block (models sometimes add
     code fences or prose even in JSON mode).
  3. Decode it as PredictionAnswer (lenient per element, see models/prediction.py).
  4. Normalise: id := the originating crisis id, timestamp := now.

The model is untrusted for id and timestamp, so step 4 always runs and
never reads the model's values for those two fields.

No retries here. Any hard failure is raised as a PredictionClientError
subclass and the orchestrator decides what to do with it.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from aidconnect.ai.errors import AnswerDecodeError
from aidconnect.ai.gemini_client import GeminiClient, gemini_client
from aidconnect.core.config import settings
from aidconnect.models.crisis import Crisis
from aidconnect.models.prediction import CrisisPrediction, PredictionAnswer, PredictionRequest

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


def decode_answer(text: str) -> PredictionAnswer:
    """
    Parse raw answer text as a PredictionAnswer.

    Raises:
        AnswerDecodeError: no JSON object found, invalid JSON, or a
            schema violation the lenient decoder cannot absorb.
    """
    match = _JSON_BLOCK.search(text)
    if not match:
        raise AnswerDecodeError("Model answer did not contain a JSON object.")

    try:
        data = json.loads(match.group())
    except json.JSONDecodeError as exc:
        raise AnswerDecodeError(f"Model answer was not valid JSON: {exc.msg}") from exc

    if not isinstance(data, dict):
        raise AnswerDecodeError("Model answer JSON was not an object.")

    try:
        return PredictionAnswer.model_validate(data)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise AnswerDecodeError(f"Model answer did not match the prediction schema ({fields}).") from exc


class PredictionClient:
    """Sends a rendered prompt and returns a normalised CrisisPrediction."""

    def __init__(
        self,
        model: Optional[GeminiClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.model = model or gemini_client
        self.clock = clock or (lambda: datetime.now(tz=timezone.utc))

    def build_request(self, prompt: str) -> PredictionRequest:
        return PredictionRequest(
            prompt=prompt,
            temperature=settings.prediction_temperature,
            max_output_tokens=settings.prediction_max_output_tokens,
            response_mime_type="application/json",
        )

    async def predict(self, crisis: Crisis, prompt: str) -> CrisisPrediction:
        """
        Run one model call for `crisis`.

        Raises:
            PredictionClientError: transport, non-2xx, empty answer, or decode failure.
        """
        logger.info("Sending prediction request for crisis %s (%s)", crisis.id, crisis.name)
        logger.debug("Prediction prompt for %s:\n%s", crisis.id, prompt)

        text = await self.model.generate(self.build_request(prompt), response_key="crisis_prediction")
        logger.debug("Raw prediction answer for %s: %.500s", crisis.id, text)

        try:
            answer = decode_answer(text)
        except AnswerDecodeError as exc:
            logger.error("Prediction decode failed for %s: %s", crisis.id, exc.message)
            raise

        prediction = answer.to_prediction(crisis.id, self.clock())
        logger.info(
            "Prediction decoded for %s: %d heatmap points, %d polygons",
            crisis.id,
            len(prediction.risk_heatmap_points or []),
            len(prediction.predicted_spread_polygons or []),
        )
        return prediction
