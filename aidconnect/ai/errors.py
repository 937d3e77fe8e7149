"""
errors.py — Failure taxonomy for generative model calls.

Every hard failure of a model call is one of these. Each carries a short
human-readable message suitable for the orchestrator's error slot; the
HTTP variant also keeps the upstream status code and body for diagnostics.
"""


class PredictionClientError(Exception):
    """Base class: the model call produced no usable answer."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ModelTransportError(PredictionClientError):
    """Network / timeout failure before any HTTP status was received."""


class ModelHTTPError(PredictionClientError):
    """Upstream answered with a non-2xx status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Model request failed with status {status_code}: {body[:300]}")
        self.status_code = status_code
        self.body = body


class EmptyModelAnswerError(PredictionClientError):
    """2xx response but no candidate text to read."""


class AnswerDecodeError(PredictionClientError):
    """The answer text is not a valid prediction document."""
