# insurance_api/errors.py
from typing import List, Optional


class PredictionError(Exception):
    """Base class for everything that can fail a single prediction request."""


class ValidationError(PredictionError):
    """The input record is outside the configured ranges or categories."""

    def __init__(self, messages: List[str]):
        self.messages = list(messages)
        super().__init__("Input validation failed: " + "; ".join(self.messages))


class EncodingError(PredictionError):
    """The record cannot be turned into the feature vector a model expects."""


class ModelUnavailableError(PredictionError):
    def __init__(self, variant: str, reason: Optional[str] = None):
        self.variant = variant
        msg = f"Model not available: {variant}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class InvalidOutputError(PredictionError):
    """The model returned something that is not a usable number."""


class LoadError(Exception):
    """A model artifact or the reference dataset could not be loaded."""


class StartupError(RuntimeError):
    """Nothing could be loaded, so the service cannot start."""
