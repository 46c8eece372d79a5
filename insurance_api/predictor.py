# insurance_api/predictor.py
import logging
import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Union

import numpy as np

from .errors import (
    InvalidOutputError,
    ModelUnavailableError,
    PredictionError,
    ValidationError,
)
from .loaders import ModelRegistry
from .logger import PredictionLog
from .preprocessing import FeatureEncoder
from .records import RawRecord, Variant
from .validators import Validator

log = logging.getLogger("insurance-api")


@dataclass
class PredictionResult:
    """
    Outcome of one request: either a value or the error that stopped it.
    `variant` stays the raw request value when it names no known variant.
    """
    variant: Union[Variant, str]
    value: Optional[float] = None
    error: Optional[PredictionError] = None
    diagnostics: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


def first_value(raw: Any) -> Any:
    """
    Pull the single prediction out of whatever predict() returned
    (ndarray, list, Series or a bare scalar).
    """
    if raw is None:
        return None
    if hasattr(raw, "to_numpy"):
        raw = raw.to_numpy()
    arr = np.asarray(raw, dtype=object).ravel()
    if arr.size == 0:
        return None
    return arr[0]


def check_output(value: Any) -> float:
    if value is None:
        raise InvalidOutputError("Invalid prediction output from model: no value returned")
    if isinstance(value, (bool, np.bool_)) or not isinstance(value, numbers.Real):
        raise InvalidOutputError(f"Invalid prediction output from model: {value!r} is not numeric")
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        raise InvalidOutputError(f"Invalid prediction output from model: {value}")
    return value


def as_variant(variant: Any) -> Variant:
    try:
        return Variant(variant)
    except ValueError:
        raise ModelUnavailableError(str(variant), "unknown model variant") from None


def as_record(record: Any) -> RawRecord:
    if isinstance(record, RawRecord):
        return record
    if not isinstance(record, Mapping):
        raise ValidationError([f"Record must be a mapping of patient fields, got {type(record).__name__}"])
    return RawRecord.from_mapping(record)


class Predictor:
    """validate -> resolve model -> encode -> infer -> sanity check -> log"""

    def __init__(
        self,
        registry: ModelRegistry,
        validator: Validator,
        encoder: FeatureEncoder,
        prediction_log: Optional[PredictionLog] = None,
    ):
        self.registry = registry
        self.validator = validator
        self.encoder = encoder
        self.prediction_log = prediction_log

    def predict(
        self,
        record: Union[RawRecord, dict],
        variant: Union[Variant, str],
        record_prediction: bool = True,
    ) -> PredictionResult:
        result = PredictionResult(variant=variant)
        try:
            result.variant = as_variant(variant)
            record = as_record(record)
            result.value = self._run(record, result.variant, result.diagnostics)
        except PredictionError as e:
            result.error = e
        except Exception as e:
            # anything the model itself raised
            result.error = InvalidOutputError(f"Model inference failed: {e}")

        if result.error is not None:
            name = getattr(result.variant, "value", result.variant)
            if isinstance(result.error, ValidationError):
                log.warning("Rejected input for %s: %s", name, result.error)
            else:
                log.error("Prediction with %s failed: %s", name, result.error)
            self._log_error(str(result.error), f"Making prediction with {name} model")
            return result

        if record_prediction:
            self._log_prediction(record, result.value, result.variant)
        return result

    def _run(self, record: RawRecord, variant: Variant, diagnostics: List[str]) -> float:
        validation = self.validator.validate(record)
        if not validation.valid:
            raise ValidationError(validation.messages)

        handle = self.registry.get(variant)
        schema = handle.feature_names if variant.requires_schema else None
        features = self.encoder.encode(record, variant, schema)

        value = check_output(first_value(handle.model.predict(features)))
        if value < 0:
            msg = f"Negative prediction ({value:.2f}) adjusted to 0"
            log.warning(msg)
            diagnostics.append(msg)
            value = 0.0
        return value

    def predict_batch(self, records: Iterable[Union[RawRecord, dict]], variant: Variant) -> List[float]:
        """One value per record, nan where the prediction failed."""
        out = []
        for record in records:
            result = self.predict(record, variant)
            out.append(result.value if result.ok else float("nan"))
        return out

    def _log_prediction(self, record: RawRecord, value: float, variant: Variant) -> None:
        if self.prediction_log is None:
            return
        try:
            self.prediction_log.log_prediction(record, value, variant.value)
        except Exception as e:
            log.warning("Failed to log prediction: %s", e)

    def _log_error(self, message: str, context: str) -> None:
        if self.prediction_log is None:
            return
        try:
            self.prediction_log.log_error(message, context)
        except Exception as e:
            log.warning("Failed to log error: %s", e)
