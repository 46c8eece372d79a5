import math

import numpy as np
import pytest

from insurance_api.errors import (
    InvalidOutputError,
    ModelUnavailableError,
    ValidationError,
)
from insurance_api.loaders import ModelRegistry
from insurance_api.predictor import Predictor, check_output, first_value
from insurance_api.records import Variant

from conftest import BOOSTED_SCHEMA, StubModel, make_handle


def _predictor_with(model, validator, encoder, prediction_log=None, variant=Variant.BOOSTED_TREE):
    registry = ModelRegistry(handles={variant: make_handle(variant, model, BOOSTED_SCHEMA)})
    return Predictor(registry, validator, encoder, prediction_log)


def test_end_to_end_boosted_tree(predictor, stub_models, valid_record, prediction_log):
    result = predictor.predict(valid_record, Variant.BOOSTED_TREE)
    assert result.ok
    assert result.value == 9800.0

    seen = stub_models[Variant.BOOSTED_TREE].last_X
    assert list(seen.columns) == BOOSTED_SCHEMA
    row = seen.iloc[0]
    assert row["smoker_yes"] == 0
    assert row["smoker_bmi"] == 0
    assert row["age_squared"] == 900
    assert row["sex_male"] == 1
    assert row[["region_northwest", "region_southeast", "region_southwest"]].sum() == 0

    lines = prediction_log.prediction_path.read_text().splitlines()
    assert len(lines) == 1
    assert "Model: boosted_tree | Prediction: $9800.00 | Age: 30 | BMI: 25.5 | Smoker: no | Region: northeast" in lines[0]


@pytest.mark.parametrize("variant", [Variant.LINEAR, Variant.RANDOM_FOREST])
def test_categorical_variants_get_raw_levels(predictor, stub_models, valid_record, variant):
    result = predictor.predict(valid_record, variant)
    assert result.ok
    seen = stub_models[variant].last_X
    assert seen["region"].dtype.name == "category"
    assert "smoker_bmi" in seen.columns


def test_invalid_input_short_circuits(predictor, stub_models, valid_record, prediction_log):
    result = predictor.predict({**valid_record, "age": 100}, Variant.BOOSTED_TREE)
    assert not result.ok
    assert isinstance(result.error, ValidationError)
    assert result.error.messages == ["Age must be between 18 and 64"]
    assert stub_models[Variant.BOOSTED_TREE].calls == 0
    errors = prediction_log.error_path.read_text()
    assert "Context: Making prediction with boosted_tree model" in errors
    assert "Error: Input validation failed: Age must be between 18 and 64" in errors
    assert prediction_log.prediction_path.read_text() == ""


def test_unknown_variant_is_returned_not_raised(predictor, valid_record, prediction_log):
    result = predictor.predict(valid_record, "xgboost")
    assert not result.ok
    assert isinstance(result.error, ModelUnavailableError)
    assert str(result.error) == "Model not available: xgboost (unknown model variant)"
    assert result.variant == "xgboost"
    assert "Making prediction with xgboost model" in prediction_log.error_path.read_text()


@pytest.mark.parametrize("record", [None, 42, ["age", 30]])
def test_malformed_record_is_returned_not_raised(predictor, stub_models, record):
    result = predictor.predict(record, Variant.LINEAR)
    assert not result.ok
    assert isinstance(result.error, ValidationError)
    assert result.error.messages[0].startswith("Record must be a mapping of patient fields")
    assert stub_models[Variant.LINEAR].calls == 0


def test_unavailable_model(validator, encoder, valid_record, prediction_log):
    predictor = Predictor(ModelRegistry(), validator, encoder, prediction_log)
    result = predictor.predict(valid_record, Variant.LINEAR)
    assert isinstance(result.error, ModelUnavailableError)
    assert "Making prediction with linear model" in prediction_log.error_path.read_text()


def test_negative_prediction_is_clamped(validator, encoder, valid_record):
    predictor = _predictor_with(StubModel(-50.0), validator, encoder)
    result = predictor.predict(valid_record, Variant.BOOSTED_TREE)
    assert result.ok
    assert result.value == 0.0
    assert result.diagnostics == ["Negative prediction (-50.00) adjusted to 0"]


@pytest.mark.parametrize("value", [float("nan"), float("inf")])
def test_non_finite_output_fails(validator, encoder, valid_record, value):
    predictor = _predictor_with(StubModel(value), validator, encoder)
    result = predictor.predict(valid_record, Variant.BOOSTED_TREE)
    assert isinstance(result.error, InvalidOutputError)
    assert result.value is None


def test_model_exception_becomes_typed_failure(validator, encoder, valid_record):
    class Broken:
        def predict(self, X):
            raise RuntimeError("boom")

    result = _predictor_with(Broken(), validator, encoder).predict(valid_record, Variant.BOOSTED_TREE)
    assert isinstance(result.error, InvalidOutputError)
    assert "boom" in str(result.error)


def test_logging_failure_does_not_fail_prediction(validator, encoder, valid_record):
    class BrokenLog:
        def log_prediction(self, *args):
            raise OSError("disk full")

        def log_error(self, *args):
            raise OSError("disk full")

    predictor = _predictor_with(StubModel(10.0), validator, encoder, BrokenLog())
    assert predictor.predict(valid_record, Variant.BOOSTED_TREE).value == 10.0


def test_record_prediction_false_skips_log(predictor, valid_record, prediction_log):
    assert predictor.predict(valid_record, Variant.DUMMY, record_prediction=False).ok
    assert prediction_log.prediction_path.read_text() == ""


def test_predict_batch_marks_failures_nan(predictor, valid_record):
    values = predictor.predict_batch([valid_record, {**valid_record, "sex": "?"}], Variant.LINEAR)
    assert values[0] == 9000.0
    assert math.isnan(values[1])


@pytest.mark.parametrize("raw, expected", [
    (np.array([3.5]), 3.5),
    ([7], 7),
    (2.0, 2.0),
    (np.array([]), None),
    (None, None),
])
def test_first_value(raw, expected):
    assert first_value(raw) == expected


@pytest.mark.parametrize("bad", [None, "12", True])
def test_check_output_rejects(bad):
    with pytest.raises(InvalidOutputError):
        check_output(bad)
