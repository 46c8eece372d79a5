"""
Shared fixtures: settings pointing at tmp dirs, stub models that record what
they were called with, and joblib artifacts laid out like a models/ directory.
"""

import joblib
import numpy as np
import pandas as pd
import pytest

from insurance_api.config import Settings
from insurance_api.loaders import ModelHandle, ModelRegistry, Resolution
from insurance_api.logger import PredictionLog
from insurance_api.predictor import Predictor
from insurance_api.preprocessing import FeatureEncoder
from insurance_api.records import Variant
from insurance_api.validators import Validator

BOOSTED_SCHEMA = [
    "age", "age_squared", "sex_male", "bmi", "children", "smoker_yes",
    "region_northwest", "region_southeast", "region_southwest", "smoker_bmi",
]


class StubModel:
    """Returns a fixed value per row and keeps the last frame it saw."""

    def __init__(self, value=1000.0, feature_names=None):
        self.value = value
        self.last_X = None
        self.calls = 0
        if feature_names is not None:
            self.feature_names_in_ = np.asarray(feature_names, dtype=object)

    def predict(self, X):
        self.calls += 1
        self.last_X = X
        return np.full(len(X), self.value, dtype=float)


class AgeModel:
    """charges = 100 * age, enough to get non-trivial metrics."""

    def predict(self, X):
        return np.asarray(X["age"], dtype=float) * 100.0


@pytest.fixture
def settings(tmp_path):
    return Settings(model_dir=tmp_path / "models", log_dir=tmp_path / "logs")


@pytest.fixture
def encoder(settings):
    return FeatureEncoder(settings)


@pytest.fixture
def validator(settings):
    return Validator(settings)


@pytest.fixture
def prediction_log(settings):
    plog = PredictionLog(settings)
    yield plog
    plog.close()


@pytest.fixture
def valid_record():
    return {"age": 30, "sex": "male", "bmi": 25.5, "children": 2, "smoker": "no", "region": "northeast"}


@pytest.fixture
def reference_data():
    return pd.DataFrame({
        "age": [19, 33, 45, 60],
        "sex": ["female", "male", "male", "female"],
        "bmi": [27.9, 22.7, 30.1, 25.8],
        "children": [0, 1, 2, 0],
        "smoker": ["yes", "no", "no", "yes"],
        "region": ["southwest", "northwest", "southeast", "northeast"],
        "charges": [16884.92, 21984.47, 8240.59, 28923.14],
    })


def make_handle(variant, model, feature_names=None):
    return ModelHandle(
        variant=variant,
        model=model,
        path=None,
        object_name=f"{variant.value}_model",
        resolution=Resolution.EXACT,
        feature_names=tuple(feature_names) if feature_names else None,
    )


@pytest.fixture
def stub_models():
    return {
        Variant.LINEAR: StubModel(9000.0),
        Variant.RANDOM_FOREST: StubModel(9500.0),
        Variant.BOOSTED_TREE: StubModel(9800.0, feature_names=BOOSTED_SCHEMA),
        Variant.DUMMY: StubModel(13000.0),
    }


@pytest.fixture
def registry(stub_models, reference_data):
    handles = {
        variant: make_handle(variant, model, BOOSTED_SCHEMA if variant is Variant.BOOSTED_TREE else None)
        for variant, model in stub_models.items()
    }
    return ModelRegistry(
        handles=handles,
        reference_data=reference_data,
        attempted=[v.value for v in Variant] + ["train_data"],
    )


@pytest.fixture
def predictor(registry, validator, encoder, prediction_log):
    return Predictor(registry, validator, encoder, prediction_log)


@pytest.fixture
def model_dir(settings, reference_data):
    """A models/ directory with every artifact the default settings expect."""
    d = settings.model_dir
    d.mkdir(parents=True)
    joblib.dump({"lm_model": StubModel(9000.0)}, settings.model_path(Variant.LINEAR))
    joblib.dump({"rf_optimized": StubModel(9500.0)}, settings.model_path(Variant.RANDOM_FOREST))
    joblib.dump(
        {"xgb_best": StubModel(9800.0), "feature_names": BOOSTED_SCHEMA},
        settings.model_path(Variant.BOOSTED_TREE),
    )
    joblib.dump(StubModel(13000.0), settings.model_path(Variant.DUMMY))
    reference_data.to_csv(settings.reference_path(), index=False)
    return d
