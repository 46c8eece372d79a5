# insurance_api/metrics.py
import logging

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from .loaders import ModelRegistry
from .predictor import Predictor
from .records import LABEL_COLUMN, Variant

log = logging.getLogger("insurance-api")

METRIC_COLUMNS = ["model", "variant", "rmse", "mae", "r_squared", "n"]


def regression_metrics(actual: np.ndarray, predicted: np.ndarray) -> dict:
    """RMSE, MAE and R^2; R^2 is nan when the labels have no variance."""
    rmse = float(np.sqrt(mean_squared_error(actual, predicted)))
    mae = float(mean_absolute_error(actual, predicted))
    # r2_score substitutes its own value for constant labels; keep it undefined
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    r_squared = float(r2_score(actual, predicted)) if ss_tot > 0 else float("nan")
    return {"rmse": rmse, "mae": mae, "r_squared": r_squared}


def compute_metrics(predictor: Predictor, registry: ModelRegistry) -> pd.DataFrame:
    """
    Score every loaded model (except the baseline) on the reference dataset.

    Rows whose prediction fails are left out; a model with no successful
    prediction gets no row at all.
    """
    if registry.reference_data is None:
        log.warning("Reference data not available for metrics calculation")
        return pd.DataFrame(columns=METRIC_COLUMNS)

    data = registry.reference_data
    actual_all = pd.to_numeric(data[LABEL_COLUMN], errors="coerce").to_numpy(dtype=float)
    records = data.drop(columns=[LABEL_COLUMN]).to_dict(orient="records")

    rows = []
    for variant in Variant:
        if not variant.scored or not registry.available(variant):
            continue
        predicted, actual = [], []
        for record, label in zip(records, actual_all):
            result = predictor.predict(record, variant, record_prediction=False)
            if result.ok and np.isfinite(label):
                predicted.append(result.value)
                actual.append(label)
        if not predicted:
            log.warning("No successful predictions for %s; skipping in comparison", variant.value)
            continue
        scores = regression_metrics(np.asarray(actual), np.asarray(predicted))
        rows.append({"model": variant.label, "variant": variant.value, **scores, "n": len(predicted)})

    return pd.DataFrame(rows, columns=METRIC_COLUMNS)
