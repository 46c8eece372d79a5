# insurance_api/explain.py
import logging
from typing import Optional, Tuple

import numpy as np
import pandas as pd
import shap

from .loaders import ModelHandle, ModelRegistry
from .logger import PredictionLog
from .preprocessing import FeatureEncoder
from .records import RawRecord, Variant

log = logging.getLogger("insurance-api")


def _as_2d(values) -> np.ndarray:
    # single-output regressors give (n, f); some shap versions wrap it in a list
    if isinstance(values, list):
        values = values[0]
    arr = np.asarray(values, dtype=float)
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    return arr


class Explainer:
    """SHAP attributions for the boosted-tree model over the reference data."""

    def __init__(self, handle: ModelHandle, reference_data: pd.DataFrame, encoder: FeatureEncoder):
        self.handle = handle
        self.encoder = encoder
        self.features = encoder.encode_frame(reference_data, handle.variant, handle.feature_names)
        self.explainer = shap.TreeExplainer(handle.model)
        self._importance: Optional[pd.DataFrame] = None

    def feature_importance(self) -> pd.DataFrame:
        """Mean |SHAP| per feature over the reference data, largest first."""
        if self._importance is None:
            values = _as_2d(self.explainer.shap_values(self.features))
            importance = np.abs(values).mean(axis=0)
            self._importance = (
                pd.DataFrame({"feature": list(self.features.columns), "importance": importance})
                .sort_values("importance", ascending=False)
                .reset_index(drop=True)
            )
        return self._importance

    def explain_instance(self, record: RawRecord) -> Tuple[float, pd.DataFrame]:
        """
        Break one prediction down into per-feature contributions.
        Returns (base value, frame of feature / value / contribution).
        """
        row = self.encoder.encode(record, self.handle.variant, self.handle.feature_names)
        values = _as_2d(self.explainer.shap_values(row))[0]
        base = float(np.ravel(self.explainer.expected_value)[0])
        frame = pd.DataFrame({
            "feature": list(row.columns),
            "value": row.iloc[0].to_numpy(dtype=float),
            "contribution": values,
        })
        order = frame["contribution"].abs().sort_values(ascending=False).index
        return base, frame.loc[order].reset_index(drop=True)


def create_explainer(
    registry: ModelRegistry,
    encoder: FeatureEncoder,
    prediction_log: Optional[PredictionLog] = None,
) -> Optional[Explainer]:
    if not registry.available(Variant.BOOSTED_TREE) or registry.reference_data is None:
        log.warning("Model or reference data not available for explainer")
        return None
    try:
        return Explainer(registry.get(Variant.BOOSTED_TREE), registry.reference_data, encoder)
    except Exception as e:
        log.warning("Failed to create explainer: %s", e)
        if prediction_log is not None:
            prediction_log.log_error(str(e), "Creating boosted tree explainer")
        return None
