# insurance_api/preprocessing.py
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .config import Settings
from .errors import EncodingError
from .records import LABEL_COLUMN, RAW_FIELDS, RawRecord, Variant

BASELINE_REGION = "northeast"


class FeatureEncoder:
    """
    Turns raw records into the feature frame each model variant was trained on.

    Linear and random forest models were fit on the raw categoricals plus two
    derived columns. The boosted-tree and dummy models were fit on a fully
    numeric frame with one-hot flags (northeast is the dropped region level),
    and must see the training columns in the training order.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    # ---- Single record ----
    def encode(
        self,
        record: RawRecord,
        variant: Variant,
        training_schema: Optional[Sequence[str]] = None,
    ) -> pd.DataFrame:
        data = record.as_dict()
        missing = [name for name in RAW_FIELDS if data.get(name) is None]
        if missing:
            raise EncodingError(f"Record is missing required field(s): {', '.join(missing)}")
        return self.encode_frame(pd.DataFrame([data]), variant, training_schema)

    # ---- Whole frame ----
    def encode_frame(
        self,
        frame: pd.DataFrame,
        variant: Variant,
        training_schema: Optional[Sequence[str]] = None,
    ) -> pd.DataFrame:
        absent = [name for name in RAW_FIELDS if name not in frame.columns]
        if absent:
            raise EncodingError(f"Missing required column(s): {', '.join(absent)}")

        out = frame.drop(columns=[LABEL_COLUMN], errors="ignore").copy()
        try:
            out["age"] = pd.to_numeric(out["age"])
            out["bmi"] = pd.to_numeric(out["bmi"])
            out["children"] = pd.to_numeric(out["children"])
        except (TypeError, ValueError) as e:
            raise EncodingError(f"age, bmi and children must be numeric: {e}") from e
        for name in ("age", "bmi"):
            if not np.isfinite(out[name].to_numpy(dtype=float)).all():
                raise EncodingError(f"{name} must be a finite number")

        is_smoker = out["smoker"] == "yes"
        out["smoker_bmi"] = out["bmi"].where(is_smoker, 0.0)
        out["age_squared"] = out["age"] ** 2

        if variant.numeric_encoding:
            return self._one_hot(out, is_smoker, training_schema)
        return self._categorical(out)

    def _one_hot(
        self,
        out: pd.DataFrame,
        is_smoker: pd.Series,
        training_schema: Optional[Sequence[str]],
    ) -> pd.DataFrame:
        out["smoker_yes"] = is_smoker.astype(int)
        # column order mirrors the derivation order unless a schema overrides it
        out = out[["age", "bmi", "children", "smoker_yes", "smoker_bmi", "age_squared", "region", "sex"]].copy()
        for region in self.settings.region_levels:
            if region == BASELINE_REGION:
                continue
            out[f"region_{region}"] = (out["region"] == region).astype(int)
        out["sex_male"] = (out["sex"] == "male").astype(int)
        out = out.drop(columns=["smoker", "sex", "region"], errors="ignore")

        if training_schema is not None:
            columns = [c for c in training_schema if c != LABEL_COLUMN]
            # reindex adds missing schema columns as 0 and drops the rest
            out = out.reindex(columns=columns, fill_value=0)

        try:
            return out.apply(pd.to_numeric)
        except (TypeError, ValueError) as e:
            raise EncodingError(f"Non-numeric feature value: {e}") from e

    def _categorical(self, out: pd.DataFrame) -> pd.DataFrame:
        for name in ("sex", "smoker", "region"):
            levels = list(self.settings.levels(name))
            unknown = sorted(set(out[name].dropna()) - set(levels))
            if unknown or out[name].isna().any():
                bad = ", ".join(map(str, unknown)) or "missing"
                raise EncodingError(f"{name} value(s) {bad} not in configured levels: {', '.join(levels)}")
            out[name] = pd.Categorical(out[name], categories=levels)
        return out
