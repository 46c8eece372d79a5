# insurance_api/loaders.py
import logging
import pickle
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import joblib
import pandas as pd

from .config import Settings
from .errors import LoadError, ModelUnavailableError, StartupError
from .logger import PredictionLog
from .records import LABEL_COLUMN, RAW_FIELDS, Variant

log = logging.getLogger("insurance-api")

REFERENCE_NAME = "train_data"


class Resolution(str, Enum):
    EXACT = "exact"
    FALLBACK = "fallback"
    NONE = "none"


@dataclass(frozen=True)
class ModelHandle:
    variant: Variant
    model: Any
    path: Path
    object_name: str
    resolution: Resolution
    feature_names: Optional[Tuple[str, ...]] = None


@dataclass
class ModelRegistry:
    """
    Models loaded at startup, keyed by variant, plus the reference dataset.
    Built once by load_all_models and only read afterwards.
    """
    handles: Dict[Variant, ModelHandle] = field(default_factory=dict)
    reference_data: Optional[pd.DataFrame] = None
    attempted: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def loaded(self) -> List[str]:
        names = [v.value for v in Variant if v in self.handles]
        if self.reference_data is not None:
            names.append(REFERENCE_NAME)
        return names

    @property
    def variants(self) -> List[Variant]:
        return [v for v in Variant if v in self.handles]

    @property
    def missing(self) -> List[str]:
        return [name for name in self.attempted if name not in self.loaded]

    def available(self, variant: Variant) -> bool:
        return variant in self.handles

    def get(self, variant: Variant) -> ModelHandle:
        handle = self.handles.get(variant)
        if handle is None:
            raise ModelUnavailableError(variant.value, self.failures.get(variant.value))
        return handle


# ----- Artifacts -----
def _list_dir(p: Path) -> str:
    try:
        if not p.exists():
            return f"<dir {p} does not exist>"
        entries = sorted([f.name for f in p.iterdir()])
        return ", ".join(entries) if entries else "<empty>"
    except OSError as e:
        return f"<error listing dir {p}: {e}>"


def _safe_load(path: Path) -> Any:
    """Load with joblib first, then pickle fallback."""
    try:
        return joblib.load(path)
    except Exception:
        with path.open("rb") as f:
            return pickle.load(f)


def load_artifact(path: Path) -> Dict[str, Any]:
    """
    Read a model artifact as a mapping of object name -> object.
    A saved dict is taken as the mapping; anything else is a single object
    named after the file.
    """
    path = Path(path)
    if not path.exists():
        raise LoadError(
            f"File not found: {path} (directory content: {_list_dir(path.parent)})"
        )
    try:
        obj = _safe_load(path)
    except Exception as e:
        raise LoadError(f"Failed to read {path}: {e}") from e
    if isinstance(obj, dict):
        return {str(k): v for k, v in obj.items()}
    return {path.stem: obj}


def resolve_object(
    objects: Dict[str, Any], expected: Optional[str] = None
) -> Tuple[Optional[str], Any, Resolution]:
    """
    Pick the object called `expected`, else the first one in the artifact.
    Returns (name, object, how it was found).
    """
    if expected is not None and expected in objects:
        return expected, objects[expected], Resolution.EXACT
    if not objects:
        return None, None, Resolution.NONE
    name = next(iter(objects))
    if expected is None:
        return name, objects[name], Resolution.EXACT
    return name, objects[name], Resolution.FALLBACK


def _model_objects(objects: Dict[str, Any]) -> Dict[str, Any]:
    # "feature_names" is schema metadata saved next to the model, not a model
    return {k: v for k, v in objects.items() if k != "feature_names"}


def feature_names_of(model: Any, objects: Optional[Dict[str, Any]] = None) -> Optional[Tuple[str, ...]]:
    """Training-time column order declared by the artifact or the model."""
    if objects and objects.get("feature_names") is not None:
        return tuple(str(c) for c in objects["feature_names"])
    for attr in ("feature_names_in_", "feature_name_", "feature_names"):
        names = getattr(model, attr, None)
        if names is not None and not callable(names):
            return tuple(str(c) for c in names)
    return None


def load_model(variant: Variant, path: Path, expected: Optional[str] = None) -> ModelHandle:
    objects = load_artifact(path)
    name, model, resolution = resolve_object(_model_objects(objects), expected)
    if resolution is Resolution.NONE:
        raise LoadError(f"No objects found in {path}")
    if resolution is Resolution.FALLBACK:
        log.warning("Expected object '%s' not found in %s. Using '%s' instead.", expected, path, name)
    if not hasattr(model, "predict"):
        raise LoadError(f"Object '{name}' in {path} has no predict method")
    return ModelHandle(
        variant=variant,
        model=model,
        path=Path(path),
        object_name=name,
        resolution=resolution,
        feature_names=feature_names_of(model, objects),
    )


def load_reference_data(path: Path, expected: str = REFERENCE_NAME) -> pd.DataFrame:
    """Held-out labelled data used by the metrics and explainability views."""
    path = Path(path)
    if path.suffix.lower() == ".csv":
        if not path.exists():
            raise LoadError(f"Reference data file not found: {path}")
        try:
            df = pd.read_csv(path)
        except Exception as e:
            raise LoadError(f"Failed to read {path}: {e}") from e
    else:
        name, df, resolution = resolve_object(load_artifact(path), expected)
        if resolution is Resolution.NONE:
            raise LoadError(f"No objects found in {path}")
        if resolution is Resolution.FALLBACK:
            log.warning("Expected object '%s' not found in %s. Using '%s' instead.", expected, path, name)
        if not isinstance(df, pd.DataFrame):
            raise LoadError(f"Object '{name}' in {path} is not a DataFrame")

    required: Sequence[str] = RAW_FIELDS + (LABEL_COLUMN,)
    absent = [c for c in required if c not in df.columns]
    if absent:
        raise LoadError(f"Reference data is missing column(s): {', '.join(absent)}")
    return df


# ----- Startup -----
def load_all_models(settings: Settings, prediction_log: Optional[PredictionLog] = None) -> ModelRegistry:
    """
    Try every configured model and the reference dataset independently.
    Raises StartupError only when nothing at all could be loaded.
    """
    registry = ModelRegistry()

    for variant in Variant:
        path = settings.model_path(variant)
        registry.attempted.append(variant.value)
        try:
            registry.handles[variant] = load_model(variant, path, settings.model_objects.get(variant))
        except LoadError as e:
            registry.failures[variant.value] = str(e)
            log.warning("Failed to load %s model: %s", variant.value, e)
            if prediction_log is not None:
                prediction_log.log_error(str(e), f"Loading model from {path}")

    ref_path = settings.reference_path()
    registry.attempted.append(REFERENCE_NAME)
    try:
        registry.reference_data = load_reference_data(ref_path, settings.reference_object)
    except LoadError as e:
        registry.failures[REFERENCE_NAME] = str(e)
        log.warning("Failed to load reference data: %s", e)
        if prediction_log is not None:
            prediction_log.log_error(str(e), "Loading training data")

    if not registry.loaded:
        msg = f"No models could be loaded. Please check the models directory: {settings.model_dir}"
        if prediction_log is not None:
            prediction_log.log_error(msg, "Application startup")
        raise StartupError(msg)

    log.info("Models loaded: %s", ", ".join(registry.loaded))
    if prediction_log is not None:
        prediction_log.log_startup(registry.loaded)
    return registry
