# insurance_api/config.py
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from dotenv import find_dotenv, load_dotenv

from .records import Variant

# ----- Defaults -----
DEFAULT_MODEL_FILES = {
    Variant.LINEAR: "linear_model.joblib",
    Variant.RANDOM_FOREST: "random_forest_model.joblib",
    Variant.BOOSTED_TREE: "boosted_tree_model.joblib",
    Variant.DUMMY: "dummy_model.joblib",
}
# Object names the training notebooks saved the models under
DEFAULT_MODEL_OBJECTS = {
    Variant.LINEAR: "lm_model",
    Variant.RANDOM_FOREST: "rf_optimized",
    Variant.BOOSTED_TREE: "xgb_best",
    Variant.DUMMY: None,
}
DEFAULT_REFERENCE_DATA = "train_data.csv"

DEFAULT_ORIGINS = [
    "http://localhost:8501",
    "http://127.0.0.1:8501",
]


@dataclass(frozen=True)
class FieldRange:
    """Inclusive [low, high] bounds for a numeric field."""
    low: float
    high: float

    def contains(self, value: float) -> bool:
        return self.low <= value <= self.high


@dataclass(frozen=True)
class Settings:
    model_dir: Path = Path("models")
    model_files: Dict[Variant, str] = field(default_factory=lambda: dict(DEFAULT_MODEL_FILES))
    model_objects: Dict[Variant, Optional[str]] = field(default_factory=lambda: dict(DEFAULT_MODEL_OBJECTS))
    reference_data: str = DEFAULT_REFERENCE_DATA
    reference_object: str = "train_data"

    age_range: FieldRange = FieldRange(18, 64)
    bmi_range: FieldRange = FieldRange(15, 55)
    children_range: FieldRange = FieldRange(0, 5)

    sex_levels: Tuple[str, ...] = ("male", "female")
    smoker_levels: Tuple[str, ...] = ("yes", "no")
    region_levels: Tuple[str, ...] = ("northeast", "northwest", "southeast", "southwest")

    log_dir: Path = Path("logs")
    logging_enabled: bool = True
    log_level: str = "INFO"
    prediction_log: str = "predictions.log"
    error_log: str = "errors.log"

    allow_origins: Tuple[str, ...] = tuple(DEFAULT_ORIGINS) + ("*",)

    def model_path(self, variant: Variant) -> Path:
        return self.model_dir / self.model_files[variant]

    def reference_path(self) -> Path:
        return self.model_dir / self.reference_data

    def levels(self, name: str) -> Tuple[str, ...]:
        return {
            "sex": self.sex_levels,
            "smoker": self.smoker_levels,
            "region": self.region_levels,
        }[name]

    def range_for(self, name: str) -> FieldRange:
        return {
            "age": self.age_range,
            "bmi": self.bmi_range,
            "children": self.children_range,
        }[name]


# ----- Env parsing -----
def _parse_list(s: Optional[str]) -> List[str]:
    if not s:
        return []
    return [o.strip() for o in s.split(",") if o.strip()]


def _parse_range(name: str, s: Optional[str], default: FieldRange) -> FieldRange:
    if not s:
        return default
    parts = _parse_list(s)
    if len(parts) != 2:
        raise ValueError(f"{name} must look like 'min,max', got {s!r}")
    try:
        low, high = float(parts[0]), float(parts[1])
    except ValueError as e:
        raise ValueError(f"{name} must contain two numbers, got {s!r}") from e
    if low > high:
        raise ValueError(f"{name}: min {low:g} is greater than max {high:g}")
    return FieldRange(low, high)


def _parse_levels(name: str, s: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if not s:
        return default
    levels = tuple(_parse_list(s))
    if not levels:
        raise ValueError(f"{name} must list at least one value")
    return levels


def _parse_bool(s: Optional[str], default: bool) -> bool:
    if s is None or s.strip() == "":
        return default
    return s.strip().lower() in ("1", "true", "yes", "on")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment (and a .env file if present).
    Unset variables keep their defaults.
    """
    load_dotenv(env_file or find_dotenv(usecwd=True))
    defaults = Settings()

    model_files = dict(DEFAULT_MODEL_FILES)
    model_objects = dict(DEFAULT_MODEL_OBJECTS)
    for variant in Variant:
        prefix = variant.name
        model_files[variant] = os.getenv(f"{prefix}_MODEL", model_files[variant])
        model_objects[variant] = os.getenv(f"{prefix}_OBJECT", model_objects[variant]) or None

    env_origins = _parse_list(os.getenv("ALLOW_ORIGINS"))

    return Settings(
        model_dir=Path(os.getenv("MODEL_DIR", str(defaults.model_dir))),
        model_files=model_files,
        model_objects=model_objects,
        reference_data=os.getenv("REFERENCE_DATA", defaults.reference_data),
        reference_object=os.getenv("REFERENCE_OBJECT", defaults.reference_object),
        age_range=_parse_range("AGE_RANGE", os.getenv("AGE_RANGE"), defaults.age_range),
        bmi_range=_parse_range("BMI_RANGE", os.getenv("BMI_RANGE"), defaults.bmi_range),
        children_range=_parse_range("CHILDREN_RANGE", os.getenv("CHILDREN_RANGE"), defaults.children_range),
        sex_levels=_parse_levels("SEX_LEVELS", os.getenv("SEX_LEVELS"), defaults.sex_levels),
        smoker_levels=_parse_levels("SMOKER_LEVELS", os.getenv("SMOKER_LEVELS"), defaults.smoker_levels),
        region_levels=_parse_levels("REGION_LEVELS", os.getenv("REGION_LEVELS"), defaults.region_levels),
        log_dir=Path(os.getenv("LOG_DIR", str(defaults.log_dir))),
        logging_enabled=_parse_bool(os.getenv("LOGGING_ENABLED"), defaults.logging_enabled),
        log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        prediction_log=os.getenv("PREDICTION_LOG", defaults.prediction_log),
        error_log=os.getenv("ERROR_LOG", defaults.error_log),
        allow_origins=tuple(env_origins) if env_origins else defaults.allow_origins,
    )
