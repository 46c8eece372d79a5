# insurance_api/schemas.py
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

# dummy is served but only exposed as a baseline
VariantName = Literal["linear", "random_forest", "boosted_tree", "dummy"]


# ---- Health ----
class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"


class ReadyResponse(BaseModel):
    status: Literal["healthy", "degraded"]
    model_dir: str
    loaded: List[str]
    missing: List[str]
    failures: Dict[str, str] = {}
    has_explainer: bool = False
    timestamp: str


# ---- Prediction ----
class PatientRecord(BaseModel):
    # Range and level checks happen in the validator so the caller gets
    # one readable message per bad field.
    age: Optional[float] = None
    sex: Optional[str] = None
    bmi: Optional[float] = None
    children: Optional[float] = None
    smoker: Optional[str] = None
    region: Optional[str] = None


class PredictRequest(PatientRecord):
    variant: VariantName = Field(default="boosted_tree")


class PredictResponse(BaseModel):
    variant: str
    prediction: float
    diagnostics: List[str] = []


class BatchPredictRequest(BaseModel):
    variant: VariantName = Field(default="boosted_tree")
    records: List[PatientRecord]


class BatchPredictResponse(BaseModel):
    variant: str
    # None where that record failed
    predictions: List[Optional[float]]


# ---- Models / comparison ----
class ModelInfo(BaseModel):
    variant: str
    label: str
    object_name: str
    resolution: str
    feature_names: Optional[List[str]] = None


class ModelsResponse(BaseModel):
    models: List[ModelInfo]
    has_reference_data: bool


class FieldBounds(BaseModel):
    low: float
    high: float


class InputsResponse(BaseModel):
    """Accepted ranges and levels, so clients can build matching forms."""
    ranges: Dict[str, FieldBounds]
    levels: Dict[str, List[str]]


class MetricRow(BaseModel):
    model: str
    variant: str
    rmse: float
    mae: float
    # None when the reference labels have zero variance
    r_squared: Optional[float] = None
    n: int


class MetricsResponse(BaseModel):
    metrics: List[MetricRow]


# ---- Explainability ----
class FeatureImportance(BaseModel):
    feature: str
    importance: float


class ImportanceResponse(BaseModel):
    importance: List[FeatureImportance]


class Contribution(BaseModel):
    feature: str
    value: float
    contribution: float


class InstanceExplanation(BaseModel):
    base_value: float
    prediction: float
    contributions: List[Contribution]
