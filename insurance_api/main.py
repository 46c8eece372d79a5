# insurance_api/main.py
import logging
import math
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, load_settings
from .errors import ModelUnavailableError, PredictionError, ValidationError
from .explain import Explainer, create_explainer
from .loaders import ModelRegistry, load_all_models
from .logger import PredictionLog, setup_logging
from .metrics import compute_metrics
from .predictor import Predictor
from .preprocessing import FeatureEncoder
from .records import RawRecord, Variant
from .schemas import (
    BatchPredictRequest,
    BatchPredictResponse,
    FieldBounds,
    HealthResponse,
    ImportanceResponse,
    InputsResponse,
    InstanceExplanation,
    MetricsResponse,
    ModelInfo,
    ModelsResponse,
    PatientRecord,
    PredictRequest,
    PredictResponse,
    ReadyResponse,
)
from .validators import CATEGORICAL_FIELDS, NUMERIC_FIELDS, Validator
from .version import APP_VERSION, version_info

log = logging.getLogger("insurance-api")


def error_status(error: PredictionError) -> int:
    if isinstance(error, ValidationError):
        return 422
    if isinstance(error, ModelUnavailableError):
        return 404
    # EncodingError, InvalidOutputError: the artifacts, not the caller, are at fault
    return 500


def _record(req: PatientRecord) -> RawRecord:
    return RawRecord.from_mapping(req.model_dump())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Models load before the first request is accepted; StartupError aborts.
        prediction_log = PredictionLog(settings)
        try:
            log.info("Loading models from: %s", settings.model_dir)
            registry = load_all_models(settings, prediction_log)
            validator = Validator(settings)
            encoder = FeatureEncoder(settings)

            app.state.settings = settings
            app.state.registry = registry
            app.state.validator = validator
            app.state.predictor = Predictor(registry, validator, encoder, prediction_log)
            app.state.prediction_log = prediction_log
            app.state.explainer = create_explainer(registry, encoder, prediction_log)
            app.state.metrics = None
            yield
        finally:
            prediction_log.close()

    app = FastAPI(title="Medical Insurance Cost API", version=APP_VERSION, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ----- Routes -----
    @app.get("/")
    def root():
        return {
            "name": "Medical Insurance Cost API",
            "version": app.version,
            "endpoints": [
                "/health", "/ready", "/version", "/models", "/inputs", "/predict", "/predict/batch",
                "/metrics", "/explain/importance", "/explain/instance",
            ],
        }

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        """Liveness probe: server process is up."""
        return HealthResponse()

    @app.get("/ready", response_model=ReadyResponse)
    def ready(request: Request) -> ReadyResponse:
        """Readiness probe: which artifacts loaded and which did not."""
        registry: ModelRegistry = request.app.state.registry
        return ReadyResponse(
            status="healthy" if not registry.missing else "degraded",
            model_dir=str(settings.model_dir),
            loaded=registry.loaded,
            missing=registry.missing,
            failures=registry.failures,
            has_explainer=request.app.state.explainer is not None,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.get("/version")
    def version():
        return version_info()

    @app.get("/models", response_model=ModelsResponse)
    def models(request: Request) -> ModelsResponse:
        registry: ModelRegistry = request.app.state.registry
        out = []
        for variant in registry.variants:
            handle = registry.get(variant)
            out.append(ModelInfo(
                variant=variant.value,
                label=variant.label,
                object_name=handle.object_name,
                resolution=handle.resolution.value,
                feature_names=list(handle.feature_names) if handle.feature_names else None,
            ))
        return ModelsResponse(models=out, has_reference_data=registry.reference_data is not None)

    @app.get("/inputs", response_model=InputsResponse)
    def inputs() -> InputsResponse:
        """Ranges and levels the validator accepts."""
        return InputsResponse(
            ranges={
                name: FieldBounds(low=settings.range_for(name).low, high=settings.range_for(name).high)
                for name, _ in NUMERIC_FIELDS
            },
            levels={name: list(settings.levels(name)) for name, _ in CATEGORICAL_FIELDS},
        )

    @app.post("/predict", response_model=PredictResponse)
    def predict(req: PredictRequest, request: Request) -> PredictResponse:
        predictor: Predictor = request.app.state.predictor
        result = predictor.predict(_record(req), Variant(req.variant))
        if not result.ok:
            raise HTTPException(status_code=error_status(result.error), detail=f"Prediction error: {result.error}")
        return PredictResponse(variant=req.variant, prediction=result.value, diagnostics=result.diagnostics)

    @app.post("/predict/batch", response_model=BatchPredictResponse)
    def predict_batch(req: BatchPredictRequest, request: Request) -> BatchPredictResponse:
        predictor: Predictor = request.app.state.predictor
        values = predictor.predict_batch([_record(r) for r in req.records], Variant(req.variant))
        return BatchPredictResponse(
            variant=req.variant,
            predictions=[None if math.isnan(v) else v for v in values],
        )

    @app.get("/metrics", response_model=MetricsResponse)
    def metrics(request: Request) -> MetricsResponse:
        """Model comparison on the reference data, computed once and cached."""
        state = request.app.state
        if state.metrics is None:
            table = compute_metrics(state.predictor, state.registry)
            state.metrics = [
                {**row, "r_squared": None if math.isnan(row["r_squared"]) else row["r_squared"]}
                for row in table.to_dict(orient="records")
            ]
        return MetricsResponse(metrics=state.metrics)

    def _explainer(request: Request) -> Explainer:
        explainer = request.app.state.explainer
        if explainer is None:
            raise HTTPException(
                status_code=503,
                detail="Explanations unavailable (boosted tree model or reference data not loaded)",
            )
        return explainer

    @app.get("/explain/importance", response_model=ImportanceResponse)
    def explain_importance(request: Request) -> ImportanceResponse:
        explainer = _explainer(request)
        try:
            table = explainer.feature_importance()
        except Exception as e:
            log.exception("Feature importance failed")
            request.app.state.prediction_log.log_error(str(e), "Computing feature importance")
            raise HTTPException(status_code=500, detail=f"Explanation error: {e}")
        return ImportanceResponse(importance=table.to_dict(orient="records"))

    @app.post("/explain/instance", response_model=InstanceExplanation)
    def explain_instance(req: PatientRecord, request: Request) -> InstanceExplanation:
        explainer = _explainer(request)
        validator: Validator = request.app.state.validator
        record = _record(req)
        validation = validator.validate(record)
        if not validation.valid:
            raise HTTPException(status_code=422, detail="; ".join(validation.messages))
        try:
            base, table = explainer.explain_instance(record)
        except Exception as e:
            log.exception("Instance explanation failed")
            request.app.state.prediction_log.log_error(str(e), "Explaining individual prediction")
            raise HTTPException(status_code=500, detail=f"Explanation error: {e}")
        return InstanceExplanation(
            base_value=base,
            prediction=base + float(table["contribution"].sum()),
            contributions=table.to_dict(orient="records"),
        )

    return app


app = create_app()
