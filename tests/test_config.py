from pathlib import Path

import pytest

from insurance_api.config import FieldRange, Settings, load_settings
from insurance_api.records import Variant


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # keep a developer's .env out of the way
    monkeypatch.chdir(tmp_path)
    for name in ("MODEL_DIR", "AGE_RANGE", "REGION_LEVELS", "LOGGING_ENABLED", "BOOSTED_TREE_OBJECT", "ALLOW_ORIGINS"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    s = load_settings()
    assert s.age_range == FieldRange(18, 64)
    assert s.bmi_range == FieldRange(15, 55)
    assert s.children_range == FieldRange(0, 5)
    assert s.region_levels == ("northeast", "northwest", "southeast", "southwest")
    assert s.model_path(Variant.LINEAR) == Path("models") / "linear_model.joblib"
    assert s.model_objects[Variant.BOOSTED_TREE] == "xgb_best"
    assert s.model_objects[Variant.DUMMY] is None
    assert s.logging_enabled


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("MODEL_DIR", "/srv/models")
    monkeypatch.setenv("AGE_RANGE", "21, 70")
    monkeypatch.setenv("REGION_LEVELS", "north,south")
    monkeypatch.setenv("LOGGING_ENABLED", "false")
    monkeypatch.setenv("BOOSTED_TREE_OBJECT", "lgbm_best")
    monkeypatch.setenv("ALLOW_ORIGINS", "https://a.example, https://b.example")
    s = load_settings()
    assert s.model_dir == Path("/srv/models")
    assert s.age_range == FieldRange(21, 70)
    assert s.region_levels == ("north", "south")
    assert not s.logging_enabled
    assert s.model_objects[Variant.BOOSTED_TREE] == "lgbm_best"
    assert s.allow_origins == ("https://a.example", "https://b.example")


@pytest.mark.parametrize("value", ["abc", "1,2,3", "64,18"])
def test_bad_range_raises(monkeypatch, value):
    monkeypatch.setenv("AGE_RANGE", value)
    with pytest.raises(ValueError, match="AGE_RANGE"):
        load_settings()


def test_field_range_inclusive():
    r = FieldRange(0, 5)
    assert r.contains(0) and r.contains(5)
    assert not r.contains(-0.1) and not r.contains(5.1)


def test_settings_lookups():
    s = Settings()
    assert s.levels("smoker") == ("yes", "no")
    assert s.range_for("bmi") == FieldRange(15, 55)
