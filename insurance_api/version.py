# insurance_api/version.py
APP_VERSION = "2.0.0"
RELEASE_DATE = "2024-01-01"

CATEGORICAL_FEATURES = ["age", "age_squared", "sex", "bmi", "children", "smoker", "region", "smoker_bmi"]
NUMERIC_FEATURES = [
    "age", "age_squared", "sex_male", "bmi", "children", "smoker_yes",
    "region_northwest", "region_southeast", "region_southwest", "smoker_bmi",
]

MODEL_INFO = {
    "linear": {
        "version": "1.0",
        "algorithm": "Linear Regression with polynomial features",
        "features": CATEGORICAL_FEATURES,
    },
    "random_forest": {
        "version": "1.0",
        "algorithm": "Random Forest (optimized)",
        "features": CATEGORICAL_FEATURES,
    },
    "boosted_tree": {
        "version": "1.0",
        "algorithm": "Gradient boosted trees (Bayesian optimized)",
        "features": NUMERIC_FEATURES,
    },
    "dummy": {
        "version": "1.0",
        "algorithm": "Mean baseline",
        "features": NUMERIC_FEATURES,
    },
}

DATASET_INFO = {
    "source": "Medical Cost Personal Dataset (Kaggle)",
    "rows": 1338,
    "features": 7,
    "target": "charges",
}


def version_info() -> dict:
    return {
        "app": {"version": APP_VERSION, "release_date": RELEASE_DATE},
        "models": MODEL_INFO,
        "dataset": DATASET_INFO,
    }
