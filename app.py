# app.py
import math
import os

import pandas as pd
import plotly.graph_objects as go
import requests
import streamlit as st

# === Point this at the insurance API ===
API_BASE = os.getenv("API_BASE", "http://localhost:8000").rstrip("/")

VARIANT_LABELS = {
    "linear": "Linear Regression",
    "random_forest": "Random Forest",
    "boosted_tree": "Gradient Boosting",
}

ACCENT = "#1f77b4"
ORANGE = "#ff7f0e"
GREEN = "#2ca02c"

st.set_page_config(page_title="Medical Insurance Cost Prediction", page_icon="🩺", layout="wide")


def _get(path: str):
    r = requests.get(f"{API_BASE}{path}", timeout=30)
    if not r.ok:
        raise RuntimeError(_detail(r))
    return r.json()


def _post(path: str, payload: dict):
    r = requests.post(f"{API_BASE}{path}", json=payload, timeout=30)
    if not r.ok:
        raise RuntimeError(_detail(r))
    return r.json()


def _detail(r: requests.Response) -> str:
    try:
        detail = r.json().get("detail", r.text)
    except ValueError:
        detail = r.text
    if isinstance(detail, list):
        # pydantic errors
        detail = "; ".join(str(d.get("msg", d)) for d in detail)
    return f"{r.status_code}: {detail}"


@st.cache_data(ttl=60)
def load_models():
    return _get("/models")


@st.cache_data(ttl=600)
def load_inputs():
    return _get("/inputs")


@st.cache_data(ttl=600)
def load_metrics():
    return _get("/metrics")["metrics"]


@st.cache_data(ttl=600)
def load_importance():
    return _get("/explain/importance")["importance"]


# ────────────────────────────────────────────────────────────────
# PAGES
# ────────────────────────────────────────────────────────────────
def page_home(models):
    st.header("Medical Insurance Cost Prediction")
    st.write("Predict medical charges from six patient attributes with three trained regression models, "
             "compare their performance and inspect SHAP explanations.")
    st.subheader("Available models")
    for m in models["models"]:
        st.markdown(f"- {m['label']}")


def _whole_number_input(label, bounds, default):
    low, high = math.ceil(bounds["low"]), math.floor(bounds["high"])
    return st.number_input(label, min_value=low, max_value=high, value=min(max(default, low), high), step=1)


def page_predict(models, inputs):
    st.header("Predict costs")
    choices = [m["variant"] for m in models["models"] if m["variant"] in VARIANT_LABELS]
    if not choices:
        st.error("No prediction models are loaded.")
        return

    col_in, col_out = st.columns(2)
    with col_in:
        ranges, levels = inputs["ranges"], inputs["levels"]
        age = _whole_number_input("Age", ranges["age"], 30)
        sex = st.selectbox("Sex", levels["sex"])
        bmi_low, bmi_high = float(ranges["bmi"]["low"]), float(ranges["bmi"]["high"])
        bmi = st.number_input("BMI", min_value=bmi_low, max_value=bmi_high,
                              value=min(max(25.0, bmi_low), bmi_high), step=0.1)
        children = _whole_number_input("Number of children", ranges["children"], 0)
        smoker_levels = levels["smoker"]
        smoker = st.selectbox("Smoker", smoker_levels, index=smoker_levels.index("no") if "no" in smoker_levels else 0)
        region = st.selectbox("Region", levels["region"])
        default = choices.index("boosted_tree") if "boosted_tree" in choices else 0
        variant = st.selectbox("Model", choices, index=default, format_func=VARIANT_LABELS.get)
        clicked = st.button("Predict", type="primary")

    with col_out:
        if clicked:
            record = {"age": age, "sex": sex, "bmi": bmi, "children": children, "smoker": smoker, "region": region}
            st.session_state["last_input"] = record
            try:
                with st.spinner("Calling prediction endpoint…"):
                    res = _post("/predict", {**record, "variant": variant})
                st.success(f"Predicted medical cost: ${res['prediction']:,.2f}")
                st.caption(f"Model used: {VARIANT_LABELS[variant]}")
                for note in res.get("diagnostics", []):
                    st.warning(note)
            except Exception as e:
                st.error(f"Prediction error: {e}")


def page_comparison():
    st.header("Model performance comparison")
    try:
        metrics = load_metrics()
    except Exception as e:
        st.error(f"Model metrics unavailable ({e})")
        return
    if not metrics:
        st.info("Reference data not available for comparison.")
        return

    df = pd.DataFrame(metrics)
    fig = go.Figure()
    fig.add_trace(go.Bar(x=df["model"], y=df["rmse"], name="RMSE", marker_color=ACCENT))
    fig.add_trace(go.Bar(x=df["model"], y=df["mae"], name="MAE", marker_color=ORANGE))
    fig.update_layout(barmode="group", title="Error metrics", xaxis_title="Model", yaxis_title="Error")
    st.plotly_chart(fig, use_container_width=True)

    fig_r2 = go.Figure(go.Bar(x=df["model"], y=df["r_squared"], marker_color=GREEN))
    fig_r2.update_layout(title="R-squared", xaxis_title="Model", yaxis=dict(title="R-squared", range=[0, 1]))
    st.plotly_chart(fig_r2, use_container_width=True)

    st.dataframe(df[["model", "rmse", "mae", "r_squared", "n"]], hide_index=True)


def page_explain():
    st.header("SHAP explanations")
    kind = st.radio("Visualization", ["Feature importance", "Individual explanation"], horizontal=True)

    if kind == "Feature importance":
        try:
            imp = pd.DataFrame(load_importance())
        except Exception as e:
            st.error(f"Explanations unavailable ({e})")
            return
        imp = imp.sort_values("importance")
        fig = go.Figure(go.Bar(x=imp["importance"], y=imp["feature"], orientation="h", marker_color=ACCENT))
        fig.update_layout(title="Feature importance (mean |SHAP|)", height=450)
        st.plotly_chart(fig, use_container_width=True)
        return

    record = st.session_state.get("last_input")
    if record is None:
        st.info("Make a prediction first to see an individual explanation.")
        return
    try:
        res = _post("/explain/instance", record)
    except Exception as e:
        st.error(f"Explanations unavailable ({e})")
        return
    contrib = pd.DataFrame(res["contributions"]).iloc[::-1]
    colors = [GREEN if c >= 0 else ORANGE for c in contrib["contribution"]]
    fig = go.Figure(go.Bar(x=contrib["contribution"], y=contrib["feature"], orientation="h", marker_color=colors))
    fig.update_layout(title="Individual prediction explanation", height=450)
    st.plotly_chart(fig, use_container_width=True)
    st.caption(f"Base value ${res['base_value']:,.2f} → prediction ${res['prediction']:,.2f}")


def page_about():
    st.header("About")
    st.write("Linear regression, random forest and gradient-boosted tree models predict medical costs; "
             "SHAP explanations keep the boosted-tree predictions interpretable.")
    try:
        info = _get("/version")
        st.caption(f"App version {info['app']['version']}")
        st.json(info["models"])
    except Exception as e:
        st.warning(f"Version info unavailable ({e})")


# ────────────────────────────────────────────────────────────────
# LAYOUT
# ────────────────────────────────────────────────────────────────
page = st.sidebar.radio("Menu", ["Home", "Predict costs", "Model comparison", "SHAP visualizations", "About"])

try:
    models = load_models()
    inputs = load_inputs()
except Exception as e:
    st.error(f"API not reachable at {API_BASE} ({e})")
    st.stop()

if page == "Home":
    page_home(models)
elif page == "Predict costs":
    page_predict(models, inputs)
elif page == "Model comparison":
    page_comparison()
elif page == "SHAP visualizations":
    page_explain()
else:
    page_about()

st.divider()
st.caption(f"API base: {API_BASE} • Health: {API_BASE}/health • Docs: {API_BASE}/docs")
