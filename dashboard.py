# dashboard.py
# Home Credit Default Dashboard
# - Pages: Overview, Missingness, Predictors, Models, Submissions, Saved Figures
# - Reads the raw training CSV plus whatever main.py exported (holdout scores, submissions)
# - Teal styling, aligned sidebar
# Run: streamlit run dashboard.py

from __future__ import annotations

import os, glob
from typing import Optional
import numpy as np
import pandas as pd
import streamlit as st
import plotly.express as px
import plotly.graph_objects as go
from sklearn.metrics import roc_curve, roc_auc_score

from main import DATA_DIR, TRAIN_FILE, TARGET, ID_COL, PREDICTORS, EXPORTS_DIR, OUTPUT_DIR

# ---------------- Page + Styles ----------------
st.set_page_config(page_title="Home Credit — Dashboard", layout="wide")

st.markdown("""
<style>
:root {
  --teal: #007c82;
  --teal-light: #e6f6f7;
  --ink: #0f172a;
  --muted: #475569;
  --radius: 16px;
  --shadow: 0 6px 18px rgba(0,0,0,0.08);
}
.big-title { background: var(--teal); color:#fff!important; padding:18px 22px;
  border-radius: var(--radius); box-shadow: var(--shadow); font-size:1.6rem;
  font-weight:700; margin:8px 0 18px 0; }
.section-title { background: var(--teal-light); border:2px solid var(--teal); color:var(--ink);
  padding:10px 14px; border-radius:12px; font-size:1.05rem; font-weight:700; margin:8px 0 10px 0; }
.note { color: var(--muted); font-size:.95rem; margin:6px 2px 14px 2px; }
section[data-testid="stSidebar"] { min-width: 280px; max-width: 280px; }
</style>
""", unsafe_allow_html=True)

def big_title(t: str): st.markdown(f'<div class="big-title">{t}</div>', unsafe_allow_html=True)
def section_title(t: str): st.markdown(f'<div class="section-title">{t}</div>', unsafe_allow_html=True)
def note(t: str): st.markdown(f'<div class="note">{t}</div>', unsafe_allow_html=True)
def pct(x: float) -> str: return f"{100*x:.1f}%"

DISPLAY = {
    "EXT_SOURCE_2": "External score 2",
    "EXT_SOURCE_3": "External score 3",
    "DAYS_BIRTH": "Age (years)",
    "CODE_GENDER": "Gender",
    "TARGET": "Default (0/1)",
}
MODEL_FILES = {"Logistic Regression": "logreg", "Random Forest": "rf"}

# ---------------- Data helpers ----------------
@st.cache_data(show_spinner=False)
def find_dataset() -> Optional[str]:
    for path in [os.path.join(DATA_DIR, TRAIN_FILE), TRAIN_FILE, os.path.join("input", TRAIN_FILE)]:
        if not os.path.exists(path):
            continue
        try:
            cols = set(pd.read_csv(path, nrows=5).columns)
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError):
            continue
        if {TARGET, ID_COL}.issubset(cols):
            return path
    return None

@st.cache_data(show_spinner=False)
def load_data(path: str) -> pd.DataFrame:
    df = pd.read_csv(path)
    df = df.dropna(subset=[TARGET])
    df[TARGET] = df[TARGET].astype(int)
    return df

def read_export(name: str) -> Optional[pd.DataFrame]:
    path = os.path.join(EXPORTS_DIR, name)
    return pd.read_csv(path) if os.path.exists(path) else None

csv_path = find_dataset()
if not csv_path:
    big_title("Home Credit — Dashboard")
    st.error(f"No training CSV found. Add `{os.path.join(DATA_DIR, TRAIN_FILE)}` and refresh.")
    st.stop()
df_full = load_data(csv_path)

def predictor_view(frame: pd.DataFrame, col: str) -> pd.DataFrame:
    tmp = frame[[col, TARGET]].copy()
    if col == "DAYS_BIRTH":
        tmp[col] = -tmp[col] / 365.25
    tmp["Default"] = tmp[TARGET].map({0: "No", 1: "Yes"})
    return tmp

# ---------------- Sidebar nav ----------------
with st.sidebar:
    st.title("Navigation")
    st.caption(f"Data source: `{csv_path}`")
    page = st.radio(
        "Pages",
        ["Overview", "Missingness", "Predictors", "Models", "Submissions", "Saved Figures"],
        index=0,
    )

# ---------------- 1) Overview ----------------
if page == "Overview":
    big_title("Home Credit Default — Overview")
    section_title("Portfolio snapshot")
    c1, c2, c3, c4 = st.columns(4)
    rows = len(df_full)
    c1.metric("Applicants", f"{rows:,}")
    c2.metric("Default rate", pct(df_full[TARGET].mean()) if rows else "—")
    c3.metric("Columns", f"{df_full.shape[1]:,}")
    c4.metric("Missing cells", pct(df_full.isna().mean().mean()))

    section_title("Loan outcome (TARGET)")
    counts = df_full[TARGET].value_counts().sort_index()
    fig = px.bar(x=[str(k) for k in counts.index], y=counts.values,
                 labels={"x": DISPLAY[TARGET], "y": "Applicants"})
    fig.update_layout(margin=dict(l=10, r=10, t=8, b=10), height=320)
    st.plotly_chart(fig)
    note("0 = loan repaid on schedule; 1 = payment difficulties (default).")

    section_title("Predictors used by the baselines")
    st.markdown("\n".join(f"- `{c}` — {DISPLAY.get(c, c)}" for c in PREDICTORS))

# ---------------- 2) Missingness ----------------
elif page == "Missingness":
    big_title("Missingness")
    miss = (df_full.isna().mean() * 100).sort_values(ascending=False)
    miss = miss[miss > 0]
    if miss.empty:
        note("No missing values.")
    else:
        top_n = len(miss)
        if len(miss) > 5:
            hi = min(len(miss), 80)
            top_n = st.slider("Columns to show", 5, hi, min(30, hi))
        top = miss.head(top_n).reset_index()
        top.columns = ["Column", "Missing %"]
        fig = px.bar(top, x="Missing %", y="Column", orientation="h")
        fig.update_layout(height=max(320, 18 * len(top)), margin=dict(l=10, r=10, t=8, b=10),
                          yaxis=dict(autorange="reversed"))
        st.plotly_chart(fig)
        note(f"{len(miss)} of {df_full.shape[1]} columns have missing values.")

# ---------------- 3) Predictors ----------------
elif page == "Predictors":
    big_title("Predictors")
    for col in [c for c in PREDICTORS if c in df_full.columns]:
        section_title(DISPLAY.get(col, col))
        tmp = predictor_view(df_full, col)
        if pd.api.types.is_numeric_dtype(tmp[col]):
            h = px.histogram(tmp.dropna(), x=col, color="Default", nbins=60, barmode="overlay",
                             histnorm="probability density", opacity=0.6,
                             color_discrete_map={"No": "#3B5BA5", "Yes": "#E45756"},
                             labels={col: DISPLAY.get(col, col)})
        else:
            tmp[col] = tmp[col].fillna("Missing").astype(str)
            grp = tmp.groupby(col)[TARGET].agg(rate="mean", applicants="size").reset_index()
            h = px.bar(grp, x=col, y="rate", hover_data=["applicants"],
                       labels={col: DISPLAY.get(col, col), "rate": "Default rate"})
        h.update_layout(height=320, margin=dict(l=10, r=10, t=8, b=10))
        st.plotly_chart(h)

# ---------------- 4) Models ----------------
elif page == "Models":
    big_title("Models — holdout evaluation")
    summary = read_export("model_eval_summary.csv")
    holdout = read_export("holdout_predictions.csv")
    if summary is None or holdout is None:
        st.info("No model exports yet. Run `python main.py` first.")
    else:
        section_title("Metrics")
        st.dataframe(summary.round(4))

        section_title("ROC curves")
        roc_fig = go.Figure()
        for name, key in MODEL_FILES.items():
            col = f"proba_{key}"
            if col not in holdout.columns:
                continue
            fpr, tpr, _ = roc_curve(holdout["y_true"], holdout[col])
            auc = roc_auc_score(holdout["y_true"], holdout[col])
            roc_fig.add_trace(go.Scatter(x=fpr, y=tpr, mode="lines", name=f"{name} (AUC={auc:.3f})"))
        roc_fig.add_trace(go.Scatter(x=[0, 1], y=[0, 1], mode="lines", name="Random", line=dict(dash="dash")))
        roc_fig.update_layout(xaxis_title="False positive rate", yaxis_title="True positive rate",
                              height=420, margin=dict(l=10, r=10, t=40, b=10))
        st.plotly_chart(roc_fig)

        coefs = read_export("logreg_coefficients.csv")
        if coefs is not None:
            section_title("Logistic regression coefficients")
            st.dataframe(coefs.round(4))
        imp = read_export("rf_importance.csv")
        if imp is not None:
            section_title("Random forest importance")
            fig = px.bar(imp, x="importance", y="feature", orientation="h")
            fig.update_layout(height=280, margin=dict(l=10, r=10, t=8, b=10))
            st.plotly_chart(fig)

# ---------------- 5) Submissions ----------------
elif page == "Submissions":
    big_title("Submissions — test-set default probabilities")
    found = False
    for name, key in MODEL_FILES.items():
        sub = read_export(f"submission_{key}.csv")
        if sub is None:
            continue
        found = True
        section_title(name)
        c1, c2, c3 = st.columns(3)
        c1.metric("Applicants", f"{len(sub):,}")
        c2.metric("Mean probability", f"{sub[TARGET].mean():.3f}")
        c3.metric("P90", f"{np.quantile(sub[TARGET], 0.9):.3f}")
        h = px.histogram(sub, x=TARGET, nbins=60, labels={TARGET: "Predicted default probability"})
        h.update_layout(height=300, margin=dict(l=10, r=10, t=8, b=10))
        st.plotly_chart(h)
        st.download_button(f"Download submission_{key}.csv", data=sub.to_csv(index=False),
                           file_name=f"submission_{key}.csv", mime="text/csv", key=f"dl_{key}")
    if not found:
        st.info("No submissions yet. Run `python main.py` first.")

# ---------------- 6) Saved Figures ----------------
elif page == "Saved Figures":
    from PIL import Image, UnidentifiedImageError
    big_title(f"Saved Figures ({OUTPUT_DIR})")

    def load_image_safe(path: str):
        try:
            img = Image.open(path); img.load()
            if img.mode not in ("RGB", "L"): img = img.convert("RGB")
            img.thumbnail((1600, 1600))
            return img, None
        except (UnidentifiedImageError, OSError) as e:
            return None, f"Unrecognized or unreadable image: {e}"

    files = sorted(glob.glob(os.path.join(OUTPUT_DIR, "*.png")))
    if not files:
        note(f"No images found in {OUTPUT_DIR}.")
    else:
        cols = st.columns(3)
        for i, p in enumerate(files):
            img, err = load_image_safe(p)
            with cols[i % 3]:
                if img is not None:
                    st.image(img, caption=os.path.basename(p))
                else:
                    st.markdown(f"- Could not display: `{p}` — {err}")
