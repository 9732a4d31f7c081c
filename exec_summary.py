# exec_summary.py
# Writes a plain-English executive summary to reports/executive_summary.md
# - Data picture: class balance + most-missing columns
# - Model comparison (holdout AUC / AP / Gini / KS / Brier)
# - Submission score distributions for both baselines
# - Mean predicted default by age band, external-score quintile and gender

from __future__ import annotations

import os
from typing import Optional, Tuple, List

import numpy as np
import pandas as pd

EXPORTS = "exports"
REPORTS = "reports"
OUT_MD = os.path.join(REPORTS, "executive_summary.md")
BALANCE_CSV = os.path.join(EXPORTS, "class_balance.csv")
MISSING_CSV = os.path.join(REPORTS, "missingness_train.csv")
MODEL_SUMMARY_CSV = os.path.join(EXPORTS, "model_eval_summary.csv")
WITH_FEATS_CSV = os.path.join(EXPORTS, "submission_with_features.csv")
SUBMISSIONS = {
    "Logistic Regression": os.path.join(EXPORTS, "submission_logreg.csv"),
    "Random Forest": os.path.join(EXPORTS, "submission_rf.csv"),
}

# ---- configuration
THRESHOLD = 0.20        # review cutoff used for "flag rate"
TOP_MISSING = 10

# ------------ helpers

def ensure_dirs():
    os.makedirs(REPORTS, exist_ok=True)

def read_csv_safe(path: str) -> Optional[pd.DataFrame]:
    if not os.path.exists(path):
        return None
    try:
        return pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError):
        return None

def fmt_pct(x: float, d: int = 1) -> str:
    if x is None or not np.isfinite(x): return "—"
    return f"{100.0 * float(x):.{d}f}%"

def fmt_float(x: float, d: int = 3) -> str:
    if x is None or not np.isfinite(x): return "—"
    return f"{float(x):.{d}f}"

def fmt_int(x: float | int) -> str:
    if x is None or (isinstance(x, float) and not np.isfinite(x)): return "—"
    return f"{int(round(float(x))):,}"

def df_to_md_table(df: pd.DataFrame) -> str:
    """Render a DataFrame as a GitHub-style Markdown table."""
    cols = list(df.columns)
    header = "| " + " | ".join(str(c) for c in cols) + " |"
    sep = "| " + " | ".join(["---"] * len(cols)) + " |"
    rows = ["| " + " | ".join(str(df.iloc[i, j]) for j in range(len(cols))) + " |"
            for i in range(len(df))]
    return "\n".join([header, sep] + rows)

# ------------ banding

def band_age(days_birth: float) -> str:
    v = pd.to_numeric(days_birth, errors="coerce")
    if not np.isfinite(v): return "Age: Missing"
    a = -float(v) / 365.25
    if a < 30: return "<30"
    if a < 40: return "30–39"
    if a < 50: return "40–49"
    if a < 60: return "50–59"
    return "60+"

AGE_ORDER = ["<30", "30–39", "40–49", "50–59", "60+", "Age: Missing"]
SCORE_LABELS = ["Score: Lowest 20%", "Score: Low 20%", "Score: Middle 20%", "Score: High 20%", "Score: Highest 20%"]

def band_by_quintile(series: pd.Series, labels: List[str], missing: str) -> pd.Series:
    s = pd.to_numeric(series, errors="coerce")
    valid = s.dropna()
    out = pd.Series(missing, index=s.index, dtype="object")
    if valid.nunique() < len(labels):
        return out.where(s.isna(), "All")
    q = pd.qcut(valid.rank(method="first"), q=len(labels), labels=labels)
    out.loc[valid.index] = q.astype(str).values
    return out

def order_categorical(series: pd.Series, order: List[str]) -> pd.Series:
    cat = pd.Categorical(series, categories=order, ordered=True)
    return pd.Series(cat, index=series.index)

# ------------ table builders

def score_stats(p: pd.Series, thr: float) -> dict:
    p = pd.to_numeric(p, errors="coerce").dropna()
    return {
        "Applicants": fmt_int(len(p)),
        "Mean": fmt_float(p.mean()) if len(p) else "—",
        "Median": fmt_float(p.median()) if len(p) else "—",
        "P90": fmt_float(p.quantile(0.90)) if len(p) else "—",
        f"Flagged ≥ {thr:.2f}": fmt_pct((p >= thr).mean()) if len(p) else "—",
    }

def segment_table_df(df: pd.DataFrame, band_col: str, p_col: str, thr: float) -> pd.DataFrame:
    tmp = df[[band_col, p_col]].copy()
    tmp["flagged"] = (pd.to_numeric(tmp[p_col], errors="coerce") >= thr).astype(int)
    out = (tmp.groupby(band_col, dropna=True, observed=True)
              .agg(applicants=(p_col, "size"), mean_p=(p_col, "mean"), flagged=("flagged", "sum"))
              .reset_index()
              .rename(columns={band_col: "Group"}))
    total = out["applicants"].sum()
    out["Share of applicants"] = out["applicants"] / total if total else 0.0
    out["Mean predicted default"] = out["mean_p"]
    out["Flag rate"] = out["flagged"] / out["applicants"]
    return out[["Group", "Share of applicants", "Mean predicted default", "Flag rate"]]

def model_table(eval_df: pd.DataFrame) -> Tuple[pd.DataFrame, Optional[pd.Series]]:
    show = eval_df.copy()
    best = show.loc[show["AUC"].astype(float).idxmax()] if "AUC" in show.columns and len(show) else None
    cols = [c for c in ["model", "AUC", "AUC_train", "AP", "Gini", "KS", "Brier"] if c in show.columns]
    show = show[cols]
    for c in cols[1:]:
        show[c] = show[c].apply(lambda v: fmt_float(float(v), 3))
    return show.rename(columns={"model": "Model", "AUC_train": "AUC (train)"}), best

# ------------ main

def build_summary() -> str:
    ensure_dirs()
    balance = read_csv_safe(BALANCE_CSV)
    eval_df = read_csv_safe(MODEL_SUMMARY_CSV)
    if balance is None and eval_df is None:
        return "# Executive Summary\n\n*No exports found. Run `python main.py` first.*\n"

    lines: List[str] = ["# Executive Summary\n"]

    # Plain terms
    base_rate = np.nan
    lines.append("## What this means in plain terms")
    if balance is not None and not balance.empty:
        total = int(balance["count"].sum())
        row = balance[balance["target"] == 1]
        base_rate = float(row["share"].iloc[0]) if not row.empty else 0.0
        lines.append(f"- **{fmt_int(total)}** training applicants; about **{fmt_pct(base_rate)}** defaulted.")
    best = None
    if eval_df is not None and not eval_df.empty:
        show, best = model_table(eval_df)
    if best is not None:
        lines.append(f"- Best holdout discrimination: **{best['model']}** — AUC **{fmt_float(float(best['AUC']))}** "
                     f"(Gini {fmt_float(float(best['Gini']))}).")
        lines.append("- Both baselines use only four predictors: two external credit scores, age, and gender.")
    lines.append("")

    # Data quality
    miss = read_csv_safe(MISSING_CSV)
    if miss is not None and not miss.empty:
        miss = miss[miss["missing"] > 0]
        lines.append("## Data quality")
        lines.append(f"- **{len(miss)}** columns have missing values; "
                     f"**{int((miss['missing_pct'] > 50).sum())}** are more than half empty.")
        top = miss.head(TOP_MISSING).copy()
        top["missing_pct"] = top["missing_pct"].apply(lambda v: f"{float(v):.1f}%")
        top["missing"] = top["missing"].apply(fmt_int)
        lines.append("")
        lines.append(df_to_md_table(top.rename(columns={"column": "Column", "missing": "Missing rows",
                                                        "missing_pct": "Missing %"})))
        lines.append("")

    # Models
    if eval_df is not None and not eval_df.empty:
        lines.append("## Model quality (holdout)")
        lines.append(df_to_md_table(show))
        lines.append("")

    # Submissions
    stats_rows = []
    subs = {}
    for name, path in SUBMISSIONS.items():
        sub = read_csv_safe(path)
        if sub is not None and "TARGET" in sub.columns:
            subs[name] = sub
            stats_rows.append({"Model": name, **score_stats(sub["TARGET"], THRESHOLD)})
    if stats_rows:
        lines.append("## Submission scores (test applicants)")
        lines.append(df_to_md_table(pd.DataFrame(stats_rows)))
        if len(subs) == 2:
            a, b = subs.values()
            merged = a.merge(b, on="SK_ID_CURR", suffixes=("_a", "_b"))
            if len(merged) > 1:
                rho = merged["TARGET_a"].rank().corr(merged["TARGET_b"].rank())
                lines.append("")
                lines.append(f"- Rank agreement between the two models (Spearman): **{fmt_float(rho)}**.")
        lines.append("")

    # Segments
    feats = read_csv_safe(WITH_FEATS_CSV)
    if feats is not None and not feats.empty and "proba" in feats.columns:
        lines.append("## Predicted default by segment")
        blocks = []
        if "DAYS_BIRTH" in feats:
            feats["Age band"] = order_categorical(feats["DAYS_BIRTH"].map(band_age), AGE_ORDER)
            blocks.append(("Age bands", "Age band"))
        for col in ("EXT_SOURCE_2", "EXT_SOURCE_3"):
            if col in feats:
                feats[f"{col} quintile"] = order_categorical(
                    band_by_quintile(feats[col], SCORE_LABELS, "Score: Missing"),
                    SCORE_LABELS + ["Score: Missing", "All"])
                blocks.append((f"{col} (20% bands)", f"{col} quintile"))
        if "CODE_GENDER" in feats:
            feats["Gender"] = feats["CODE_GENDER"].fillna("Missing").astype(str)
            blocks.append(("Gender", "Gender"))

        for title, col in blocks:
            t = segment_table_df(feats, col, "proba", THRESHOLD)
            t["Group"] = t["Group"].astype(str)
            for c in ["Share of applicants", "Mean predicted default", "Flag rate"]:
                t[c] = t[c].apply(lambda v: fmt_pct(v, 1))
            lines.append(f"### {title}")
            lines.append(df_to_md_table(t))
            lines.append("")
        lines.append("_Mean predicted default is the average model probability in the group; "
                     f"'Flag rate' is the share at or above **{THRESHOLD:.2f}**._")
        lines.append("")

    if np.isfinite(base_rate):
        lines.append("## Reading the numbers")
        lines.append(f"- A model that flags at random would find defaulters at the base rate ({fmt_pct(base_rate)}).")
        lines.append("- AUC 0.5 is random ranking; each +0.01 AUC is a real gain at this portfolio size.")
        lines.append("")

    return "\n".join(lines).strip() + "\n"


if __name__ == "__main__":
    md = build_summary()
    ensure_dirs()
    with open(OUT_MD, "w", encoding="utf-8") as f:
        f.write(md)
    print(f"Wrote {OUT_MD}")
