"""
================= Home Credit Default — EDA & Baseline Models =================

Exploratory analysis and two baseline classifiers for the Home Credit
applicant tables (application_train.csv / application_test.csv).

It covers: schema check between the two files; summary statistics
(numeric + categorical); missingness tables, bars and a sampled missingness
matrix; class balance; predictor distributions and default rate by level;
correlations with the target; simple imputation learned on train only;
a logistic regression and a random forest on four hand-picked predictors
with holdout ROC/AUC; factor-level alignment of the test set; two
submission CSVs with predicted default probabilities; saved pipelines for
the CLI scorer; and an HTML figure gallery.

Run:  python main.py [data_dir]

Palette: blue = repaid (0), coral = default (1).
===============================================================================
"""


import os
import sys
import pickle
import platform
import warnings
warnings.filterwarnings("ignore", category=UserWarning)

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from matplotlib.ticker import FuncFormatter
from matplotlib import image as mpimg  # for figure sizes in manifest
from joblib import dump

from sklearn.model_selection import train_test_split
from sklearn.compose import ColumnTransformer
from sklearn.preprocessing import StandardScaler, OneHotEncoder, OrdinalEncoder
from sklearn.pipeline import Pipeline
from sklearn.linear_model import LogisticRegression
from sklearn.ensemble import RandomForestClassifier
from sklearn.metrics import (
    roc_auc_score, roc_curve, average_precision_score, brier_score_loss
)

# -------------------- Configuration ----------------------------------------
DATA_DIR      = "data"                       # folder with both CSVs
TRAIN_FILE    = "application_train.csv"
TEST_FILE     = "application_test.csv"
TARGET        = "TARGET"
ID_COL        = "SK_ID_CURR"
PREDICTORS    = ["EXT_SOURCE_2", "EXT_SOURCE_3", "DAYS_BIRTH", "CODE_GENDER"]
REPORTS_DIR   = "reports"
OUTPUT_DIR    = os.path.join(REPORTS_DIR, "figures")
EXPORTS_DIR   = "exports"
ARTIFACTS_DIR = "artifacts"
RANDOM_SEED   = 42
VALID_SIZE    = 0.20                         # stratified holdout for AUC
SHOW_WINDOWS  = False                        # True to pop up figure windows
MISSING_TOP_N = 30                           # columns shown in missingness charts
CORR_TOP_N    = 15
MATRIX_SAMPLE_ROWS = 500
DAYS_EMPLOYED_ANOMALY = 365243               # "1000 years employed" placeholder

LOGREG_PARAMS = {"max_iter": 1000, "random_state": RANDOM_SEED}
RF_PARAMS     = {"n_estimators": 200, "min_samples_leaf": 50,
                 "n_jobs": -1, "random_state": RANDOM_SEED}
# ----------------------------------------------------------------------------

# ------------------ Palette (color-vision friendly) ------------------------
COLOR_NO   = "#3B5BA5"  # deep blue: repaid
COLOR_YES  = "#E45756"  # coral: default
LINE_MED   = "#FFB000"  # gold: median
LINE_MEAN  = "#6B7280"  # slate: mean
MISS_GREY  = "#E5E7EB"
# ----------------------------------------------------------------------------

sns.set_theme(
    style="whitegrid",
    rc={
        "axes.titlesize": 13,
        "axes.labelsize": 11,
        "axes.titlepad": 10,
        "legend.frameon": False,
        "figure.dpi": 110,
        "axes.facecolor": "white",
        "grid.color": "#EEF2F5",
        "grid.linewidth": 0.8,
        "font.family": "DejaVu Sans",
    }
)

# ---------------------- Formatters -----------------------------------------
PCT = FuncFormatter(lambda v, _: f"{v*100:.0f}%")  # [0,1] → "xx%"
def _fmt_thousands(x, _):
    try:
        return f"{int(x):,}"
    except (TypeError, ValueError):
        return str(x)
FMT_THOUSANDS = FuncFormatter(_fmt_thousands)

FIGURE_CAPTIONS = {
    "target_balance.png": "Class balance: share of applicants who defaulted (TARGET = 1).",
    "missingness_top_train.png": "Most-missing columns in the training file.",
    "missingness_top_test.png": "Most-missing columns in the test file.",
    "missingness_matrix.png": "Missing cells (coral) over a row sample; columns move together in blocks.",
    "target_correlations.png": "Numeric columns most correlated with default.",
    "roc_logreg.png": "ROC — Logistic Regression on the holdout; diagonal is random.",
    "roc_rf.png": "ROC — Random Forest on the holdout; diagonal is random.",
    "roc_models.png": "ROC — both baselines on the same holdout.",
    "rf_importance.png": "Random Forest impurity importance of the four predictors.",
}

# ============================== Small helpers ==============================

def make_output_folder() -> None:
    os.makedirs(OUTPUT_DIR, exist_ok=True)

def new_fig(figsize=(7, 4)):
    return plt.subplots(figsize=figsize, constrained_layout=True)

def save_and_show(fig: plt.Figure, filename: str) -> None:
    make_output_folder()
    out = os.path.join(OUTPUT_DIR, filename)
    fig.savefig(out, dpi=150, bbox_inches="tight")
    if SHOW_WINDOWS:
        plt.show()
    plt.close(fig)
    print(f"[SAVE] {out}")

def numeric_columns(df: pd.DataFrame, exclude=(TARGET, ID_COL)) -> list:
    return [c for c in df.columns
            if c not in exclude
            and pd.api.types.is_numeric_dtype(df[c])
            and not pd.api.types.is_bool_dtype(df[c])]

def categorical_columns(df: pd.DataFrame, exclude=(TARGET, ID_COL)) -> list:
    num = set(numeric_columns(df, exclude))
    return [c for c in df.columns if c not in exclude and c not in num]

def save_run_environment():
    os.makedirs(REPORTS_DIR, exist_ok=True)
    path = os.path.join(REPORTS_DIR, "run_environment.txt")
    import sklearn, joblib, matplotlib
    with open(path, "w", encoding="utf-8") as f:
        f.write("=== Run Environment ===\n")
        f.write(f"Python        : {sys.version.split()[0]} ({platform.system()})\n")
        f.write(f"numpy         : {np.__version__}\n")
        f.write(f"pandas        : {pd.__version__}\n")
        f.write(f"scikit-learn  : {sklearn.__version__}\n")
        f.write(f"joblib        : {joblib.__version__}\n")
        f.write(f"matplotlib    : {matplotlib.__version__}\n")
        f.write(f"seaborn       : {sns.__version__}\n")
    print(f"[SAVE] Environment -> {path}")

# ============================ Load & Describe ==============================

def load_csv(path: str) -> pd.DataFrame:
    path_abs = os.path.abspath(path)
    if not os.path.exists(path):
        print("\n[ERROR] Can’t find the dataset.")
        print(f"Looked for: {path_abs}")
        print(f"➡ Put '{os.path.basename(path)}' in '{DATA_DIR}/' "
              "or pass the folder: python main.py <data_dir>")
        raise FileNotFoundError(path_abs)
    df = pd.read_csv(path)
    if "Unnamed: 0" in df.columns:
        df = df.drop(columns=["Unnamed: 0"])
    return df

def load_data(data_dir: str | None = None):
    """Return (train, test) read from `data_dir`."""
    data_dir = DATA_DIR if data_dir is None else data_dir
    train = load_csv(os.path.join(data_dir, TRAIN_FILE))
    test = load_csv(os.path.join(data_dir, TEST_FILE))
    print(f"[LOAD] train shape: {train.shape}  |  test shape: {test.shape}")
    return train, test

def check_schema(train: pd.DataFrame, test: pd.DataFrame, predictors=None) -> dict:
    """
    Test should carry the training columns minus the target.
    Raises on anything the models cannot work around; reports the rest.
    """
    predictors = PREDICTORS if predictors is None else list(predictors)
    if TARGET not in train.columns:
        raise ValueError(f"Training data has no '{TARGET}' column.")
    for name, frame in (("train", train), ("test", test)):
        if ID_COL not in frame.columns:
            raise ValueError(f"{name} data has no '{ID_COL}' column.")
        missing = [c for c in predictors if c not in frame.columns]
        if missing:
            raise ValueError(f"Predictors missing from {name} data: {missing}")

    train_cols = [c for c in train.columns if c != TARGET]
    train_set, test_set = set(train_cols), set(test.columns)
    out = {
        "train_only": [c for c in train_cols if c not in test_set],
        "test_only": [c for c in test.columns if c not in train_set],
    }
    if out["train_only"] or out["test_only"]:
        print(f"[WARN] Column mismatch — train only: {out['train_only']}; "
              f"test only: {out['test_only']}")
    else:
        print(f"[LOAD] Schemas match: {len(train_cols)} shared columns (+ {TARGET} in train).")
    return out

def describe_data(df: pd.DataFrame, name: str):
    """Numeric and categorical summaries, one row per column."""
    os.makedirs(REPORTS_DIR, exist_ok=True)
    num_cols = numeric_columns(df, exclude=(ID_COL,))
    cat_cols = categorical_columns(df, exclude=(ID_COL,))

    num = pd.DataFrame()
    if num_cols:
        num = df[num_cols].describe().T
        num["missing"] = df[num_cols].isna().sum()
    cat = pd.DataFrame()
    if cat_cols:
        cat = df[cat_cols].astype("object").describe().T
        cat["missing"] = df[cat_cols].isna().sum()

    num.to_csv(os.path.join(REPORTS_DIR, f"summary_numeric_{name}.csv"))
    cat.to_csv(os.path.join(REPORTS_DIR, f"summary_categorical_{name}.csv"))
    print(f"[EDA] {name}: {len(num_cols)} numeric, {len(cat_cols)} categorical columns")
    print(f"[SAVE] reports/summary_numeric_{name}.csv, reports/summary_categorical_{name}.csv")
    return num, cat

def missingness_table(df: pd.DataFrame, name: str) -> pd.DataFrame:
    miss = df.isna().sum().rename("missing")
    pct = (df.isna().mean()*100).round(2).rename("missing_pct")
    out = pd.concat([miss, pct], axis=1).sort_values("missing_pct", ascending=False, kind="stable")
    out.index.name = "column"
    os.makedirs(REPORTS_DIR, exist_ok=True)
    path = os.path.join(REPORTS_DIR, f"missingness_{name}.csv")
    out.to_csv(path)
    n_cols = int((out["missing"] > 0).sum())
    print(f"[EDA] {name}: {n_cols} of {df.shape[1]} columns have missing values "
          f"({df.isna().mean().mean():.1%} of all cells)")
    print(f"[SAVE] Missingness -> {path}")
    return out

def class_balance(df: pd.DataFrame) -> pd.DataFrame:
    counts = df[TARGET].value_counts().sort_index()
    out = pd.DataFrame({
        "target": counts.index.astype(int),
        "count": counts.values,
        "share": counts.values / counts.sum(),
    })
    os.makedirs(EXPORTS_DIR, exist_ok=True)
    out.to_csv(os.path.join(EXPORTS_DIR, "class_balance.csv"), index=False)
    n_yes = int(counts.get(1, 0)); total = int(counts.sum())
    print(f"[EDA] Defaults: {n_yes:,} of {total:,} = {n_yes/total:.1%}")
    return out

def target_correlations(df: pd.DataFrame, top_n: int | None = None) -> pd.DataFrame:
    cols = numeric_columns(df)
    corr = df[cols].corrwith(df[TARGET]).dropna()
    corr = corr.reindex(corr.abs().sort_values(ascending=False).index)
    out = corr.rename("corr").to_frame()
    out.index.name = "feature"
    os.makedirs(REPORTS_DIR, exist_ok=True)
    out.to_csv(os.path.join(REPORTS_DIR, "target_correlations.csv"))
    print("[SAVE] reports/target_correlations.csv")
    return out.head(top_n) if top_n else out

# ================================ EDA ======================================

def _missingness_bar(tbl: pd.DataFrame, name: str) -> None:
    top = tbl[tbl["missing"] > 0].head(MISSING_TOP_N)
    if top.empty:
        print(f"[EDA] {name}: no missing values, skipping bar chart")
        return
    fig, ax = new_fig(figsize=(8, max(3.0, 0.28 * len(top) + 1)))
    ax.barh(top.index[::-1], top["missing_pct"][::-1] / 100, color=COLOR_NO)
    ax.set_title(f"Missing values — top {len(top)} columns ({name})")
    ax.set_xlabel("% of rows missing"); ax.xaxis.set_major_formatter(PCT)
    ax.set_xlim(0, 1)
    save_and_show(fig, f"missingness_top_{name}.png")

def _missingness_matrix(df: pd.DataFrame, tbl: pd.DataFrame) -> None:
    cols = tbl[tbl["missing"] > 0].head(MISSING_TOP_N).index.tolist()
    if not cols:
        return
    sample = df[cols].sample(n=min(MATRIX_SAMPLE_ROWS, len(df)), random_state=RANDOM_SEED)
    fig, ax = new_fig(figsize=(9, max(3.0, 0.25 * len(cols) + 1)))
    sns.heatmap(sample.isna().astype(int).T, cmap=[MISS_GREY, COLOR_YES], vmin=0, vmax=1,
                cbar=False, xticklabels=False, yticklabels=cols, ax=ax)
    ax.set_title(f"Missingness matrix ({len(sample):,} sampled rows)")
    ax.set_xlabel("Rows (sample)")
    save_and_show(fig, "missingness_matrix.png")

def _numeric_predictor_plot(df: pd.DataFrame, col: str) -> None:
    tmp = df[[col, TARGET]].dropna().copy()
    if tmp.empty:
        return
    label = col
    if col == "DAYS_BIRTH":
        tmp[col] = -tmp[col] / 365.25
        label = "Age (years)"
    tmp["Default"] = tmp[TARGET].astype(int).map({0: "No", 1: "Yes"})
    fig, ax = new_fig()
    sns.histplot(data=tmp, x=col, hue="Default", hue_order=["No", "Yes"],
                 palette={"No": COLOR_NO, "Yes": COLOR_YES},
                 stat="density", common_norm=False, bins=50, element="step", ax=ax)
    for flag, color in (("No", COLOR_NO), ("Yes", COLOR_YES)):
        vals = tmp.loc[tmp["Default"] == flag, col]
        if len(vals):
            ax.axvline(float(vals.median()), linestyle="--", linewidth=1.5, color=color)
    ax.set_title(f"{label} by default (dashed = medians)")
    ax.set_xlabel(label); ax.set_ylabel("Density")
    save_and_show(fig, f"predictor_{col}.png")

def default_rate_by_level(df: pd.DataFrame, col: str) -> pd.DataFrame:
    tmp = df[[col, TARGET]].copy()
    tmp[col] = tmp[col].astype("object").fillna("Missing").astype(str)
    out = (
        tmp.groupby(col)[TARGET]
           .agg(defaults="sum", clients="count")
           .assign(rate=lambda d: d["defaults"] / d["clients"])
           .sort_values("clients", ascending=False)
    )
    os.makedirs(REPORTS_DIR, exist_ok=True)
    out.to_csv(os.path.join(REPORTS_DIR, f"default_rate_{col}.csv"))
    return out

def _categorical_predictor_plot(df: pd.DataFrame, col: str) -> None:
    rate_df = default_rate_by_level(df, col)
    fig, ax = new_fig(figsize=(7.5, 4))
    sns.barplot(x=rate_df.index, y=rate_df["rate"], ax=ax, color=COLOR_YES)
    ax.set_title(f"Default rate by {col}")
    ax.set_xlabel(col); ax.set_ylabel("% of applicants")
    ax.yaxis.set_major_formatter(PCT)
    for i, (r, n) in enumerate(zip(rate_df["rate"], rate_df["clients"])):
        ax.text(i, r, f"{r*100:.1f}%  |  {n:,}", ha="center", va="bottom", fontsize=9, color="#374151")
    save_and_show(fig, f"default_rate_{col}.png")

def make_eda_charts(train: pd.DataFrame, test: pd.DataFrame) -> None:
    make_output_folder()
    plt.close("all")

    miss_train = missingness_table(train, "train")
    miss_test = missingness_table(test, "test")

    # 1) Class balance
    bal = class_balance(train)
    fig, ax = new_fig(figsize=(6.2, 4))
    labels = bal["target"].astype(str)
    ax.bar(labels, bal["count"], color=[COLOR_YES if t == 1 else COLOR_NO for t in bal["target"]])
    ax.set_title("Applicants by loan outcome")
    ax.set_xlabel("TARGET (0 = repaid, 1 = default)")
    ax.set_ylabel("Number of applicants"); ax.yaxis.set_major_formatter(FMT_THOUSANDS)
    for i, (n, s) in enumerate(zip(bal["count"], bal["share"])):
        ax.text(i, n, f"{n:,}\n({s:.1%})", ha="center", va="bottom", fontsize=9)
    ax.margins(y=0.15)
    save_and_show(fig, "target_balance.png")

    # 2) Missingness
    _missingness_bar(miss_train, "train")
    _missingness_bar(miss_test, "test")
    _missingness_matrix(train, miss_train)

    # 3) Predictors
    for col in PREDICTORS:
        if col not in train.columns:
            continue
        if col in numeric_columns(train):
            _numeric_predictor_plot(train, col)
        else:
            _categorical_predictor_plot(train, col)

    # 4) Correlation with target
    top = target_correlations(train, CORR_TOP_N)
    if not top.empty:
        colors = [COLOR_YES if v > 0 else COLOR_NO for v in top["corr"]]
        fig, ax = new_fig(figsize=(8, max(3.0, 0.3 * len(top) + 1)))
        ax.barh(top.index[::-1], top["corr"][::-1], color=colors[::-1])
        ax.axvline(0, color="#9CA3AF", linewidth=1)
        ax.set_title(f"Top {len(top)} correlations with {TARGET}")
        ax.set_xlabel("Pearson r (coral = higher default risk)")
        save_and_show(fig, "target_correlations.png")

# ============================ Clean & Impute ===============================

def _replace_anomalies(df: pd.DataFrame):
    """Return (frame, n_infinite, n_days_employed_placeholders)."""
    num_cols = numeric_columns(df, exclude=())
    inf_count = int(sum(np.isinf(df[c].to_numpy(dtype=float, na_value=np.nan)).sum() for c in num_cols))
    out = df.replace([np.inf, -np.inf], np.nan)
    anomalies = 0
    if "DAYS_EMPLOYED" in out.columns:
        mask = out["DAYS_EMPLOYED"] == DAYS_EMPLOYED_ANOMALY
        anomalies = int(mask.sum())
        out["DAYS_EMPLOYED"] = out["DAYS_EMPLOYED"].mask(mask)
    return out, inf_count, anomalies

def fit_imputer(train: pd.DataFrame) -> dict:
    """
    Fill values learned on the training rows only:
      - numeric columns  -> median
      - categorical ones -> most frequent value
    Columns with no observed values fall back to 0 / "Missing".
    """
    df, _, _ = _replace_anomalies(train)
    fills = {}
    for c in numeric_columns(df):
        med = df[c].median()
        fills[c] = float(med) if pd.notna(med) else 0.0
    for c in categorical_columns(df):
        mode = df[c].mode(dropna=True)
        fills[c] = mode.iloc[0] if not mode.empty else "Missing"
    return fills

def clean_data(df: pd.DataFrame, fills: dict, labelled: bool = True):
    """
    Minimal, explainable cleaning:
      - Replace +/-inf with NaN; DAYS_EMPLOYED placeholder -> NaN
      - Drop rows where target is missing (labelled data only)
      - Fill missing values with the train-learned `fills`
    Unlabelled (test) rows are never dropped.
    Returns: (clean_df, summary_dict)
    """
    summary = {}
    rows_before = len(df)
    out, inf_count, anomalies = _replace_anomalies(df)

    if labelled and TARGET in out.columns:
        tgt_na = int(out[TARGET].isna().sum())
        out = out.dropna(subset=[TARGET]).copy()
        out[TARGET] = out[TARGET].astype(int)
        summary["target_missing_dropped"] = tgt_na

    cols = [c for c in out.columns if c in fills]
    na_before = out[cols].isna().sum()
    out = out.fillna({c: fills[c] for c in cols})

    summary["infinite_values_found"] = inf_count
    summary["days_employed_anomalies"] = anomalies
    summary["columns_filled"] = int((na_before > 0).sum())
    summary["cells_filled"] = int(na_before.sum())
    summary["cells_left_missing"] = int(out.drop(columns=[TARGET], errors="ignore").isna().sum().sum())
    summary["rows_before"] = int(rows_before)
    summary["rows_after"] = int(len(out))
    summary["rows_removed_total"] = int(rows_before - len(out))
    print(f"[CLEAN] {summary['cells_filled']:,} cells imputed in {summary['columns_filled']} columns, "
          f"{summary['rows_removed_total']:,} rows removed")
    return out, summary

def save_cleaning_report(summary: dict, name: str):
    os.makedirs(REPORTS_DIR, exist_ok=True)
    path = os.path.join(REPORTS_DIR, f"cleaning_report_{name}.txt")
    lines = [
        f"=== Data Cleaning Summary ({name}) ===\n",
        f"Rows before cleaning        : {summary.get('rows_before', 0):,}\n",
        f"Rows after cleaning         : {summary.get('rows_after', 0):,}\n",
        f"Total rows removed          : {summary.get('rows_removed_total', 0):,}\n",
        f"Missing targets dropped     : {summary.get('target_missing_dropped', 0):,}\n",
        f"Infinite values found       : {summary.get('infinite_values_found', 0):,}\n",
        f"DAYS_EMPLOYED placeholders  : {summary.get('days_employed_anomalies', 0):,}\n",
        f"Columns imputed             : {summary.get('columns_filled', 0):,}\n",
        f"Cells imputed               : {summary.get('cells_filled', 0):,}\n",
        f"Cells still missing         : {summary.get('cells_left_missing', 0):,}\n",
    ]
    with open(path, "w", encoding="utf-8") as f:
        f.writelines(lines)
    print(f"[SAVE] Cleaning summary -> {path}")

# ========================= Factor-level alignment ==========================

def factor_levels(train: pd.DataFrame, columns) -> dict:
    return {c: sorted(train[c].dropna().astype(str).unique().tolist()) for c in columns}

def align_factor_levels(df: pd.DataFrame, levels: dict, fills: dict):
    """
    Put each categorical column on exactly the training level set.
    Values the training data never had (and leftover NaN) become the
    train fill value, i.e. its most frequent level.
    Returns: (aligned_df, {column: n_remapped})
    """
    out = df.copy()
    remapped = {}
    for col, lv in levels.items():
        if col not in out.columns:
            continue
        lv = list(lv)
        fill = str(fills.get(col, lv[0] if lv else "Missing"))
        if fill not in lv:
            lv.append(fill)
        raw = out[col].astype("object")
        vals = raw.where(raw.isna(), raw.astype(str))
        bad = vals.isna() | ~vals.isin(lv)
        remapped[col] = int(bad.sum())
        vals = vals.mask(bad, fill)
        out[col] = pd.Categorical(vals, categories=lv)
        if remapped[col]:
            unseen = sorted(raw[bad].dropna().astype(str).unique().tolist())
            print(f"[ALIGN] {col}: {remapped[col]:,} values mapped to '{fill}' (unseen levels: {unseen})")
    return out, remapped

# ================================ Modeling =================================

def split_predictors(X: pd.DataFrame):
    num_cols = [c for c in X.columns if pd.api.types.is_numeric_dtype(X[c])]
    cat_cols = [c for c in X.columns if c not in num_cols]
    return num_cols, cat_cols

def build_pipes(X: pd.DataFrame):
    num_cols, cat_cols = split_predictors(X)
    lr_prep = ColumnTransformer([
        ("num", StandardScaler(), num_cols),
        ("cat", OneHotEncoder(handle_unknown="ignore"), cat_cols),
    ], verbose_feature_names_out=False)
    rf_prep = ColumnTransformer([
        ("num", "passthrough", num_cols),
        ("cat", OrdinalEncoder(handle_unknown="use_encoded_value", unknown_value=-1), cat_cols),
    ], verbose_feature_names_out=False)
    logreg = Pipeline([("prep", lr_prep), ("clf", LogisticRegression(**LOGREG_PARAMS))])
    rf = Pipeline([("prep", rf_prep), ("clf", RandomForestClassifier(**RF_PARAMS))])
    return logreg, rf

def gini_from_auc(auc):
    return 2*float(auc) - 1.0

def ks_statistic(y_true, y_prob):
    fpr, tpr, _ = roc_curve(y_true, y_prob)
    return float(np.max(tpr - fpr))

def summarize_model(y_true, y_prob, name: str) -> dict:
    auc = roc_auc_score(y_true, y_prob)
    return {
        "model": name,
        "AUC": float(auc),
        "AP": float(average_precision_score(y_true, y_prob)),
        "Brier": float(brier_score_loss(y_true, y_prob)),
        "Gini": gini_from_auc(auc),
        "KS": ks_statistic(y_true, y_prob),
    }

def roc_plot(curves: dict, fname: str, title: str = "ROC curve") -> None:
    """curves: {label: (y_true, y_prob)}"""
    fig, ax = new_fig(figsize=(6, 5))
    colors = [COLOR_NO, COLOR_YES, LINE_MED, LINE_MEAN]
    for i, (label, (y_true, y_prob)) in enumerate(curves.items()):
        fpr, tpr, _ = roc_curve(y_true, y_prob)
        auc = roc_auc_score(y_true, y_prob)
        ax.plot(fpr, tpr, color=colors[i % len(colors)], label=f"{label} (AUC={auc:.3f})")
    ax.plot([0, 1], [0, 1], linestyle="--", color="#9CA3AF")
    ax.set_xlabel("False positive rate"); ax.set_ylabel("True positive rate")
    ax.set_title(title); ax.legend(loc="lower right")
    save_and_show(fig, fname)

def fit_and_evaluate(pipe: Pipeline, X: pd.DataFrame, y, name: str, key: str):
    """
    Fit on a stratified split, score the holdout, then refit on every
    labelled row so the submission model sees all the data.
    Returns: (metrics_dict, (y_holdout, p_holdout))
    """
    Xtr, Xva, ytr, yva = train_test_split(
        X, y, test_size=VALID_SIZE, random_state=RANDOM_SEED, stratify=y)
    pipe.fit(Xtr, ytr)
    p_tr = pipe.predict_proba(Xtr)[:, 1]
    p_va = pipe.predict_proba(Xva)[:, 1]

    metrics = summarize_model(yva, p_va, name)
    metrics["AUC_train"] = float(roc_auc_score(ytr, p_tr))
    metrics["n_train"] = int(len(ytr))
    metrics["n_holdout"] = int(len(yva))

    print(f"\n=== {name} (holdout) ===")
    print(f"ROC AUC  : {metrics['AUC']:.4f}   (train {metrics['AUC_train']:.4f})")
    print(f"AP       : {metrics['AP']:.4f}")
    print(f"Gini / KS: {metrics['Gini']:.4f} / {metrics['KS']:.4f}")
    print(f"Brier    : {metrics['Brier']:.4f}")
    roc_plot({name: (yva, p_va)}, f"roc_{key}.png", f"ROC curve — {name}")

    pipe.fit(X, y)
    print(f"[MODEL] {name} refit on all {len(y):,} labelled rows")
    return metrics, (np.asarray(yva), p_va)

def logreg_coefficients(pipe: Pipeline) -> pd.DataFrame:
    prep, clf = pipe.named_steps["prep"], pipe.named_steps["clf"]
    out = pd.DataFrame({
        "feature": ["(intercept)"] + list(prep.get_feature_names_out()),
        "coef": [float(clf.intercept_[0])] + clf.coef_[0].tolist(),
    })
    out["odds_ratio"] = np.exp(out["coef"])
    os.makedirs(EXPORTS_DIR, exist_ok=True)
    out.to_csv(os.path.join(EXPORTS_DIR, "logreg_coefficients.csv"), index=False)
    print("[SAVE] exports/logreg_coefficients.csv")
    return out

def rf_importance(pipe: Pipeline) -> pd.DataFrame:
    prep, clf = pipe.named_steps["prep"], pipe.named_steps["clf"]
    out = (pd.DataFrame({"feature": prep.get_feature_names_out(),
                         "importance": clf.feature_importances_})
             .sort_values("importance", ascending=False)
             .reset_index(drop=True))
    os.makedirs(EXPORTS_DIR, exist_ok=True)
    out.to_csv(os.path.join(EXPORTS_DIR, "rf_importance.csv"), index=False)
    print("[SAVE] exports/rf_importance.csv")
    fig, ax = new_fig(figsize=(7, 3.5))
    sns.barplot(data=out, x="importance", y="feature", ax=ax, color=COLOR_NO)
    ax.set_title("Random Forest — impurity importance"); ax.set_xlabel("Mean decrease in impurity")
    save_and_show(fig, "rf_importance.png")
    return out

# ============================== Submissions ================================

def predict_submission(pipe: Pipeline, X_test: pd.DataFrame, ids: pd.Series) -> pd.DataFrame:
    proba = pipe.predict_proba(X_test)[:, 1]
    return pd.DataFrame({ID_COL: np.asarray(ids), TARGET: proba})

def write_submission(sub: pd.DataFrame, path: str, expected_rows: int) -> str:
    if list(sub.columns) != [ID_COL, TARGET]:
        raise ValueError(f"Submission columns must be [{ID_COL}, {TARGET}], got {list(sub.columns)}")
    if len(sub) != expected_rows:
        raise ValueError(f"Submission has {len(sub):,} rows, expected {expected_rows:,}")
    if sub[ID_COL].duplicated().any():
        raise ValueError(f"Submission has duplicate {ID_COL} values")
    p = sub[TARGET]
    if p.isna().any() or (p < 0).any() or (p > 1).any():
        raise ValueError("Submission probabilities must be in [0, 1] with no missing values")
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    sub.to_csv(path, index=False)
    print(f"[SAVE] {path}  ({len(sub):,} rows, mean p={p.mean():.4f})")
    return path

def save_artifacts(models: dict, prep_state: dict) -> None:
    try:
        os.makedirs(ARTIFACTS_DIR, exist_ok=True)
        for key, pipe in models.items():
            path = os.path.join(ARTIFACTS_DIR, f"{key}_pipeline.joblib")
            dump(pipe, path)
            print(f"[SAVE] {path}")
        path = os.path.join(ARTIFACTS_DIR, "prep_state.joblib")
        dump(prep_state, path)
        print(f"[SAVE] {path}")
    except (OSError, pickle.PicklingError) as e:
        print("[WARN] Could not save joblib artifacts:", e)

def run_models(train: pd.DataFrame, test: pd.DataFrame, fills: dict) -> dict:
    assert TARGET in train.columns, f"Missing target column '{TARGET}'."
    X = train[PREDICTORS]
    y = train[TARGET].astype(int).values
    X_test = test[PREDICTORS]
    ids = test[ID_COL]
    logreg, rf = build_pipes(X)
    sub_dir = EXPORTS_DIR

    # Model A, logistic regression: fit → predict → write
    summ_lr, (y_va, p_lr) = fit_and_evaluate(logreg, X, y, "Logistic Regression", "logreg")
    logreg_coefficients(logreg)
    sub_lr = predict_submission(logreg, X_test, ids)
    write_submission(sub_lr, os.path.join(sub_dir, "submission_logreg.csv"), len(test))

    # Model B, random forest: fit → align test levels → predict → write
    _, cat_cols = split_predictors(X)
    levels = factor_levels(train, cat_cols)
    X_rf, _ = align_factor_levels(X, levels, fills)
    summ_rf, (_, p_rf) = fit_and_evaluate(rf, X_rf, y, "Random Forest", "rf")
    rf_importance(rf)
    X_test_rf, remapped = align_factor_levels(X_test, levels, fills)
    sub_rf = predict_submission(rf, X_test_rf, ids)
    write_submission(sub_rf, os.path.join(sub_dir, "submission_rf.csv"), len(test))

    roc_plot({"Logistic Regression": (y_va, p_lr), "Random Forest": (y_va, p_rf)},
             "roc_models.png", "ROC curves — holdout")

    os.makedirs(EXPORTS_DIR, exist_ok=True)
    pd.DataFrame({"y_true": y_va, "proba_logreg": p_lr, "proba_rf": p_rf}) \
      .to_csv(os.path.join(EXPORTS_DIR, "holdout_predictions.csv"), index=False)
    pd.DataFrame([summ_lr, summ_rf]).to_csv(os.path.join(EXPORTS_DIR, "model_eval_summary.csv"), index=False)
    print("[SAVE] exports/holdout_predictions.csv, exports/model_eval_summary.csv")

    save_artifacts({"logreg": logreg, "rf": rf},
                   {"fills": fills, "levels": levels, "predictors": list(PREDICTORS)})

    metrics = {}
    for key, summ in (("logreg", summ_lr), ("rf", summ_rf)):
        for m in ("AUC", "AUC_train", "AP", "Brier", "Gini", "KS"):
            metrics[f"{m.lower()}_{key}"] = float(summ[m])
    metrics["test_levels_remapped"] = int(sum(remapped.values()))
    return metrics

# ========================= Key numbers & gallery ===========================

def build_key_numbers(train: pd.DataFrame, test: pd.DataFrame, metrics: dict) -> pd.DataFrame:
    """Save key summary numbers (data + model) to reports/key_numbers.csv."""
    total = len(train)
    defaults = int(train[TARGET].sum()) if TARGET in train.columns else np.nan
    out = pd.DataFrame([{
        "train_rows": total,
        "test_rows": len(test),
        "columns": train.shape[1],
        "defaults": defaults,
        "default_rate": defaults / total if total else np.nan,
        "train_missing_cell_share": float(train.isna().mean().mean()),
        "test_missing_cell_share": float(test.isna().mean().mean()),
        "columns_with_missing": int(train.isna().any().sum()),
        **metrics
    }])
    os.makedirs(REPORTS_DIR, exist_ok=True)
    path = os.path.join(REPORTS_DIR, "key_numbers.csv")
    out.to_csv(path, index=False)
    print(f"[SAVE] Key numbers -> {path}")
    return out

def _caption_for(fname: str) -> str:
    if fname in FIGURE_CAPTIONS:
        return FIGURE_CAPTIONS[fname]
    stem = fname.rsplit(".", 1)[0]
    if stem.startswith("predictor_"):
        return f"Distribution of {stem[len('predictor_'):]} for repaid vs defaulted applicants."
    if stem.startswith("default_rate_"):
        return f"Default rate by level of {stem[len('default_rate_'):]} (labels include group size)."
    return ""

def build_figures_index():
    """Create reports/figures/index.html + manifest.csv."""
    make_output_folder()
    files = sorted(f for f in os.listdir(OUTPUT_DIR) if f.lower().endswith(".png"))

    rows = []
    for fname in files:
        fpath = os.path.join(OUTPUT_DIR, fname)
        try:
            arr = mpimg.imread(fpath)
            h, w = int(arr.shape[0]), int(arr.shape[1])
        except (OSError, ValueError):
            w, h = None, None
        rows.append({
            "filename": fname,
            "caption": _caption_for(fname),
            "width_px": w,
            "height_px": h,
            "size_kb": round(os.path.getsize(fpath) / 1024, 1),
        })
    manifest_path = os.path.join(OUTPUT_DIR, "manifest.csv")
    pd.DataFrame(rows, columns=["filename", "caption", "width_px", "height_px", "size_kb"]) \
      .to_csv(manifest_path, index=False)

    html = [
        "<!doctype html><meta charset='utf-8'>",
        "<title>Home Credit — Figures</title>",
        "<style>",
        "body{font-family:Arial, sans-serif;max-width:1100px;margin:24px auto;padding:0 12px;}",
        ".card{margin:16px 0;padding:12px 16px;border:1px solid #e5e7eb;border-radius:10px;}",
        "img{max-width:100%;height:auto;border:1px solid #e5e7eb;border-radius:8px;}",
        "</style>",
        "<h1>Home Credit — Figures</h1>",
    ]
    for r in rows:
        html += [
            "<div class='card'>",
            f"<h3>{r['filename']}</h3>",
            f"<p>{r['caption']}</p>",
            f"<img src='{r['filename']}' alt='{r['filename']}'>",
            f"<p style='color:#6b7280;font-size:12px'>{r['width_px']}×{r['height_px']} px • {r['size_kb']} KB</p>",
            "</div>",
        ]
    index_path = os.path.join(OUTPUT_DIR, "index.html")
    with open(index_path, "w", encoding="utf-8") as f:
        f.write("\n".join(html))
    print(f"[SAVE] Manifest   -> {manifest_path}")
    print(f"[SAVE] Index page -> {index_path}")
    return rows

# ================================ Main =====================================

def main(argv=None) -> dict:
    argv = sys.argv[1:] if argv is None else argv
    data_dir = argv[0] if argv else DATA_DIR

    make_output_folder()
    train, test = load_data(data_dir)
    save_run_environment()
    check_schema(train, test)
    print("\n[Preview] First 5 rows:\n", train.head())

    describe_data(train, "train")
    describe_data(test, "test")
    make_eda_charts(train, test)

    fills = fit_imputer(train)
    train_c, sum_train = clean_data(train, fills, labelled=True)
    test_c, sum_test = clean_data(test, fills, labelled=False)
    for name, summary in (("train", sum_train), ("test", sum_test)):
        print(f"\n=== Cleaning summary ({name}) ===")
        for k, v in summary.items():
            print(f"{k:>26}: {v:,}")
        save_cleaning_report(summary, name)

    metrics = run_models(train_c, test_c, fills)

    build_figures_index()
    build_key_numbers(train, test, metrics)
    print("\nAll done. Figures saved in:", OUTPUT_DIR)
    return metrics

if __name__ == "__main__":
    main()
