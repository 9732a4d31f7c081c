#!/usr/bin/env python3
# predict_cli.py
# Score new applicant rows with the pipelines saved by main.py.
# Usage: python predict_cli.py <model: logreg|rf> <input_csv> [output_csv]

import os
import sys

import pandas as pd
from joblib import load

from main import (
    ARTIFACTS_DIR, ID_COL, TARGET,
    align_factor_levels, clean_data, load_csv,
)

MODEL_KEYS = ("logreg", "rf")


def load_artifacts(model_key: str, artifacts_dir: str = ARTIFACTS_DIR):
    model_path = os.path.join(artifacts_dir, f"{model_key}_pipeline.joblib")
    state_path = os.path.join(artifacts_dir, "prep_state.joblib")
    for path in (model_path, state_path):
        if not os.path.exists(path):
            raise FileNotFoundError(path)
    return load(model_path), load(state_path)


def score_frame(df: pd.DataFrame, model_key: str, artifacts_dir: str = ARTIFACTS_DIR) -> pd.DataFrame:
    """Clean and align `df` like the training run did, then return SK_ID_CURR + probability."""
    pipe, state = load_artifacts(model_key, artifacts_dir)
    if TARGET in df.columns:
        df = df.drop(columns=[TARGET])
    missing = [c for c in state["predictors"] if c not in df.columns]
    if missing:
        raise ValueError(f"Input is missing predictors: {missing}")

    clean, _ = clean_data(df, state["fills"], labelled=False)
    X = clean[state["predictors"]]
    if model_key == "rf":
        X, _ = align_factor_levels(X, state["levels"], state["fills"])
    proba = pipe.predict_proba(X)[:, 1]
    ids = clean[ID_COL].values if ID_COL in clean.columns else clean.index.values
    return pd.DataFrame({ID_COL: ids, TARGET: proba})


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 2 or argv[0].lower() not in MODEL_KEYS:
        print("Usage: python predict_cli.py <model: logreg|rf> <input_csv> [output_csv]")
        return 1
    model_key = argv[0].lower()
    in_csv = argv[1]
    out_csv = argv[2] if len(argv) > 2 else "predictions.csv"

    try:
        out = score_frame(load_csv(in_csv), model_key)
    except FileNotFoundError as e:
        print(f"Not found: {e}. Run main.py first (and check the input path).")
        return 2
    except ValueError as e:
        print(f"Bad input: {e}")
        return 1
    out.to_csv(out_csv, index=False)
    print(f"Saved: {out_csv}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
