# merge_features.py
# Join submission scores to the test applicants so the summary can analyze slices.

from __future__ import annotations
import os
import sys
from typing import List, Optional

import pandas as pd

from main import DATA_DIR, EXPORTS_DIR, ID_COL, PREDICTORS, TARGET, TEST_FILE

ROOT = os.path.dirname(os.path.abspath(__file__))
OUT_CSV = os.path.join(EXPORTS_DIR, "submission_with_features.csv")

# Put the test applicants CSV in *one* of these places:
TEST_CANDIDATES = [
    os.path.join(DATA_DIR, TEST_FILE),
    TEST_FILE,
    os.path.join(ROOT, "data", TEST_FILE),
]


def find_test_csv(candidates: Optional[List[str]] = None) -> Optional[str]:
    return next((p for p in (candidates or TEST_CANDIDATES) if os.path.exists(p)), None)


def merge_submission_features(sub_path: str, test_path: Optional[str] = None,
                              out_path: str = OUT_CSV, keep: Optional[List[str]] = None) -> pd.DataFrame:
    """Left-join a submission onto test features by SK_ID_CURR; keeps every scored row."""
    if not os.path.exists(sub_path):
        raise SystemExit(f"Missing {sub_path}. Run main.py first.")
    test_path = test_path or find_test_csv()
    if test_path is None or not os.path.exists(test_path):
        raise SystemExit(
            "Could not find the test applicants CSV.\n"
            "Add it as one of:\n" + "\n".join(f" - {p}" for p in TEST_CANDIDATES)
        )
    print(f"Using features file: {test_path}")

    sub = pd.read_csv(sub_path)
    feats = pd.read_csv(test_path)
    wanted = keep if keep is not None else PREDICTORS
    cols = [ID_COL] + [c for c in wanted if c in feats.columns and c != ID_COL]

    combined = sub.rename(columns={TARGET: "proba"}).merge(
        feats[cols], on=ID_COL, how="left", indicator=True, validate="many_to_one")
    unmatched = int((combined["_merge"] == "left_only").sum())
    combined = combined.drop(columns=["_merge"])
    if unmatched:
        print(f"Note: {unmatched:,} scored ids not found in {test_path}.")

    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    combined.to_csv(out_path, index=False)
    print(f"Wrote {out_path}")
    return combined


if __name__ == "__main__":
    sub_csv = sys.argv[1] if len(sys.argv) > 1 else os.path.join(EXPORTS_DIR, "submission_rf.csv")
    merge_submission_features(sub_csv)
