import os

os.environ.setdefault("MPLBACKEND", "Agg")
import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

import main

N_TRAIN = 400
N_TEST = 150
UNSEEN_GENDER_ROWS = 5


def make_train(n=N_TRAIN, seed=0) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    ext2 = rng.uniform(0, 0.85, n)
    ext3 = rng.uniform(0, 0.9, n)
    logit = -0.5 - 3.0 * ext2 - 2.5 * ext3
    target = (rng.uniform(size=n) < 1 / (1 + np.exp(-logit))).astype(int)
    # at least a handful of each class for the stratified split
    target[:10] = 1
    target[10:20] = 0

    ext3 = ext3.copy()
    ext3[rng.choice(n, size=60, replace=False)] = np.nan
    days_employed = -rng.integers(100, 12000, n)
    days_employed[rng.choice(n, size=25, replace=False)] = main.DAYS_EMPLOYED_ANOMALY

    occupation = rng.choice(["Laborers", "Core staff", "Drivers"], n).astype(object)
    occupation[rng.choice(n, size=120, replace=False)] = None

    gender = rng.choice(["F", "M"], n, p=[0.65, 0.35]).astype(object)
    gender[:2] = "XNA"

    return pd.DataFrame({
        "SK_ID_CURR": np.arange(100001, 100001 + n),
        "TARGET": target,
        "NAME_CONTRACT_TYPE": rng.choice(["Cash loans", "Revolving loans"], n),
        "CODE_GENDER": gender,
        "AMT_INCOME_TOTAL": rng.normal(170000, 40000, n).round(0),
        "DAYS_BIRTH": -rng.integers(21 * 365, 68 * 365, n),
        "DAYS_EMPLOYED": days_employed,
        "EXT_SOURCE_2": ext2,
        "EXT_SOURCE_3": ext3,
        "OCCUPATION_TYPE": occupation,
    })


def make_test(n=N_TEST, seed=1) -> pd.DataFrame:
    df = make_train(n, seed).drop(columns=["TARGET"])
    df["SK_ID_CURR"] = np.arange(200001, 200001 + n)
    df.loc[:UNSEEN_GENDER_ROWS - 1, "CODE_GENDER"] = "U"
    df.loc[UNSEEN_GENDER_ROWS:UNSEEN_GENDER_ROWS + 2, "CODE_GENDER"] = None
    df.loc[10:19, "EXT_SOURCE_2"] = np.nan
    return df


@pytest.fixture(autouse=True)
def in_tmp_dir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def small_forest(monkeypatch):
    monkeypatch.setitem(main.RF_PARAMS, "n_estimators", 20)
    monkeypatch.setitem(main.RF_PARAMS, "n_jobs", 1)


@pytest.fixture
def train_df():
    return make_train()


@pytest.fixture
def test_df():
    return make_test()


@pytest.fixture
def data_dir(in_tmp_dir, train_df, test_df):
    d = in_tmp_dir / "data"
    d.mkdir()
    train_df.to_csv(d / main.TRAIN_FILE, index=False)
    test_df.to_csv(d / main.TEST_FILE, index=False)
    return str(d)


@pytest.fixture
def trained(data_dir):
    """Full run of main.py inside the temp dir; returns its metrics."""
    return main.main([data_dir])
