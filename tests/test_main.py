import os
import pickle

import numpy as np
import pandas as pd
import pytest
from sklearn.pipeline import Pipeline

import main
from conftest import N_TEST, N_TRAIN, UNSEEN_GENDER_ROWS


# ---------------- load & schema ----------------

def test_load_csv_missing_file_raises(capsys):
    with pytest.raises(FileNotFoundError):
        main.load_csv(os.path.join("data", "nope.csv"))
    assert "[ERROR]" in capsys.readouterr().out


def test_load_csv_drops_index_column(in_tmp_dir):
    pd.DataFrame({"Unnamed: 0": [0, 1], "SK_ID_CURR": [1, 2]}).to_csv("x.csv", index=False)
    df = main.load_csv("x.csv")
    assert list(df.columns) == ["SK_ID_CURR"]


def test_load_data_shapes(data_dir):
    train, test = main.load_data(data_dir)
    assert train.shape == (N_TRAIN, 10)
    assert test.shape == (N_TEST, 9)


def test_check_schema_matching(train_df, test_df):
    out = main.check_schema(train_df, test_df)
    assert out == {"train_only": [], "test_only": []}


def test_check_schema_reports_extra_columns(train_df, test_df):
    out = main.check_schema(train_df.assign(EXTRA=1), test_df.assign(ONLY_TEST=0))
    assert out["train_only"] == ["EXTRA"]
    assert out["test_only"] == ["ONLY_TEST"]


@pytest.mark.parametrize("drop_from, col", [
    ("train", "TARGET"),
    ("train", "SK_ID_CURR"),
    ("test", "SK_ID_CURR"),
    ("test", "EXT_SOURCE_2"),
])
def test_check_schema_raises(train_df, test_df, drop_from, col):
    if drop_from == "train":
        train_df = train_df.drop(columns=[col])
    else:
        test_df = test_df.drop(columns=[col])
    with pytest.raises(ValueError):
        main.check_schema(train_df, test_df)


# ---------------- describe ----------------

def test_describe_data_splits_column_types(train_df):
    num, cat = main.describe_data(train_df, "train")
    assert "EXT_SOURCE_2" in num.index and "TARGET" in num.index
    assert "SK_ID_CURR" not in num.index
    assert set(cat.index) == {"NAME_CONTRACT_TYPE", "CODE_GENDER", "OCCUPATION_TYPE"}
    assert num.loc["EXT_SOURCE_3", "missing"] == 60
    assert os.path.exists(os.path.join("reports", "summary_numeric_train.csv"))
    assert os.path.exists(os.path.join("reports", "summary_categorical_train.csv"))


def test_missingness_table_sorted(train_df):
    tbl = main.missingness_table(train_df, "train")
    assert tbl.index.name == "column"
    assert tbl.index[0] == "OCCUPATION_TYPE"
    assert tbl.loc["OCCUPATION_TYPE", "missing"] == 120
    assert tbl.loc["OCCUPATION_TYPE", "missing_pct"] == pytest.approx(30.0)
    assert (tbl["missing_pct"].diff().dropna() <= 0).all()
    assert os.path.exists(os.path.join("reports", "missingness_train.csv"))


def test_class_balance_shares_sum_to_one(train_df):
    bal = main.class_balance(train_df)
    assert bal["target"].tolist() == [0, 1]
    assert bal["count"].sum() == N_TRAIN
    assert bal["share"].sum() == pytest.approx(1.0)


def test_default_rate_by_level_counts_missing_as_level():
    df = pd.DataFrame({"CODE_GENDER": ["F", "F", "M", None], "TARGET": [1, 0, 1, 0]})
    out = main.default_rate_by_level(df, "CODE_GENDER")
    assert out.loc["F", "rate"] == pytest.approx(0.5)
    assert out.loc["Missing", "clients"] == 1


def test_target_correlations_excludes_id(train_df):
    corr = main.target_correlations(train_df)
    assert "SK_ID_CURR" not in corr.index and "TARGET" not in corr.index
    # the synthetic target is driven by the external scores
    assert corr.index[0] in ("EXT_SOURCE_2", "EXT_SOURCE_3")


def test_eda_charts_written(train_df, test_df):
    main.make_eda_charts(train_df, test_df)
    for name in ("target_balance.png", "missingness_top_train.png", "missingness_top_test.png",
                 "missingness_matrix.png", "predictor_EXT_SOURCE_2.png", "predictor_DAYS_BIRTH.png",
                 "default_rate_CODE_GENDER.png", "target_correlations.png"):
        assert os.path.exists(os.path.join(main.OUTPUT_DIR, name)), name


# ---------------- clean & impute ----------------

def test_fit_imputer_learns_from_train_only(train_df):
    fills = main.fit_imputer(train_df)
    assert fills["EXT_SOURCE_3"] == pytest.approx(train_df["EXT_SOURCE_3"].median())
    real = train_df["DAYS_EMPLOYED"].replace(main.DAYS_EMPLOYED_ANOMALY, np.nan)
    assert fills["DAYS_EMPLOYED"] == pytest.approx(real.median())
    assert fills["CODE_GENDER"] == "F"
    assert "TARGET" not in fills and "SK_ID_CURR" not in fills


def test_fit_imputer_all_missing_columns_fall_back():
    df = pd.DataFrame({
        "SK_ID_CURR": [1, 2, 3],
        "TARGET": [0, 1, 0],
        "EMPTY_NUM": [np.nan, np.nan, np.nan],
        "EMPTY_CAT": pd.Series([None, None, None], dtype=object),
    })
    fills = main.fit_imputer(df)
    assert fills["EMPTY_NUM"] == 0.0
    assert fills["EMPTY_CAT"] == "Missing"
    clean, summary = main.clean_data(df, fills)
    assert summary["cells_left_missing"] == 0
    assert not clean.isna().any().any()
    assert clean["EMPTY_CAT"].tolist() == ["Missing"] * 3


def test_clean_data_never_drops_test_rows(train_df, test_df):
    fills = main.fit_imputer(train_df)
    clean, summary = main.clean_data(test_df, fills, labelled=False)
    assert len(clean) == len(test_df)
    assert summary["rows_removed_total"] == 0
    assert summary["cells_left_missing"] == 0
    assert clean["EXT_SOURCE_2"].isna().sum() == 0
    assert (clean["EXT_SOURCE_2"].iloc[10:20] == fills["EXT_SOURCE_2"]).all()


def test_clean_data_drops_missing_target_rows(train_df):
    df = train_df.astype({"TARGET": float})
    df.loc[:2, "TARGET"] = np.nan
    clean, summary = main.clean_data(df, main.fit_imputer(train_df), labelled=True)
    assert summary["target_missing_dropped"] == 3
    assert len(clean) == N_TRAIN - 3
    assert clean["TARGET"].dtype.kind == "i"


def test_clean_data_replaces_days_employed_placeholder(train_df):
    clean, summary = main.clean_data(train_df, main.fit_imputer(train_df))
    assert summary["days_employed_anomalies"] == 25
    assert not (clean["DAYS_EMPLOYED"] == main.DAYS_EMPLOYED_ANOMALY).any()


def test_clean_data_counts_infinite_values(train_df):
    df = train_df.copy()
    df.loc[0, "AMT_INCOME_TOTAL"] = np.inf
    clean, summary = main.clean_data(df, main.fit_imputer(train_df))
    assert summary["infinite_values_found"] == 1
    assert np.isfinite(clean["AMT_INCOME_TOTAL"]).all()


def test_save_cleaning_report(train_df):
    _, summary = main.clean_data(train_df, main.fit_imputer(train_df))
    main.save_cleaning_report(summary, "train")
    with open(os.path.join("reports", "cleaning_report_train.txt"), encoding="utf-8") as f:
        text = f.read()
    assert "DAYS_EMPLOYED placeholders  : 25" in text


# ---------------- alignment ----------------

def test_align_factor_levels_maps_unseen_to_fill():
    levels = {"CODE_GENDER": ["F", "M", "XNA"]}
    df = pd.DataFrame({"CODE_GENDER": ["F", "U", None, "M"]})
    out, remapped = main.align_factor_levels(df, levels, {"CODE_GENDER": "F"})
    assert remapped == {"CODE_GENDER": 2}
    assert list(out["CODE_GENDER"].cat.categories) == ["F", "M", "XNA"]
    assert out["CODE_GENDER"].tolist() == ["F", "F", "F", "M"]


def test_align_factor_levels_keeps_known_values(train_df):
    levels = main.factor_levels(train_df, ["CODE_GENDER"])
    out, remapped = main.align_factor_levels(train_df[["CODE_GENDER"]], levels, {"CODE_GENDER": "F"})
    assert remapped["CODE_GENDER"] == 0
    assert out["CODE_GENDER"].astype(str).tolist() == train_df["CODE_GENDER"].tolist()


# ---------------- modeling ----------------

def test_build_pipes_structure(train_df):
    logreg, rf = main.build_pipes(train_df[main.PREDICTORS])
    for pipe in (logreg, rf):
        assert isinstance(pipe, Pipeline)
        assert list(pipe.named_steps) == ["prep", "clf"]
    num_cols, cat_cols = main.split_predictors(train_df[main.PREDICTORS])
    assert cat_cols == ["CODE_GENDER"]
    assert set(num_cols) == {"EXT_SOURCE_2", "EXT_SOURCE_3", "DAYS_BIRTH"}


def test_logreg_ignores_unseen_level(train_df, test_df):
    fills = main.fit_imputer(train_df)
    train_c, _ = main.clean_data(train_df, fills)
    test_c, _ = main.clean_data(test_df, fills, labelled=False)
    logreg, _ = main.build_pipes(train_c[main.PREDICTORS])
    logreg.fit(train_c[main.PREDICTORS], train_c["TARGET"])
    p = logreg.predict_proba(test_c[main.PREDICTORS])[:, 1]
    assert len(p) == N_TEST and ((p >= 0) & (p <= 1)).all()


def test_ks_and_gini():
    y = np.array([0, 0, 1, 1])
    assert main.ks_statistic(y, np.array([0.1, 0.2, 0.8, 0.9])) == pytest.approx(1.0)
    assert main.gini_from_auc(0.75) == pytest.approx(0.5)


def test_ks_is_zero_when_scores_tie():
    y = np.array([0, 1, 0, 1, 0, 1])
    assert main.ks_statistic(y, np.full(6, 0.5)) == pytest.approx(0.0)
    # ties inside a group do not depend on row order
    p = np.array([0.9, 0.5, 0.5, 0.5, 0.5, 0.1])
    assert main.ks_statistic(y, p) == pytest.approx(main.ks_statistic(y[::-1], p[::-1]))


# ---------------- submissions ----------------

def _sub(n=3):
    return pd.DataFrame({"SK_ID_CURR": range(1, n + 1), "TARGET": np.linspace(0.1, 0.9, n)})


def test_write_submission_ok():
    path = main.write_submission(_sub(), os.path.join("exports", "s.csv"), 3)
    assert pd.read_csv(path).shape == (3, 2)


@pytest.mark.parametrize("bad", [
    lambda s: s.rename(columns={"TARGET": "proba"}),
    lambda s: s.iloc[:2],
    lambda s: s.assign(SK_ID_CURR=[1, 1, 2]),
    lambda s: s.assign(TARGET=[0.1, 1.2, 0.3]),
    lambda s: s.assign(TARGET=[0.1, np.nan, 0.3]),
])
def test_write_submission_rejects(bad):
    with pytest.raises(ValueError):
        main.write_submission(bad(_sub()), "s.csv", 3)
    assert not os.path.exists("s.csv")


# ---------------- end to end ----------------

def test_main_writes_both_submissions(trained, test_df):
    for key in ("logreg", "rf"):
        sub = pd.read_csv(os.path.join("exports", f"submission_{key}.csv"))
        assert list(sub.columns) == ["SK_ID_CURR", "TARGET"]
        assert len(sub) == N_TEST
        assert sub["SK_ID_CURR"].tolist() == test_df["SK_ID_CURR"].tolist()
        assert sub["TARGET"].between(0, 1).all()


def test_main_metrics_and_exports(trained):
    for key in ("logreg", "rf"):
        assert 0.0 <= trained[f"auc_{key}"] <= 1.0
        assert trained[f"gini_{key}"] == pytest.approx(2 * trained[f"auc_{key}"] - 1)
    # only the unseen "U" rows; missing genders were imputed before alignment
    assert trained["test_levels_remapped"] == UNSEEN_GENDER_ROWS

    summary = pd.read_csv(os.path.join("exports", "model_eval_summary.csv"))
    assert summary["model"].tolist() == ["Logistic Regression", "Random Forest"]
    holdout = pd.read_csv(os.path.join("exports", "holdout_predictions.csv"))
    assert list(holdout.columns) == ["y_true", "proba_logreg", "proba_rf"]
    assert len(holdout) == round(N_TRAIN * main.VALID_SIZE)

    coefs = pd.read_csv(os.path.join("exports", "logreg_coefficients.csv"))
    assert coefs["feature"].iloc[0] == "(intercept)"
    imp = pd.read_csv(os.path.join("exports", "rf_importance.csv"))
    assert imp["importance"].sum() == pytest.approx(1.0)

    for name in ("logreg_pipeline.joblib", "rf_pipeline.joblib", "prep_state.joblib"):
        assert os.path.exists(os.path.join("artifacts", name))


def test_main_builds_gallery_and_key_numbers(trained):
    manifest = pd.read_csv(os.path.join(main.OUTPUT_DIR, "manifest.csv"))
    assert {"roc_logreg.png", "roc_rf.png", "roc_models.png", "rf_importance.png"} <= set(manifest["filename"])
    assert manifest["caption"].notna().all()
    assert os.path.exists(os.path.join(main.OUTPUT_DIR, "index.html"))
    key = pd.read_csv(os.path.join("reports", "key_numbers.csv"))
    assert key.loc[0, "train_rows"] == N_TRAIN and key.loc[0, "test_rows"] == N_TEST


def test_main_missing_data_dir(in_tmp_dir):
    with pytest.raises(FileNotFoundError):
        main.main([str(in_tmp_dir / "missing")])


@pytest.mark.parametrize("err", [OSError("disk full"), pickle.PicklingError("cannot pickle")])
def test_save_artifacts_warns_and_continues(monkeypatch, capsys, err):
    def broken_dump(obj, path):
        raise err
    monkeypatch.setattr(main, "dump", broken_dump)
    main.save_artifacts({"logreg": object()}, {"fills": {}})
    assert "[WARN] Could not save joblib artifacts" in capsys.readouterr().out
