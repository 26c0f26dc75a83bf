import pytest
import pandas as pd
import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.linear_model import LogisticRegression

from mlresample.config_schema import make_run_options
from mlresample.data import Task
from mlresample.models import Learner


@pytest.fixture(scope="session")
def seed():
    return 42


@pytest.fixture
def tiny_df(seed):
    """
    Small deterministic dataframe.
    Includes:
      - Risk_Score (regression target)
      - Save_Money_Yes (binary classification target, 24/16 split)
      - subject (blocking column, 8 subjects x 5 rows)
      - case_weight (positive case weights)
      - row (0..n-1, used by the failure-injecting estimators)
    """
    rng = np.random.default_rng(seed)
    n = 40

    df = pd.DataFrame({
        "Debt_Level": rng.integers(0, 5, size=n),
        "Impulse_Buying_Frequency": rng.integers(0, 5, size=n),
        "Income": rng.normal(loc=3.0, scale=1.0, size=n),
    })
    df["Risk_Score"] = 0.8 * df["Debt_Level"] - 0.5 * df["Income"] + rng.normal(0, 0.3, size=n)
    df["Save_Money_Yes"] = np.array([1] * 24 + [0] * 16)[rng.permutation(n)]
    df["subject"] = np.repeat([f"s{i}" for i in range(8)], 5)
    df["case_weight"] = rng.uniform(0.5, 2.0, size=n)
    df["row"] = np.arange(n)

    return df


@pytest.fixture
def classif_task(tiny_df):
    data = tiny_df[["Debt_Level", "Impulse_Buying_Frequency", "Income", "row", "Save_Money_Yes"]]
    return Task(data, "Save_Money_Yes", "classif", id="savings")


@pytest.fixture
def regr_task(tiny_df):
    data = tiny_df[["Debt_Level", "Impulse_Buying_Frequency", "Income", "row", "Risk_Score"]]
    return Task(data, "Risk_Score", "regr", id="risk", blocking=tiny_df["subject"].to_numpy())


@pytest.fixture
def ten_row_task():
    """10 rows, two classes of 5, for the end-to-end 2-fold check."""
    data = pd.DataFrame({
        "x": np.arange(10, dtype=float),
        "row": np.arange(10),
        "y": [0, 0, 0, 0, 0, 1, 1, 1, 1, 1],
    })
    return Task(data, "y", "classif", id="ten_rows")


@pytest.fixture
def logreg():
    return Learner(LogisticRegression(max_iter=500), id="logreg", task_type="classif")


@pytest.fixture
def quiet():
    return make_run_options(show_info=False, on_learner_error="quiet")


class FailOnRowEstimator(ClassifierMixin, BaseEstimator):
    """
    Classifier that raises when a marker row is missing from the training set
    (fit_marker) or present in the prediction set (predict_marker).
    """

    def __init__(self, fit_marker=None, predict_marker=None):
        self.fit_marker = fit_marker
        self.predict_marker = predict_marker

    def fit(self, X, y, sample_weight=None):
        if self.fit_marker is not None and self.fit_marker not in set(X["row"]):
            raise RuntimeError(f"row {self.fit_marker} missing from training data")
        self.classes_ = np.unique(y)
        values, counts = np.unique(y, return_counts=True)
        self.majority_ = values[np.argmax(counts)]
        self.sample_weight_ = sample_weight
        return self

    def predict(self, X):
        if self.predict_marker is not None and self.predict_marker in set(X["row"]):
            raise RuntimeError(f"cannot predict row {self.predict_marker}")
        return np.full(len(X), self.majority_)

    def predict_proba(self, X):
        proba = np.zeros((len(X), len(self.classes_)))
        proba[:, list(self.classes_).index(self.majority_)] = 1.0
        return proba


@pytest.fixture
def fail_on_row():
    return FailOnRowEstimator


@pytest.fixture
def base_classification_config(tmp_path, seed):
    cfg = {
        "experiment": {
            "name": "pytest_classification",
            "seed": seed,
            "output_dir": str(tmp_path / "runs")
        },
        "data": {
            "dataset_path": "DUMMY.csv",
            "target_column": "Save_Money_Yes",
            "target_type": "classification",
            "ignored_columns": ["Risk_Score", "row"],
            "weights_column": "case_weight",
            "blocking_column": "subject"
        },
        "model": {
            "type": "logistic_regression",
            "predict_type": "prob",
            "params": {
                "logistic_regression": {
                    "max_iter": 200
                }
            }
        },
        "resampling": {
            "method": "cv",
            "iters": 4,
            "stratify": True,
            "predict": "test"
        },
        "measures": ["acc", {"id": "auc", "aggregation": "test.join"}],
        "parallel": {"n_jobs": 1, "backend": "loky"},
        "output": {
            "keep_models": True,
            "keep_predictions": True,
            "show_info": False,
            "on_learner_error": "quiet"
        }
    }
    return cfg


@pytest.fixture
def base_regression_config(tmp_path, seed):
    cfg = {
        "experiment": {
            "name": "pytest_regression",
            "seed": seed,
            "output_dir": str(tmp_path / "runs")
        },
        "data": {
            "dataset_path": "DUMMY.csv",
            "target_column": "Risk_Score",
            "target_type": "regression",
            "ignored_columns": ["Save_Money_Yes", "row", "case_weight"],
            "blocking_column": "subject"
        },
        "model": {
            "type": "ridge",
            "params": {"ridge": {}}
        },
        "resampling": {
            "method": "repcv",
            "folds": 4,
            "reps": 2,
            "predict": "both"
        },
        "measures": ["mae", {"id": "rmse", "aggregation": "testgroup.mean"}],
        "output": {
            "keep_models": False,
            "keep_predictions": False,
            "show_info": False
        }
    }
    return cfg


@pytest.fixture
def patch_dataset_loader(monkeypatch, tiny_df):
    """
    Monkeypatch load_dataset so runs don't hit disk.
    """
    def _fake_load_dataset(config, dataset_path=None):
        return tiny_df.copy(), "test_dataset.csv"

    monkeypatch.setattr("mlresample.data.load_dataset", _fake_load_dataset)
    monkeypatch.setattr("runners.run_resample.load_dataset", _fake_load_dataset)
    return _fake_load_dataset


@pytest.fixture
def freeze_time(monkeypatch):
    """
    Make run_dir deterministic by freezing datetime.now().
    """
    import datetime as dt

    class _FixedDT:
        @staticmethod
        def now():
            return dt.datetime(2026, 1, 4, 12, 34, 56)

    monkeypatch.setattr("mlresample.io.datetime", _FixedDT)
    return _FixedDT


@pytest.fixture
def write_yaml(tmp_path):
    import yaml
    def _write(cfg, name="temp.yaml"):
        p = tmp_path / name
        with open(p, "w") as f:
            yaml.safe_dump(cfg, f, default_flow_style=False)
        return str(p)
    return _write
