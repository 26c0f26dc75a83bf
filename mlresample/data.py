# Task abstraction and dataset loading
# A Task wraps features, target, optional case weights and blocking

import numpy as np
import pandas as pd

from .config_schema import ConfigurationError

TASK_TYPES = {'classification': 'classif', 'regression': 'regr'}


class Task:
    """
    Supervised learning task backed by a pandas DataFrame.

    Rows are addressed positionally (0..size-1). Subsetting keeps the
    original row ids so predictions can be tagged back to the full task.
    """

    def __init__(self, data, target, task_type, id=None, weights=None, blocking=None,
                 row_ids=None, class_levels=None):
        if task_type not in ('classif', 'regr'):
            raise ConfigurationError(f"Unknown task type '{task_type}'. Allowed: ['classif', 'regr']")
        if target not in data.columns:
            raise ConfigurationError(
                f"Target column '{target}' not found in data. Available: {list(data.columns)}"
            )

        self.id = id or target
        self.data = data.reset_index(drop=True)
        self.target = target
        self.task_type = task_type
        n = len(self.data)

        if weights is not None:
            weights = np.asarray(weights, dtype=float)
            if weights.shape != (n,):
                raise ConfigurationError(f"Task weights have length {weights.size}, task has {n} rows")
        self.weights = weights

        if blocking is not None:
            blocking = np.asarray(blocking)
            if blocking.shape != (n,):
                raise ConfigurationError(f"Blocking vector has length {blocking.size}, task has {n} rows")
        self.blocking = blocking

        self.row_ids = np.arange(n) if row_ids is None else np.asarray(row_ids)

        if class_levels is None and task_type == 'classif':
            class_levels = sorted(pd.unique(self.data[target]).tolist())
        self.class_levels = class_levels

    @property
    def size(self):
        return len(self.data)

    @property
    def feature_names(self):
        return [c for c in self.data.columns if c != self.target]

    def get_features(self, subset=None):
        X = self.data[self.feature_names]
        if subset is not None:
            X = X.iloc[np.asarray(subset)]
        return X

    def get_target(self, subset=None):
        y = self.data[self.target]
        if subset is not None:
            y = y.iloc[np.asarray(subset)]
        return y

    def subset(self, indices):
        """Return a new Task restricted to the given row positions."""
        indices = np.asarray(indices, dtype=int)
        return Task(
            self.data.iloc[indices],
            self.target,
            self.task_type,
            id=self.id,
            weights=None if self.weights is None else self.weights[indices],
            blocking=None if self.blocking is None else self.blocking[indices],
            row_ids=self.row_ids[indices],
            class_levels=self.class_levels,
        )

    def __repr__(self):
        return f"Task(id={self.id!r}, type={self.task_type}, size={self.size}, target={self.target!r})"


def make_task(df, config):
    """
    Build a Task from a DataFrame and the 'data' section of a run config.

    Weights and blocking columns are taken out of the feature set.
    """
    data_cfg = config['data']
    target = data_cfg['target_column']

    # Drop auxiliary columns
    cols_to_drop = data_cfg.get('columns_to_drop', [])
    df = df.drop(columns=[c for c in cols_to_drop if c in df.columns])

    if target not in df.columns:
        raise ConfigurationError(f"Target column '{target}' not found in dataset. Available: {list(df.columns)}")

    weights = None
    weights_col = data_cfg.get('weights_column')
    if weights_col:
        if weights_col not in df.columns:
            raise ConfigurationError(f"Weights column '{weights_col}' not found in dataset")
        weights = df[weights_col].to_numpy(dtype=float)

    blocking = None
    blocking_col = data_cfg.get('blocking_column')
    if blocking_col:
        if blocking_col not in df.columns:
            raise ConfigurationError(f"Blocking column '{blocking_col}' not found in dataset")
        blocking = df[blocking_col].to_numpy()

    # Ignored columns stay out of the features but are not an error if missing
    ignored = [c for c in data_cfg.get('ignored_columns', []) if c in df.columns and c != target]
    excluded = set(ignored) | {c for c in (weights_col, blocking_col) if c}
    feature_cols = [c for c in df.columns if c not in excluded]

    if ignored:
        print(f"IGNORED columns (not used in training): {ignored}")

    return Task(
        df[feature_cols].copy(),
        target,
        TASK_TYPES[data_cfg['target_type']],
        id=config['experiment'].get('name', target),
        weights=weights,
        blocking=blocking,
    )


def load_dataset(config, dataset_path=None):
    """Load dataset CSV from an explicit path or the config."""
    path = dataset_path or config['data'].get('dataset_path')
    if path is None:
        raise ValueError("No dataset path given (use --dataset or data.dataset_path)")

    print(f"Loading dataset: {path}")
    df = pd.read_csv(path)

    return df, path


def validate_data_integrity(task):
    """
    Validate data integrity before resampling.

    Checks:
    - No NaN in target
    - No infinite values in numeric features
    """
    errors = []

    y = task.get_target()
    if y.isnull().any():
        errors.append(f"NaN values found in target ({task.target}): {int(y.isnull().sum())} missing")

    X = task.get_features()
    numeric_cols = X.select_dtypes(include=[np.number]).columns
    for col in numeric_cols:
        if not np.isfinite(X[col].dropna()).all():
            errors.append(f"Infinite values found in feature: {col}")

    if errors:
        raise ValueError("Data integrity check failed:\n  - " + "\n  - ".join(errors))

    return True
