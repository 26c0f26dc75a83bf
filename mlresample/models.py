# Model building and the learner train/predict interface
# Training failures are captured as FailureModel instead of raised

import time

import numpy as np
import pandas as pd
from sklearn.base import clone
from sklearn.linear_model import LogisticRegression, Ridge, Lasso
from sklearn.ensemble import RandomForestClassifier, RandomForestRegressor
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor
from sklearn.dummy import DummyClassifier, DummyRegressor
from sklearn.utils.validation import has_fit_parameter

from .config_schema import ConfigurationError
from .prediction import Prediction

try:
    from xgboost import XGBClassifier, XGBRegressor
    HAS_XGBOOST = True
except ImportError:
    XGBClassifier = None
    XGBRegressor = None
    HAS_XGBOOST = False

try:
    from lightgbm import LGBMClassifier, LGBMRegressor
    HAS_LIGHTGBM = True
except ImportError:
    LGBMClassifier = None
    LGBMRegressor = None
    HAS_LIGHTGBM = False


SUPPORTED_MODELS = {
    'regression': ['ridge', 'lasso', 'xgboost_reg', 'lightgbm_reg', 'random_forest_reg',
                   'decision_tree_reg', 'featureless_reg'],
    'classification': ['logistic_regression', 'random_forest', 'xgboost_clf', 'lightgbm_clf',
                       'decision_tree', 'featureless']
}


def build_model(model_type, params=None, seed=None):
    """
    Build and return an unfitted sklearn-compatible estimator.

    Ridge, Lasso and the featureless baselines are deterministic and take no
    random_state.
    """
    params = params or {}

    # Regression models
    if model_type == 'ridge':
        return Ridge(**params)

    elif model_type == 'lasso':
        return Lasso(**params)

    elif model_type == 'xgboost_reg':
        if not HAS_XGBOOST:
            raise ImportError("XGBoost not installed. Run: pip install xgboost")
        return XGBRegressor(random_state=seed, verbosity=0, **params)

    elif model_type == 'lightgbm_reg':
        if not HAS_LIGHTGBM:
            raise ImportError("LightGBM not installed. Run: pip install lightgbm")
        return LGBMRegressor(random_state=seed, verbose=-1, **params)

    elif model_type == 'random_forest_reg':
        return RandomForestRegressor(random_state=seed, **params)

    elif model_type == 'decision_tree_reg':
        return DecisionTreeRegressor(random_state=seed, **params)

    elif model_type == 'featureless_reg':
        return DummyRegressor(**params)

    # Classification models
    elif model_type == 'logistic_regression':
        return LogisticRegression(random_state=seed, **params)

    elif model_type == 'random_forest':
        return RandomForestClassifier(random_state=seed, **params)

    elif model_type == 'decision_tree':
        return DecisionTreeClassifier(random_state=seed, **params)

    elif model_type == 'featureless':
        return DummyClassifier(**params)

    elif model_type == 'xgboost_clf':
        if not HAS_XGBOOST:
            raise ImportError("XGBoost not installed. Run: pip install xgboost")
        return XGBClassifier(random_state=seed, verbosity=0, eval_metric='logloss', **params)

    elif model_type == 'lightgbm_clf':
        if not HAS_LIGHTGBM:
            raise ImportError("LightGBM not installed. Run: pip install lightgbm")
        return LGBMClassifier(random_state=seed, verbose=-1, **params)

    else:
        raise ConfigurationError(
            f"Unknown model type: '{model_type}'. "
            f"Supported: {SUPPORTED_MODELS}"
        )


class Learner:
    """
    An unfitted estimator plus the metadata the resampling engine needs.

    `estimator` is cloned for every training call, so a Learner can be
    shared read-only between iterations and workers.
    """

    def __init__(self, estimator, id=None, task_type=None, predict_type='response'):
        if predict_type not in ('response', 'prob'):
            raise ConfigurationError(f"Invalid predict_type '{predict_type}'. Allowed: ['response', 'prob']")
        if predict_type == 'prob' and not hasattr(estimator, 'predict_proba'):
            raise ConfigurationError(f"{type(estimator).__name__} cannot predict probabilities")
        self.estimator = estimator
        self.id = id or type(estimator).__name__
        self.task_type = task_type
        self.predict_type = predict_type

    @property
    def supports_weights(self):
        return has_fit_parameter(self.estimator, 'sample_weight')

    def __repr__(self):
        return f"Learner(id={self.id!r}, predict_type={self.predict_type})"


def make_learner(model_type, params=None, seed=None, predict_type='response'):
    """Build a Learner from the model catalogue."""
    if model_type in SUPPORTED_MODELS['regression']:
        task_type = 'regr'
    elif model_type in SUPPORTED_MODELS['classification']:
        task_type = 'classif'
    else:
        task_type = None
    estimator = build_model(model_type, params, seed)
    return Learner(estimator, id=model_type, task_type=task_type, predict_type=predict_type)


def learner_from_config(config):
    """Build the Learner described by the 'model' section of a run config."""
    model_type = config['model']['type']
    params = config['model'].get('params', {}).get(model_type, {})
    return make_learner(
        model_type,
        params=params,
        seed=config['experiment'].get('seed'),
        predict_type=config['model'].get('predict_type', 'response'),
    )


class WrappedModel:
    """A fitted estimator together with the rows it was trained on."""

    def __init__(self, learner, estimator, task_id, subset, train_time):
        self.learner = learner
        self.estimator = estimator
        self.task_id = task_id
        self.subset = subset
        self.train_time = train_time

    def __repr__(self):
        return f"WrappedModel(learner={self.learner.id!r}, n_train={len(self.subset)})"


class FailureModel(WrappedModel):
    """Result of a training call that raised. Holds the error message only."""

    def __init__(self, learner, task_id, subset, msg, train_time=np.nan):
        super().__init__(learner, None, task_id, subset, train_time)
        self.msg = msg

    def __repr__(self):
        return f"FailureModel(learner={self.learner.id!r}, msg={self.msg!r})"


def is_failure_model(model):
    return isinstance(model, FailureModel)


def get_failure_model_msg(model):
    return model.msg if is_failure_model(model) else None


def train(learner, task, subset=None, weights=None):
    """
    Fit a fresh clone of the learner's estimator on task rows.

    Args:
        learner: Learner
        task: Task
        subset: row positions to train on (default: all rows)
        weights: case weights aligned with `subset`, or None

    Returns:
        WrappedModel, or FailureModel if fitting raised
    """
    subset = np.arange(task.size) if subset is None else np.asarray(subset, dtype=int)
    X = task.get_features(subset)
    y = task.get_target(subset)

    start = time.perf_counter()
    try:
        estimator = clone(learner.estimator)
        if weights is not None:
            estimator.fit(X, y, sample_weight=np.asarray(weights, dtype=float))
        else:
            estimator.fit(X, y)
    except Exception as e:
        return FailureModel(learner, task.id, subset, f"{type(e).__name__}: {e}",
                            train_time=time.perf_counter() - start)

    return WrappedModel(learner, estimator, task.id, subset, time.perf_counter() - start)


def predict(model, task, subset=None):
    """
    Predict task rows with a fitted model.

    Raises whatever the estimator raises; FailureModel cannot predict.
    """
    if is_failure_model(model):
        raise ValueError(f"Cannot predict with a failed model: {model.msg}")

    subset = np.arange(task.size) if subset is None else np.asarray(subset, dtype=int)
    X = task.get_features(subset)
    y = task.get_target(subset)

    data = pd.DataFrame({
        'id': task.row_ids[subset],
        'truth': y.to_numpy(),
    })
    data['response'] = model.estimator.predict(X)

    if model.learner.predict_type == 'prob':
        proba = model.estimator.predict_proba(X)
        fitted_classes = list(model.estimator.classes_)
        # classes absent from the training rows get probability 0
        for cl in task.class_levels:
            if cl in fitted_classes:
                data[f'prob.{cl}'] = proba[:, fitted_classes.index(cl)]
            else:
                data[f'prob.{cl}'] = 0.0

    return Prediction(data, task.task_type, model.learner.predict_type, task.class_levels)
