# Performance measures
# Each measure bundles an id, a compute function and its aggregation rule

import copy

import numpy as np
from scipy.stats import spearmanr
from sklearn.metrics import (
    accuracy_score, balanced_accuracy_score, f1_score, roc_auc_score, log_loss, brier_score_loss,
    mean_absolute_error, mean_squared_error, median_absolute_error, r2_score
)

from .aggregations import test_mean, get_aggregation
from .config_schema import ConfigurationError


class Measure:
    """
    A performance measure.

    Args:
        id: stable string identifier, used as column name in result tables
        fun: fun(task, model, pred) -> float. `model` is None when the
            measure is recomputed on pooled predictions.
        aggr: Aggregation combining per-iteration values
        minimize: whether lower values are better
        properties: task types ('classif', 'regr') plus requirements such as
            'req.prob' and 'req.model'
    """

    def __init__(self, id, fun, aggr=test_mean, minimize=True, properties=(), name=None):
        self.id = id
        self.fun = fun
        self.aggr = aggr
        self.minimize = minimize
        self.properties = frozenset(properties)
        self.name = name or id

    @property
    def aggr_name(self):
        return f"{self.id}.{self.aggr.id}"

    def __repr__(self):
        return f"Measure({self.id}, aggr={self.aggr.id})"


def set_aggregation(measure, aggr):
    """Return a copy of the measure using another aggregation rule."""
    if isinstance(aggr, str):
        aggr = get_aggregation(aggr)
    measure = copy.copy(measure)
    measure.aggr = aggr
    return measure


# Classification

def _acc(task, model, pred):
    return accuracy_score(pred.truth, pred.response)


def _mmce(task, model, pred):
    return 1.0 - accuracy_score(pred.truth, pred.response)


def _ber(task, model, pred):
    return 1.0 - balanced_accuracy_score(pred.truth, pred.response)


def _f1(task, model, pred):
    return f1_score(pred.truth, pred.response, average='macro', zero_division=0)


def _auc(task, model, pred):
    probs = pred.get_probabilities()
    if len(pred.class_levels) == 2:
        return roc_auc_score(pred.truth, probs.iloc[:, 1])
    return roc_auc_score(pred.truth, probs.to_numpy(), multi_class='ovr', labels=pred.class_levels)


def _logloss(task, model, pred):
    return log_loss(pred.truth, pred.get_probabilities().to_numpy(), labels=pred.class_levels)


def _brier(task, model, pred):
    if len(pred.class_levels) != 2:
        raise ValueError("brier is defined for binary classification only")
    positive = pred.class_levels[1]
    return brier_score_loss(pred.truth == positive, pred.get_probabilities(positive))


# Regression

def _mse(task, model, pred):
    return mean_squared_error(pred.truth, pred.response)


def _rmse(task, model, pred):
    return float(np.sqrt(mean_squared_error(pred.truth, pred.response)))


def _mae(task, model, pred):
    return mean_absolute_error(pred.truth, pred.response)


def _medae(task, model, pred):
    return median_absolute_error(pred.truth, pred.response)


def _rsq(task, model, pred):
    return r2_score(pred.truth, pred.response)


def _spearman(task, model, pred):
    # constant inputs give NaN, kept as a genuine NaN result
    if np.std(pred.truth) < 1e-12 or np.std(pred.response) < 1e-12:
        return np.nan
    return float(spearmanr(pred.truth, pred.response)[0])


# Generic

def _timetrain(task, model, pred):
    if model is None:
        raise ValueError("timetrain needs a fitted model and cannot be pooled")
    return model.train_time


acc = Measure('acc', _acc, minimize=False, properties=['classif'], name='Accuracy')
mmce = Measure('mmce', _mmce, properties=['classif'], name='Mean misclassification error')
ber = Measure('ber', _ber, properties=['classif'], name='Balanced error rate')
f1 = Measure('f1', _f1, minimize=False, properties=['classif'], name='Macro F1')
auc = Measure('auc', _auc, minimize=False, properties=['classif', 'req.prob'],
              name='Area under the ROC curve')
logloss = Measure('logloss', _logloss, properties=['classif', 'req.prob'], name='Logarithmic loss')
brier = Measure('brier', _brier, properties=['classif', 'req.prob'], name='Brier score')

mse = Measure('mse', _mse, properties=['regr'], name='Mean of squared errors')
rmse = Measure('rmse', _rmse, properties=['regr'], name='Root mean squared error')
mae = Measure('mae', _mae, properties=['regr'], name='Mean of absolute errors')
medae = Measure('medae', _medae, properties=['regr'], name='Median of absolute errors')
rsq = Measure('rsq', _rsq, minimize=False, properties=['regr'], name='Coefficient of determination')
spearman = Measure('spearman', _spearman, minimize=False, properties=['regr'],
                   name='Spearman rank correlation')

timetrain = Measure('timetrain', _timetrain, properties=['classif', 'regr', 'req.model'],
                    name='Time of fitting the model')


MEASURES = {
    m.id: m for m in [acc, mmce, ber, f1, auc, logloss, brier,
                      mse, rmse, mae, medae, rsq, spearman, timetrain]
}

DEFAULT_MEASURES = {'classif': mmce, 'regr': mse}


def get_measure(id, aggregation=None):
    """Look up a measure by id, optionally with a different aggregation."""
    if id not in MEASURES:
        raise ConfigurationError(f"Unknown measure '{id}'. Available: {sorted(MEASURES)}")
    measure = MEASURES[id]
    if aggregation is not None:
        try:
            measure = set_aggregation(measure, aggregation)
        except ValueError as e:
            raise ConfigurationError(str(e)) from None
    return measure


def get_default_measure(task):
    return DEFAULT_MEASURES[task.task_type]


def check_measures(measures, task):
    """
    Normalize the measures argument to a list and check task compatibility.

    Args:
        measures: None, a Measure, or a list of Measures
        task: Task

    Returns:
        list of Measures
    """
    if measures is None:
        return [get_default_measure(task)]
    if isinstance(measures, Measure):
        measures = [measures]
    measures = list(measures)
    if not measures:
        raise ConfigurationError("At least one measure is required")

    errors = []
    for m in measures:
        if not isinstance(m, Measure):
            errors.append(f"Not a Measure: {m!r}")
        elif task.task_type not in m.properties:
            errors.append(f"Measure '{m.id}' does not support task type '{task.task_type}'")
    ids = [m.id for m in measures if isinstance(m, Measure)]
    duplicated = sorted({i for i in ids if ids.count(i) > 1})
    if duplicated:
        errors.append(f"Duplicated measure ids: {duplicated}")
    if errors:
        raise ConfigurationError("Invalid measures:\n  - " + "\n  - ".join(errors))
    return measures


def measures_from_config(config):
    """Build the measure list from the optional 'measures' config section."""
    entries = config.get('measures')
    if entries is None:
        return None
    measures = []
    for entry in entries:
        if isinstance(entry, str):
            measures.append(get_measure(entry))
        else:
            measures.append(get_measure(entry['id'], entry.get('aggregation')))
    return measures
