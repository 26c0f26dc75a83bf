# Aggregation rules
# Combine per-iteration measure values (or pooled predictions) into one number

import numpy as np
import pandas as pd


class Aggregation:
    """
    How a measure's per-iteration values are combined.

    `fun(task, perf_test, perf_train, measure, group, pred)` receives the full
    test and train columns (NaN where a cell is not available), the
    per-iteration group labels of the resample instance (or None) and the
    merged ResamplePrediction (or None).

    `properties` may contain 'req.train', 'req.test' (which predictions the
    rule needs) and 'req.blocking' (instance must carry a blocking vector).

    Aggregations travel to worker processes inside measures, so `fun` must be
    a module-level function.
    """

    def __init__(self, id, fun, properties=(), name=None):
        self.id = id
        self.fun = fun
        self.properties = frozenset(properties)
        self.name = name or id

    def __repr__(self):
        return f"Aggregation({self.id})"


class ColumnAggregation(Aggregation):
    """Reduce the test or train column with a plain statistic."""

    def __init__(self, id, reducer, side, name=None):
        self.reducer = reducer
        self.side = side
        super().__init__(id, self._aggregate, ['req.' + side], name)

    def _aggregate(self, task, perf_test, perf_train, measure, group, pred):
        return _reduce(perf_test if self.side == 'test' else perf_train, self.reducer)


def _reduce(values, reducer):
    # NaN cells (failed, not applicable, or genuine NaN results) are ignored;
    # an all-NaN column aggregates to NaN
    values = np.asarray(values, dtype=float)
    values = values[~np.isnan(values)]
    if values.size == 0:
        return np.nan
    return float(reducer(values))


def _sd(values):
    return np.std(values, ddof=1) if values.size > 1 else np.nan


def _range(values):
    return np.max(values) - np.min(values)


def _rmse(values):
    return np.sqrt(np.mean(values ** 2))


test_mean = ColumnAggregation('test.mean', np.mean, 'test', 'Test mean')
test_sd = ColumnAggregation('test.sd', _sd, 'test', 'Test sd')
test_median = ColumnAggregation('test.median', np.median, 'test', 'Test median')
test_min = ColumnAggregation('test.min', np.min, 'test', 'Test min')
test_max = ColumnAggregation('test.max', np.max, 'test', 'Test max')
test_sum = ColumnAggregation('test.sum', np.sum, 'test', 'Test sum')
test_range = ColumnAggregation('test.range', _range, 'test', 'Test range')
test_rmse = ColumnAggregation('test.rmse', _rmse, 'test', 'Test RMSE')

train_mean = ColumnAggregation('train.mean', np.mean, 'train', 'Training mean')
train_sd = ColumnAggregation('train.sd', _sd, 'train', 'Training sd')
train_median = ColumnAggregation('train.median', np.median, 'train', 'Training median')
train_min = ColumnAggregation('train.min', np.min, 'train', 'Training min')
train_max = ColumnAggregation('train.max', np.max, 'train', 'Training max')
train_sum = ColumnAggregation('train.sum', np.sum, 'train', 'Training sum')


def _test_join(task, perf_test, perf_train, measure, group, pred):
    """Recompute the measure once on all test predictions pooled."""
    if pred is None:
        return np.nan
    pooled = pred.subset_set('test')
    if len(pooled) == 0:
        return np.nan
    return float(measure.fun(task, None, pooled))


test_join = Aggregation('test.join', _test_join, ['req.test'], 'Test join')


def _group_means(values, group):
    if group is None:
        raise ValueError("Grouped aggregation needs iteration groups (e.g. repeated CV)")
    df = pd.DataFrame({'value': np.asarray(values, dtype=float), 'group': np.asarray(group)})
    return df.groupby('group', sort=True)['value'].mean().to_numpy()


def _testgroup_mean(task, perf_test, perf_train, measure, group, pred):
    return _reduce(_group_means(perf_test, group), np.mean)


def _testgroup_sd(task, perf_test, perf_train, measure, group, pred):
    return _reduce(_group_means(perf_test, group), _sd)


testgroup_mean = Aggregation('testgroup.mean', _testgroup_mean, ['req.test'], 'Test group mean')
testgroup_sd = Aggregation('testgroup.sd', _testgroup_sd, ['req.test'],
                           'Test group standard deviation')


def _test_blockmean(task, perf_test, perf_train, measure, group, pred):
    """Recompute the measure per block on pooled test predictions, then average."""
    if pred is None:
        return np.nan
    pooled = pred.subset_set('test')
    if 'block' not in pooled.data.columns:
        raise ValueError("test.blockmean needs a resample instance with a blocking vector")
    values = []
    for _, rows in pooled.data.groupby('block', sort=True):
        part = type(pooled)(rows.reset_index(drop=True), pooled.task_type, pooled.predict_type,
                            pooled.class_levels, pooled.instance)
        values.append(measure.fun(task, None, part))
    return _reduce(values, np.mean)


test_blockmean = Aggregation('test.blockmean', _test_blockmean,
                             ['req.test', 'req.blocking'], 'Test block mean')


def _b632(task, perf_test, perf_train, measure, group, pred):
    perf_test = np.asarray(perf_test, dtype=float)
    perf_train = np.asarray(perf_train, dtype=float)
    return _reduce(0.368 * perf_train + 0.632 * perf_test, np.mean)


b632 = Aggregation('b632', _b632, ['req.train', 'req.test'], '.632 Bootstrap')


AGGREGATIONS = {
    a.id: a for a in [
        test_mean, test_sd, test_median, test_min, test_max, test_sum, test_range, test_rmse,
        train_mean, train_sd, train_median, train_min, train_max, train_sum,
        test_join, testgroup_mean, testgroup_sd, test_blockmean, b632,
    ]
}


def get_aggregation(id):
    try:
        return AGGREGATIONS[id]
    except KeyError:
        raise ValueError(f"Unknown aggregation '{id}'. Available: {sorted(AGGREGATIONS)}") from None
