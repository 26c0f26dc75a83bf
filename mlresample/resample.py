# Resampling engine
# Fit, predict and score a learner on every train/test split, then merge

import time

import numpy as np
import pandas as pd

from .config_schema import ConfigurationError, make_run_options
from .measures import check_measures, set_aggregation
from .models import train, predict, is_failure_model, get_failure_model_msg
from .parallel import parallel_map
from .prediction import make_resample_prediction
from .resample_desc import ResampleDesc, make_resample_desc
from .resample_instance import ResampleInstance, make_resample_instance
from .result import (
    IterationRecord, MeasureValue, NOT_APPLICABLE, ResampleResult, STATUS_FAILED, TRAINING_FAILED,
    PREDICTION_FAILED, perfs_to_string
)


def resample(learner, task, resampling, measures=None, weights=None, models=False,
             extract=None, keep_pred=True, options=None):
    """
    Fit models according to a resampling strategy.

    Args:
        learner: Learner
        task: Task
        resampling: ResampleDesc (instantiated here) or ResampleInstance
        measures: Measure or list of Measures (default: task default measure)
        weights: non-negative case weights, one per task row. Overrides task
            weights. Only used for training.
        models: keep the fitted model of every iteration
        extract: function applied to every successfully fitted model
        keep_pred: keep the merged predictions in the result
        options: run options from make_run_options (default options if None)

    Returns:
        ResampleResult

    Raises:
        ConfigurationError before any iteration runs if the setup is invalid
        BatchExecutionError if the execution backend fails
    """
    options = make_run_options() if options is None else options

    if isinstance(resampling, ResampleDesc):
        resampling = make_resample_instance(resampling, task=task)
    if not isinstance(resampling, ResampleInstance):
        raise ConfigurationError(
            f"resampling must be a ResampleDesc or ResampleInstance, got {type(resampling).__name__}"
        )
    if resampling.size != task.size:
        raise ConfigurationError(
            f"Size of data set: {task.size} and resampling instance: {resampling.size} differ!"
        )

    measures = check_measures(measures, task)
    _check_aggregations(measures, resampling)
    weights = _check_weights(weights, task)
    _check_learner(learner, task, weights)

    if not isinstance(models, bool):
        raise ConfigurationError("models must be a boolean")
    if not isinstance(keep_pred, bool):
        raise ConfigurationError("keep_pred must be a boolean")
    if extract is not None and not callable(extract):
        raise ConfigurationError("extract must be a function or None")

    more_args = {
        'learner': learner,
        'task': task,
        'rin': resampling,
        'measures': measures,
        'weights': weights,
        'keep_model': models,
        'extract': extract,
        'options': options,
    }

    start = time.perf_counter()
    records = parallel_map(do_resample_iteration, range(1, resampling.iters + 1), options, more_args)
    runtime = time.perf_counter() - start

    return merge_resample_result(learner, task, records, measures, resampling, models, extract,
                                 keep_pred, runtime, options)


def _check_weights(weights, task):
    """Validate explicit weights, or the task weights when none are given."""
    if weights is None:
        weights = task.weights
    if weights is None:
        return None
    weights = np.asarray(weights, dtype=float)
    errors = []
    if weights.shape != (task.size,):
        errors.append(f"weights have length {weights.size}, task has {task.size} rows")
    elif np.isnan(weights).any():
        errors.append("weights contain missing values")
    elif (weights < 0).any():
        errors.append("weights must be non-negative")
    if errors:
        raise ConfigurationError("Invalid weights:\n  - " + "\n  - ".join(errors))
    return weights


def _check_learner(learner, task, weights):
    if learner.task_type is not None and learner.task_type != task.task_type:
        raise ConfigurationError(
            f"Learner '{learner.id}' is for '{learner.task_type}' tasks, task '{task.id}' is '{task.task_type}'"
        )
    if weights is not None and not learner.supports_weights:
        raise ConfigurationError(f"Weights given but learner '{learner.id}' does not support case weights")


def _check_aggregations(measures, rin):
    """Reject aggregations that need predictions the instance will not produce."""
    predict = rin.desc.predict
    errors = []
    for m in measures:
        props = m.aggr.properties
        if 'req.train' in props and predict == 'test':
            errors.append(f"Aggregation '{m.aggr_name}' needs train predictions, but predict='test'")
        if 'req.test' in props and predict == 'train':
            errors.append(f"Aggregation '{m.aggr_name}' needs test predictions, but predict='train'")
        if 'req.blocking' in props and rin.blocking is None:
            errors.append(f"Aggregation '{m.aggr_name}' needs a blocked resample instance")
    if errors:
        raise ConfigurationError("Invalid aggregations:\n  - " + "\n  - ".join(errors))


def _warn(options, msg):
    if options.get('on_learner_error', 'warn') == 'warn':
        print(f"[Resample] WARNING {msg}")


def do_resample_iteration(learner, task, rin, i, measures, weights, keep_model, extract, options):
    """
    Run iteration `i` (1-based): train, predict, score.

    Learner and measure failures are recorded in the returned
    IterationRecord and never raised. A training failure marks both the
    train and the test measures as failed and skips prediction and
    extraction.
    """
    start = time.perf_counter()
    train_i = rin.train_inds[i - 1]
    test_i = rin.test_inds[i - 1]

    model = train(learner, task, subset=train_i, weights=None if weights is None else weights[train_i])

    if is_failure_model(model):
        msg = get_failure_model_msg(model)
        _warn(options, f"{rin.desc.id} iter {i}: training failed: {msg}")
        failed = tuple(MeasureValue.failed(TRAINING_FAILED) for _ in measures)
        record = IterationRecord(
            iter=i,
            measures_test=failed,
            measures_train=failed,
            err_msgs=(msg, None),
            model=model if keep_model else None,
            runtime=time.perf_counter() - start,
        )
        _log_iteration(options, rin, record, measures)
        return record

    predict_errors = []
    pred_train = pred_test = None
    ms_train = ms_test = tuple(NOT_APPLICABLE for _ in measures)

    pp = rin.desc.predict
    if pp in ('train', 'both'):
        pred_train, ms_train = _predict_and_score(model, task, train_i, measures, 'train',
                                                  predict_errors, options, rin, i)
    if pp in ('test', 'both'):
        pred_test, ms_test = _predict_and_score(model, task, test_i, measures, 'test',
                                                predict_errors, options, rin, i)

    record = IterationRecord(
        iter=i,
        measures_test=ms_test,
        measures_train=ms_train,
        err_msgs=(None, '; '.join(predict_errors) if predict_errors else None),
        model=model if keep_model else None,
        pred_test=pred_test,
        pred_train=pred_train,
        extract=extract(model) if extract is not None else None,
        runtime=time.perf_counter() - start,
    )
    _log_iteration(options, rin, record, measures)
    return record


def _predict_and_score(model, task, subset, measures, which, errors, options, rin, i):
    try:
        pred = predict(model, task, subset)
    except Exception as e:
        msg = f"{which}: {type(e).__name__}: {e}"
        errors.append(msg)
        _warn(options, f"{rin.desc.id} iter {i}: prediction failed: {msg}")
        return None, tuple(MeasureValue.failed(PREDICTION_FAILED) for _ in measures)

    values = []
    for m in measures:
        # measures are independent; one failing leaves the others intact
        try:
            values.append(MeasureValue.ok(m.fun(task, model, pred)))
        except Exception as e:
            msg = f"{type(e).__name__}: {e}"
            _warn(options, f"{rin.desc.id} iter {i}: measure '{m.id}' on {which} set failed: {msg}")
            values.append(MeasureValue.failed(msg))
    return pred, tuple(values)


def _log_iteration(options, rin, record, measures):
    if not options.get('show_info', True):
        return
    perfs = {f"{m.id}.test": v.value for m, v in zip(measures, record.measures_test)}
    print(f"[Resample] {rin.desc.id} iter {record.iter}: {perfs_to_string(perfs)}")


def _measure_tables(records, attr, measures):
    iters = np.arange(1, len(records) + 1)
    values = {'iter': iters}
    status = {'iter': iters}
    for j, m in enumerate(measures):
        cells = [getattr(r, attr)[j] for r in records]
        values[m.id] = np.array([c.value for c in cells], dtype=float)
        status[m.id] = [c.status for c in cells]
    return pd.DataFrame(values), pd.DataFrame(status)


def _measure_errors(records, measures):
    errors = []
    for r in records:
        if r.err_msgs[0] is not None:
            continue
        for which, cells in (('test', r.measures_test), ('train', r.measures_train)):
            for m, c in zip(measures, cells):
                if c.status == STATUS_FAILED and c.message != PREDICTION_FAILED:
                    errors.append({'iter': r.iter, 'set': which, 'measure': m.id, 'message': c.message})
    return errors


def merge_resample_result(learner, task, records, measures, rin, models, extract, keep_pred,
                          runtime, options):
    """
    Merge ordered iteration records into a ResampleResult.

    Each measure is aggregated by its own rule, which receives both measure
    columns, the instance's iteration groups and the merged predictions.
    """
    iters = len(records)
    ms_test, ms_test_status = _measure_tables(records, 'measures_test', measures)
    ms_train, ms_train_status = _measure_tables(records, 'measures_train', measures)

    pred = make_resample_prediction(
        rin,
        [r.pred_test for r in records],
        [r.pred_train for r in records],
    )

    aggr = {}
    for m in measures:
        try:
            value = m.aggr.fun(task, ms_test[m.id].to_numpy(), ms_train[m.id].to_numpy(), m, rin.group, pred)
            aggr[m.aggr_name] = float(value)
        except Exception as e:
            _warn(options, f"aggregation '{m.aggr_name}' failed: {type(e).__name__}: {e}")
            aggr[m.aggr_name] = np.nan

    err_msgs = pd.DataFrame({
        'iter': np.arange(1, iters + 1),
        'train': pd.Series([r.err_msgs[0] for r in records], dtype=object),
        'predict': pd.Series([r.err_msgs[1] for r in records], dtype=object),
    })

    if options.get('show_info', True):
        n_missing = int(ms_test.drop(columns='iter').isna().sum().sum())
        if n_missing:
            print(f"[Resample] {n_missing} missing test measure value(s) ignored in aggregation")
        print(f"[Resample] Aggr. Result: {perfs_to_string(aggr)}")

    return ResampleResult(
        learner_id=learner.id,
        task_id=task.id,
        resampling_id=rin.desc.id,
        measures_test=ms_test,
        measures_train=ms_train,
        measures_test_status=ms_test_status,
        measures_train_status=ms_train_status,
        aggr=aggr,
        err_msgs=err_msgs,
        runtime=runtime,
        pred=pred if keep_pred else None,
        models=[r.model for r in records] if models else None,
        extract=[r.extract for r in records] if extract is not None else None,
        measure_errors=_measure_errors(records, measures),
    )


# Convenience wrappers for the common strategies

def holdout(learner, task, split=2 / 3, stratify=False, measures=None, seed=None, predict='test', **kwargs):
    desc = make_resample_desc('holdout', split=split, stratify=stratify, seed=seed, predict=predict)
    return resample(learner, task, desc, measures=measures, **kwargs)


def crossval(learner, task, iters=10, stratify=False, measures=None, seed=None, predict='test', **kwargs):
    desc = make_resample_desc('cv', iters=iters, stratify=stratify, seed=seed, predict=predict)
    return resample(learner, task, desc, measures=measures, **kwargs)


def repcv(learner, task, folds=10, reps=10, stratify=False, measures=None, seed=None, predict='test',
          **kwargs):
    desc = make_resample_desc('repcv', folds=folds, reps=reps, stratify=stratify, seed=seed,
                              predict=predict)
    return resample(learner, task, desc, measures=measures, **kwargs)


def loo(learner, task, measures=None, predict='test', **kwargs):
    desc = make_resample_desc('loo', predict=predict)
    return resample(learner, task, desc, measures=measures, **kwargs)


def subsample(learner, task, iters=30, split=2 / 3, stratify=False, measures=None, seed=None,
              predict='test', **kwargs):
    desc = make_resample_desc('subsample', iters=iters, split=split, stratify=stratify, seed=seed,
                              predict=predict)
    return resample(learner, task, desc, measures=measures, **kwargs)


def bootstrap_oob(learner, task, iters=30, stratify=False, measures=None, seed=None, predict='test',
                  **kwargs):
    desc = make_resample_desc('bootstrap', iters=iters, stratify=stratify, seed=seed, predict=predict)
    return resample(learner, task, desc, measures=measures, **kwargs)


def bootstrap_b632(learner, task, iters=30, stratify=False, measures=None, seed=None, **kwargs):
    """Bootstrap with the .632 estimator; predicts on both train and test sets."""
    desc = make_resample_desc('bootstrap', iters=iters, stratify=stratify, seed=seed, predict='both')
    measures = check_measures(measures, task)
    measures = [set_aggregation(m, 'b632') for m in measures]
    return resample(learner, task, desc, measures=measures, **kwargs)
