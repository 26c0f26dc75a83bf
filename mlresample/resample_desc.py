# Resampling descriptions
# Immutable strategy objects; instantiated against a dataset in resample_instance

from dataclasses import dataclass
from typing import Optional, Tuple

from .config_schema import ConfigurationError, ALLOWED_METHODS, ALLOWED_PREDICT, METHOD_PARAMS

DESC_IDS = {
    'holdout': 'holdout',
    'cv': 'cross-validation',
    'loo': 'LOO',
    'repcv': 'repeated cross-validation',
    'subsample': 'subsampling',
    'bootstrap': 'OOB bootstrapping',
}

DEFAULTS = {
    'holdout': {'split': 2 / 3},
    'cv': {'iters': 10},
    'loo': {},
    'repcv': {'folds': 10, 'reps': 10},
    'subsample': {'iters': 30, 'split': 2 / 3},
    'bootstrap': {'iters': 30},
}


@dataclass(frozen=True)
class ResampleDesc:
    """
    Description of a resampling strategy.

    `iters` is None for 'loo' until the strategy is instantiated against a
    dataset (one iteration per row).
    """

    method: str
    iters: Optional[int] = None
    split: Optional[float] = None
    folds: Optional[int] = None
    reps: Optional[int] = None
    stratify: bool = False
    stratify_cols: Optional[Tuple[str, ...]] = None
    blocking: bool = False
    predict: str = 'test'
    seed: Optional[int] = None
    id: str = ''
    allow_overlap: bool = False

    @property
    def allows_overlap(self):
        return self.method == 'bootstrap' or self.allow_overlap


def make_resample_desc(method, predict='test', stratify=False, stratify_cols=None,
                       blocking=False, seed=None, **params):
    """
    Create a ResampleDesc.

    Args:
        method: 'holdout', 'cv', 'loo', 'repcv', 'subsample' or 'bootstrap'
        predict: which split to predict: 'train', 'test' or 'both'
        stratify: stratify on the target (or on `stratify_cols`)
        stratify_cols: task columns to stratify on instead of the target
        blocking: keep rows sharing a block id on the same side of each split
        seed: makes instantiation deterministic
        **params: method parameters: iters, split, folds, reps

    Raises:
        ConfigurationError on invalid parameters
    """
    errors = []
    if method not in ALLOWED_METHODS:
        raise ConfigurationError(f"Invalid resampling method '{method}'. Allowed: {ALLOWED_METHODS}")
    if predict not in ALLOWED_PREDICT:
        errors.append(f"Invalid predict '{predict}'. Allowed: {ALLOWED_PREDICT}")

    unknown = sorted(set(params) - set(METHOD_PARAMS[method]))
    if unknown:
        errors.append(f"Unknown parameters for method '{method}': {unknown}")

    values = dict(DEFAULTS[method])
    values.update({k: v for k, v in params.items() if v is not None})

    for key in ('iters', 'folds', 'reps'):
        if key in values and (not isinstance(values[key], int) or isinstance(values[key], bool)):
            errors.append(f"{key} must be an integer, got {values[key]!r}")

    if not errors:
        if method == 'cv' and values['iters'] < 2:
            errors.append(f"cv needs at least 2 folds, got {values['iters']}")
        if method == 'repcv':
            if values['folds'] < 2:
                errors.append(f"repcv needs at least 2 folds, got {values['folds']}")
            if values['reps'] < 1:
                errors.append(f"repcv needs at least 1 repetition, got {values['reps']}")
        if method in ('subsample', 'bootstrap') and values['iters'] < 1:
            errors.append(f"{method} needs at least 1 iteration, got {values['iters']}")
        if 'split' in values:
            split = values['split']
            if not isinstance(split, (int, float)) or isinstance(split, bool) or not 0 < split < 1:
                errors.append(f"split must be in (0, 1), got {split!r}")

    if stratify_cols is not None and not stratify:
        errors.append("stratify_cols given but stratify is False")
    if stratify and blocking:
        errors.append("stratify and blocking cannot be combined")
    if stratify and method == 'loo':
        errors.append("stratify is not supported for loo")

    if errors:
        raise ConfigurationError("Invalid resampling description:\n  - " + "\n  - ".join(errors))

    if method == 'holdout':
        values['iters'] = 1
    elif method == 'repcv':
        values['iters'] = values['folds'] * values['reps']

    return ResampleDesc(
        method=method,
        iters=values.get('iters'),
        split=values.get('split'),
        folds=values.get('folds'),
        reps=values.get('reps'),
        stratify=bool(stratify),
        stratify_cols=tuple(stratify_cols) if stratify_cols is not None else None,
        blocking=bool(blocking),
        predict=predict,
        seed=seed,
        id=DESC_IDS[method],
    )


def desc_from_config(config):
    """Build a ResampleDesc from the 'resampling' section of a run config."""
    section = dict(config['resampling'])
    method = section.pop('method')
    seed = section.pop('seed', config['experiment'].get('seed'))
    return make_resample_desc(method, seed=seed, **section)


# Convenience descriptions for the common strategies

def holdout_desc(split=2 / 3, **kwargs):
    return make_resample_desc('holdout', split=split, **kwargs)


def cv_desc(iters=10, **kwargs):
    return make_resample_desc('cv', iters=iters, **kwargs)


def repcv_desc(folds=10, reps=10, **kwargs):
    return make_resample_desc('repcv', folds=folds, reps=reps, **kwargs)


def loo_desc(**kwargs):
    return make_resample_desc('loo', **kwargs)


def subsample_desc(iters=30, split=2 / 3, **kwargs):
    return make_resample_desc('subsample', iters=iters, split=split, **kwargs)


def bootstrap_desc(iters=30, **kwargs):
    return make_resample_desc('bootstrap', iters=iters, **kwargs)
