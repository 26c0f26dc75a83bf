# Resampling instances
# Materialize a ResampleDesc into concrete train/test index sets

from dataclasses import replace

import numpy as np
import pandas as pd
from sklearn.model_selection import StratifiedKFold, StratifiedShuffleSplit

from .config_schema import ConfigurationError, ALLOWED_PREDICT
from .resample_desc import ResampleDesc


class ResampleInstance:
    """
    Train/test row positions for every iteration of a resampling strategy.

    Attributes:
        desc: the ResampleDesc (with `iters` filled in)
        size: number of rows of the dataset the instance was built for
        train_inds, test_inds: tuples of sorted, read-only int arrays
        group: per-iteration group labels (repetition number for repcv), or None
        blocking: row -> block id vector, or None
    """

    def __init__(self, desc, size, train_inds, test_inds, group=None, blocking=None):
        self.desc = desc
        self.size = size
        self.train_inds = tuple(_freeze(i) for i in train_inds)
        self.test_inds = tuple(_freeze(i) for i in test_inds)
        self.group = None if group is None else _freeze(np.asarray(group))
        self.blocking = None if blocking is None else _freeze(np.asarray(blocking))
        _check_instance(self)

    @property
    def iters(self):
        return len(self.train_inds)

    def __repr__(self):
        return f"ResampleInstance({self.desc.id}, iters={self.iters}, size={self.size})"


def _freeze(arr):
    arr = np.array(arr, copy=True)
    arr.flags.writeable = False
    return arr


def _check_instance(rin):
    errors = []
    if len(rin.train_inds) != len(rin.test_inds):
        errors.append(f"{len(rin.train_inds)} train sets but {len(rin.test_inds)} test sets")
    if rin.desc.iters is not None and len(rin.train_inds) != rin.desc.iters:
        errors.append(f"Description has {rin.desc.iters} iterations, instance has {len(rin.train_inds)}")
    for i, (train, test) in enumerate(zip(rin.train_inds, rin.test_inds), start=1):
        for name, inds in (('train', train), ('test', test)):
            if inds.size and (inds.min() < 0 or inds.max() >= rin.size):
                errors.append(f"Iteration {i}: {name} index out of range [0, {rin.size})")
        if not rin.desc.allows_overlap and np.intersect1d(train, test).size:
            errors.append(f"Iteration {i}: train and test sets overlap")
    if rin.group is not None and rin.group.shape != (len(rin.train_inds),):
        errors.append("group must have one label per iteration")
    if rin.blocking is not None and rin.blocking.shape != (rin.size,):
        errors.append(f"blocking vector has length {rin.blocking.size}, expected {rin.size}")
    if errors:
        raise ConfigurationError("Invalid resample instance:\n  - " + "\n  - ".join(errors))


def make_resample_instance(desc, task=None, size=None, blocking=None, stratify_values=None):
    """
    Instantiate a resampling description for a dataset.

    Args:
        desc: ResampleDesc
        task: Task providing size, blocking and stratification values
        size: dataset size when no task is given
        blocking: row -> block id vector (overrides task.blocking)
        stratify_values: row -> stratum vector (overrides the task target)

    Returns:
        ResampleInstance

    Randomness: `desc.seed` makes the result deterministic; without it the
    split is drawn from numpy's global RNG (fix it with np.random.seed).
    """
    if task is not None:
        if size is not None and size != task.size:
            raise ConfigurationError(f"size={size} does not match task size {task.size}")
        size = task.size
    if size is None or size < 1:
        raise ConfigurationError("A task or a positive dataset size is required")

    if desc.blocking:
        if blocking is None and task is not None:
            blocking = task.blocking
        if blocking is None:
            raise ConfigurationError("Blocked resampling requested but no blocking vector available")
        blocking = np.asarray(blocking)
        if blocking.shape != (size,):
            raise ConfigurationError(f"Blocking vector has length {blocking.size}, dataset has {size} rows")
    else:
        blocking = None

    strata = None
    if desc.stratify:
        strata = _stratification_values(desc, task, stratify_values, size)

    if desc.seed is not None:
        rng = np.random.default_rng(desc.seed)
    else:
        rng = np.random.default_rng(np.random.randint(0, 2 ** 31 - 1))

    group = None
    method = desc.method
    if method == 'cv':
        train_inds, test_inds = _cv(size, desc.iters, rng, strata, blocking)
    elif method == 'repcv':
        train_inds, test_inds = [], []
        for _ in range(desc.reps):
            tr, te = _cv(size, desc.folds, rng, strata, blocking)
            train_inds.extend(tr)
            test_inds.extend(te)
        group = np.repeat(np.arange(1, desc.reps + 1), desc.folds)
    elif method == 'loo':
        train_inds, test_inds = _loo(size, blocking)
        desc = replace(desc, iters=len(test_inds))
    elif method in ('holdout', 'subsample'):
        train_inds, test_inds = _subsample(size, desc.iters, desc.split, rng, strata, blocking)
    elif method == 'bootstrap':
        train_inds, test_inds = _bootstrap(size, desc.iters, rng, strata, blocking)
    else:
        raise ConfigurationError(f"Cannot instantiate resampling method '{method}'")

    return ResampleInstance(desc, size, train_inds, test_inds, group=group, blocking=blocking)


def instantiate(desc, size, blocking=None, stratify_values=None):
    """Instantiate a description for a dataset of `size` rows."""
    return make_resample_instance(desc, size=size, blocking=blocking, stratify_values=stratify_values)


def make_fixed_resample_instance(train_inds, test_inds, size, predict='test', group=None,
                                 blocking=None, allow_overlap=False):
    """Wrap precomputed train/test index lists into a ResampleInstance."""
    if len(train_inds) != len(test_inds):
        raise ConfigurationError("train_inds and test_inds must have the same number of iterations")
    if predict not in ALLOWED_PREDICT:
        raise ConfigurationError(f"Invalid predict '{predict}'. Allowed: {ALLOWED_PREDICT}")
    desc = ResampleDesc(
        method='fixed',
        iters=len(train_inds),
        predict=predict,
        id='fixed',
        allow_overlap=allow_overlap,
    )
    return ResampleInstance(
        desc,
        size,
        [np.sort(np.asarray(i, dtype=int)) for i in train_inds],
        [np.sort(np.asarray(i, dtype=int)) for i in test_inds],
        group=group,
        blocking=blocking,
    )


def _stratification_values(desc, task, stratify_values, size):
    if stratify_values is not None:
        values = np.asarray(stratify_values)
    elif task is None:
        raise ConfigurationError("Stratification requested but neither task nor stratify_values given")
    elif desc.stratify_cols:
        missing = [c for c in desc.stratify_cols if c not in task.data.columns]
        if missing:
            raise ConfigurationError(f"Stratification columns not found in task: {missing}")
        # one stratum per combination of column values
        values = pd.MultiIndex.from_frame(task.data[list(desc.stratify_cols)].astype(str)).to_flat_index()
        values = np.asarray([str(v) for v in values])
    elif task.task_type == 'classif':
        values = task.get_target().to_numpy()
    else:
        raise ConfigurationError("Cannot stratify on a regression target; use stratify_cols")

    if values.shape != (size,):
        raise ConfigurationError(f"Stratification vector has length {values.size}, dataset has {size} rows")
    codes, _ = pd.factorize(values)
    return codes


def _complement(size, test):
    mask = np.ones(size, dtype=bool)
    mask[test] = False
    return np.flatnonzero(mask)


def _cv(size, k, rng, strata, blocking):
    if blocking is not None:
        blocks = pd.unique(blocking)
        if k > len(blocks):
            raise ConfigurationError(f"Cannot build {k} folds from {len(blocks)} blocks")
        fold_blocks = np.array_split(rng.permutation(blocks), k)
        test_inds = [np.flatnonzero(np.isin(blocking, fb)) for fb in fold_blocks]
    elif strata is not None:
        counts = np.bincount(strata)
        if counts.min() < k:
            raise ConfigurationError(
                f"Stratum with {counts.min()} observations cannot be spread over {k} folds"
            )
        skf = StratifiedKFold(n_splits=k, shuffle=True, random_state=int(rng.integers(2 ** 31 - 1)))
        test_inds = [np.sort(te) for _, te in skf.split(np.zeros(size), strata)]
    else:
        if k > size:
            raise ConfigurationError(f"Cannot build {k} folds from {size} observations")
        test_inds = [np.sort(f) for f in np.array_split(rng.permutation(size), k)]
    return [_complement(size, te) for te in test_inds], test_inds


def _loo(size, blocking):
    if blocking is not None:
        # leave one block out
        blocks = pd.unique(blocking)
        if len(blocks) < 2:
            raise ConfigurationError("Leave-one-block-out needs at least 2 blocks")
        test_inds = [np.flatnonzero(blocking == b) for b in blocks]
    else:
        if size < 2:
            raise ConfigurationError("LOO needs at least 2 observations")
        test_inds = [np.array([i]) for i in range(size)]
    return [_complement(size, te) for te in test_inds], test_inds


def _subsample(size, iters, split, rng, strata, blocking):
    train_inds, test_inds = [], []
    if blocking is not None:
        blocks = pd.unique(blocking)
        n_train = int(round(split * len(blocks)))
        if not 0 < n_train < len(blocks):
            raise ConfigurationError(f"split={split} leaves an empty train or test set for {len(blocks)} blocks")
        for _ in range(iters):
            train_blocks = rng.permutation(blocks)[:n_train]
            train = np.flatnonzero(np.isin(blocking, train_blocks))
            train_inds.append(train)
            test_inds.append(_complement(size, train))
        return train_inds, test_inds

    n_train = int(round(split * size))
    if not 0 < n_train < size:
        raise ConfigurationError(f"split={split} leaves an empty train or test set for {size} observations")

    if strata is not None:
        counts = np.bincount(strata)
        if counts.min() < 2:
            raise ConfigurationError("Every stratum needs at least 2 observations for a stratified split")
        # every stratum must be able to appear on both sides
        if min(n_train, size - n_train) < counts.size:
            raise ConfigurationError(
                f"split={split} gives {n_train} train and {size - n_train} test observations, "
                f"fewer than the {counts.size} strata"
            )
        sss = StratifiedShuffleSplit(n_splits=iters, train_size=n_train, test_size=size - n_train,
                                     random_state=int(rng.integers(2 ** 31 - 1)))
        for tr, te in sss.split(np.zeros(size), strata):
            train_inds.append(np.sort(tr))
            test_inds.append(np.sort(te))
        return train_inds, test_inds

    for _ in range(iters):
        train = np.sort(rng.permutation(size)[:n_train])
        train_inds.append(train)
        test_inds.append(_complement(size, train))
    return train_inds, test_inds


def _bootstrap(size, iters, rng, strata, blocking):
    train_inds, test_inds = [], []
    for _ in range(iters):
        if blocking is not None:
            blocks = pd.unique(blocking)
            drawn = rng.choice(blocks, size=len(blocks), replace=True)
            train = np.concatenate([np.flatnonzero(blocking == b) for b in drawn])
        elif strata is not None:
            # resample each stratum to its own size
            train = np.concatenate([
                rng.choice(np.flatnonzero(strata == s), size=c, replace=True)
                for s, c in enumerate(np.bincount(strata))
            ])
        else:
            train = rng.integers(0, size, size=size)
        train = np.sort(train)
        train_inds.append(train)
        test_inds.append(_complement(size, np.unique(train)))
    return train_inds, test_inds
