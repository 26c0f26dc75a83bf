# Result containers
# Per-iteration records and the merged ResampleResult

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np
import pandas as pd

# Measure cell states
STATUS_OK = 'ok'
STATUS_NOT_APPLICABLE = 'not_applicable'
STATUS_FAILED = 'failed'

# Messages of cells foreclosed by a learner failure
TRAINING_FAILED = 'training failed'
PREDICTION_FAILED = 'prediction failed'


@dataclass(frozen=True)
class MeasureValue:
    """One measure cell: a value plus whether it was computed, skipped or failed."""

    value: float = np.nan
    status: str = STATUS_NOT_APPLICABLE
    message: Optional[str] = None

    @classmethod
    def ok(cls, value):
        return cls(float(value), STATUS_OK)

    @classmethod
    def failed(cls, message=None):
        return cls(np.nan, STATUS_FAILED, message)


NOT_APPLICABLE = MeasureValue()


@dataclass(frozen=True)
class IterationRecord:
    """Everything one resampling iteration hands back to the merger."""

    iter: int
    measures_test: Tuple[MeasureValue, ...]
    measures_train: Tuple[MeasureValue, ...]
    err_msgs: Tuple[Optional[str], Optional[str]] = (None, None)
    model: Any = None
    pred_test: Any = None
    pred_train: Any = None
    extract: Any = None
    runtime: float = np.nan

    @property
    def failed(self):
        return any(msg is not None for msg in self.err_msgs)


@dataclass(frozen=True)
class ResampleResult:
    """
    Outcome of one resample run.

    Every table has exactly one row per iteration; failures show up as NaN
    cells with status 'failed' and as messages in `err_msgs`.
    """

    learner_id: str
    task_id: str
    resampling_id: str
    measures_test: pd.DataFrame
    measures_train: pd.DataFrame
    measures_test_status: pd.DataFrame
    measures_train_status: pd.DataFrame
    aggr: dict
    err_msgs: pd.DataFrame
    runtime: float
    pred: Any = None
    models: Optional[List[Any]] = None
    extract: Optional[List[Any]] = None
    measure_errors: List[dict] = field(default_factory=list)

    @property
    def iters(self):
        return len(self.measures_test)

    def has_errors(self):
        return bool(self.err_msgs[['train', 'predict']].notna().any().any())

    def get_failed_iterations(self):
        """Iteration numbers whose training or prediction failed."""
        mask = self.err_msgs[['train', 'predict']].notna().any(axis=1)
        return self.err_msgs.loc[mask, 'iter'].tolist()

    def to_dict(self):
        """JSON-ready summary (predictions and models excluded)."""
        return {
            'learner_id': self.learner_id,
            'task_id': self.task_id,
            'resampling_id': self.resampling_id,
            'iters': self.iters,
            'aggr': {k: _json_float(v) for k, v in self.aggr.items()},
            'measures_test': _records(self.measures_test),
            'measures_train': _records(self.measures_train),
            'measures_test_status': self.measures_test_status.to_dict(orient='records'),
            'measures_train_status': self.measures_train_status.to_dict(orient='records'),
            'err_msgs': self.err_msgs.to_dict(orient='records'),
            'measure_errors': self.measure_errors,
            'extract': self.extract,
            'runtime': self.runtime,
        }

    def __str__(self):
        return (
            f"Resample Result\n"
            f"Task: {self.task_id}\n"
            f"Learner: {self.learner_id}\n"
            f"Resampling: {self.resampling_id} ({self.iters} iterations)\n"
            f"Aggr perf: {perfs_to_string(self.aggr)}\n"
            f"Runtime: {self.runtime:.3f}s"
        )


def _json_float(value):
    value = float(value)
    return None if np.isnan(value) else value


def _records(df):
    return [
        {k: (int(v) if k == 'iter' else _json_float(v)) for k, v in row.items()}
        for row in df.to_dict(orient='records')
    ]


def perfs_to_string(perfs, sep=','):
    return sep.join(f"{k}={v:.4g}" for k, v in perfs.items())
