# Resampling engine package
# Train, predict and score learners over resampling strategies

from .config_schema import ConfigurationError, validate_config, make_run_options
from .data import Task, make_task, load_dataset
from .models import (
    Learner, make_learner, build_model, train, predict, is_failure_model, get_failure_model_msg,
    SUPPORTED_MODELS
)
from .measures import Measure, MEASURES, get_measure, set_aggregation
from .aggregations import Aggregation, AGGREGATIONS, get_aggregation
from .resample_desc import ResampleDesc, make_resample_desc
from .resample_instance import (
    ResampleInstance, make_resample_instance, make_fixed_resample_instance, instantiate
)
from .parallel import BatchExecutionError, parallel_map
from .result import ResampleResult, IterationRecord, MeasureValue
from .resample import (
    resample, do_resample_iteration, merge_resample_result,
    holdout, crossval, repcv, loo, subsample, bootstrap_oob, bootstrap_b632
)

__all__ = [
    'ConfigurationError',
    'validate_config',
    'make_run_options',
    'Task',
    'make_task',
    'load_dataset',
    'Learner',
    'make_learner',
    'build_model',
    'train',
    'predict',
    'is_failure_model',
    'get_failure_model_msg',
    'SUPPORTED_MODELS',
    'Measure',
    'MEASURES',
    'get_measure',
    'set_aggregation',
    'Aggregation',
    'AGGREGATIONS',
    'get_aggregation',
    'ResampleDesc',
    'make_resample_desc',
    'ResampleInstance',
    'make_resample_instance',
    'make_fixed_resample_instance',
    'instantiate',
    'BatchExecutionError',
    'parallel_map',
    'ResampleResult',
    'IterationRecord',
    'MeasureValue',
    'resample',
    'do_resample_iteration',
    'merge_resample_result',
    'holdout',
    'crossval',
    'repcv',
    'loo',
    'subsample',
    'bootstrap_oob',
    'bootstrap_b632',
]
