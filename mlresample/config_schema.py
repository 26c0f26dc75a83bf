# Config schema validation
# Validates run config structure, types and resampling parameters

REQUIRED_KEYS = {
    'experiment': ['name'],
    'data': ['target_column', 'target_type'],
    'model': ['type'],
    'resampling': ['method'],
}

ALLOWED_TARGET_TYPES = ['regression', 'classification']

ALLOWED_METHODS = ['holdout', 'cv', 'loo', 'repcv', 'subsample', 'bootstrap']

ALLOWED_PREDICT = ['train', 'test', 'both']

ALLOWED_PREDICT_TYPES = ['response', 'prob']

ALLOWED_BACKENDS = ['loky', 'threading', 'multiprocessing', 'sequential']

ALLOWED_ON_LEARNER_ERROR = ['warn', 'quiet']

# Method-specific parameters; anything else under 'resampling' is rejected
METHOD_PARAMS = {
    'holdout': ['split', 'stratify', 'blocking'],
    'cv': ['iters', 'stratify', 'blocking'],
    'loo': [],
    'repcv': ['folds', 'reps', 'stratify', 'blocking'],
    'subsample': ['iters', 'split', 'stratify', 'blocking'],
    'bootstrap': ['iters', 'stratify', 'blocking'],
}

COMMON_RESAMPLING_KEYS = ['method', 'predict', 'seed', 'stratify_cols']


class ConfigurationError(Exception):
    """Raised when a run is misconfigured. Nothing has been executed yet."""
    pass


def validate_config(config):
    """
    Validate a resample run configuration.

    Args:
        config: dict - Configuration dictionary (as loaded from YAML)

    Raises:
        ConfigurationError listing every problem found
    """
    errors = []

    if not isinstance(config, dict):
        raise ConfigurationError("Config validation failed:\n  - config must be a mapping")

    # Check required top-level keys
    for section, required_keys in REQUIRED_KEYS.items():
        if section not in config:
            errors.append(f"Missing required section: '{section}'")
            continue
        for key in required_keys:
            if key not in config[section]:
                errors.append(f"Missing required key: '{section}.{key}'")

    if errors:
        raise ConfigurationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    # Experiment
    seed = config['experiment'].get('seed')
    if seed is not None and not isinstance(seed, int):
        errors.append("experiment.seed must be an integer")

    # Data
    target_type = config['data'].get('target_type')
    if target_type not in ALLOWED_TARGET_TYPES:
        errors.append(f"Invalid target_type '{target_type}'. Allowed: {ALLOWED_TARGET_TYPES}")

    # Model
    predict_type = config['model'].get('predict_type', 'response')
    if predict_type not in ALLOWED_PREDICT_TYPES:
        errors.append(f"Invalid model.predict_type '{predict_type}'. Allowed: {ALLOWED_PREDICT_TYPES}")
    if predict_type == 'prob' and target_type == 'regression':
        errors.append("model.predict_type 'prob' is only available for classification")

    errors.extend(_validate_resampling(config['resampling']))
    errors.extend(_validate_measures(config.get('measures')))
    errors.extend(_validate_parallel(config.get('parallel', {})))
    errors.extend(_validate_output(config.get('output', {})))

    if config['resampling'].get('blocking') and not config['data'].get('blocking_column'):
        errors.append("resampling.blocking requires data.blocking_column")

    if errors:
        raise ConfigurationError("Config validation failed:\n  - " + "\n  - ".join(errors))

    return True


def _validate_resampling(section):
    """Validate the 'resampling' section."""
    errors = []
    method = section.get('method')
    if method not in ALLOWED_METHODS:
        return [f"Invalid resampling method '{method}'. Allowed: {ALLOWED_METHODS}"]

    allowed = set(METHOD_PARAMS[method]) | set(COMMON_RESAMPLING_KEYS)
    unknown = sorted(k for k in section if k not in allowed)
    if unknown:
        errors.append(f"Unknown keys for resampling method '{method}': {unknown}")

    for key in ('iters', 'folds', 'reps'):
        if key in section and not _is_int(section[key]):
            errors.append(f"resampling.{key} must be an integer")

    if method in ('cv', 'repcv'):
        n = section.get('folds' if method == 'repcv' else 'iters', 10)
        if _is_int(n) and n < 2:
            errors.append(f"resampling.{'folds' if method == 'repcv' else 'iters'} must be >= 2")
    if method in ('subsample', 'bootstrap'):
        n = section.get('iters', 30)
        if _is_int(n) and n < 1:
            errors.append("resampling.iters must be >= 1")
    if method == 'repcv':
        reps = section.get('reps', 10)
        if _is_int(reps) and reps < 1:
            errors.append("resampling.reps must be >= 1")

    if 'split' in section:
        split = section['split']
        if not isinstance(split, (int, float)) or isinstance(split, bool) or not 0 < split < 1:
            errors.append(f"resampling.split must be in (0, 1), got {split!r}")

    predict = section.get('predict', 'test')
    if predict not in ALLOWED_PREDICT:
        errors.append(f"Invalid resampling.predict '{predict}'. Allowed: {ALLOWED_PREDICT}")

    if section.get('stratify') and section.get('blocking'):
        errors.append("resampling.stratify and resampling.blocking cannot be combined")

    seed = section.get('seed')
    if seed is not None and not _is_int(seed):
        errors.append("resampling.seed must be an integer")

    return errors


def _validate_measures(measures):
    """Validate the optional 'measures' list."""
    if measures is None:
        return []
    if not isinstance(measures, list) or not measures:
        return ["measures must be a non-empty list"]

    errors = []
    for entry in measures:
        if isinstance(entry, str):
            continue
        if isinstance(entry, dict) and isinstance(entry.get('id'), str):
            aggr = entry.get('aggregation')
            if aggr is not None and not isinstance(aggr, str):
                errors.append(f"measures: aggregation for '{entry['id']}' must be a string")
            continue
        errors.append(f"measures: invalid entry {entry!r} (expected id or {{id, aggregation}})")
    return errors


def _validate_parallel(section):
    errors = []
    n_jobs = section.get('n_jobs', 1)
    if not _is_int(n_jobs) or n_jobs == 0:
        errors.append("parallel.n_jobs must be a non-zero integer")
    backend = section.get('backend', 'loky')
    if backend not in ALLOWED_BACKENDS:
        errors.append(f"Invalid parallel.backend '{backend}'. Allowed: {ALLOWED_BACKENDS}")
    return errors


def _validate_output(section):
    errors = []
    for key in ('keep_models', 'keep_predictions', 'show_info'):
        if key in section and not isinstance(section[key], bool):
            errors.append(f"output.{key} must be a boolean")
    on_error = section.get('on_learner_error', 'warn')
    if on_error not in ALLOWED_ON_LEARNER_ERROR:
        errors.append(f"Invalid output.on_learner_error '{on_error}'. Allowed: {ALLOWED_ON_LEARNER_ERROR}")
    return errors


def _is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)


def make_run_options(show_info=True, on_learner_error='warn', n_jobs=1, backend='loky'):
    """
    Build the options dict threaded through a resample run.

    Options are passed explicitly to every iteration and to the merger;
    there is no process-wide option state.
    """
    errors = []
    if not isinstance(show_info, bool):
        errors.append("show_info must be a boolean")
    if on_learner_error not in ALLOWED_ON_LEARNER_ERROR:
        errors.append(f"Invalid on_learner_error '{on_learner_error}'. Allowed: {ALLOWED_ON_LEARNER_ERROR}")
    if not _is_int(n_jobs) or n_jobs == 0:
        errors.append("n_jobs must be a non-zero integer")
    if backend not in ALLOWED_BACKENDS:
        errors.append(f"Invalid backend '{backend}'. Allowed: {ALLOWED_BACKENDS}")
    if errors:
        raise ConfigurationError("Invalid run options:\n  - " + "\n  - ".join(errors))

    return {
        'show_info': show_info,
        'on_learner_error': on_learner_error,
        'n_jobs': n_jobs,
        'backend': backend,
    }


def run_options_from_config(config):
    """Extract run options from a validated config."""
    output = config.get('output', {})
    parallel = config.get('parallel', {})
    return make_run_options(
        show_info=output.get('show_info', True),
        on_learner_error=output.get('on_learner_error', 'warn'),
        n_jobs=parallel.get('n_jobs', 1),
        backend=parallel.get('backend', 'loky'),
    )
