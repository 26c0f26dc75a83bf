# I/O utilities for resample runs
# Config loading, result saving, run directory management

import os
import json
import hashlib
from datetime import datetime

import joblib
import numpy as np
import yaml


def load_config(config_path):
    """Load YAML configuration file."""
    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError(f"Config file is empty or invalid: {config_path}")

    return config


def config_hash(config):
    """Generate deterministic hash of config for run naming."""
    config_str = json.dumps(config, sort_keys=True)
    return hashlib.md5(config_str.encode()).hexdigest()[:8]


def dataset_hash(df):
    """Generate hash of dataset content for fingerprinting."""
    # Hash based on shape and sample of data
    content = f"{df.shape}_{df.columns.tolist()}_{df.head(10).to_json()}_{df.tail(10).to_json()}"
    return hashlib.md5(content.encode()).hexdigest()[:12]


def create_run_dir(config, output_dir=None):
    """Create unique run directory for resample outputs."""
    output_dir = output_dir or config['experiment'].get('output_dir', 'runs')
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    cfg_hash = config_hash(config)
    run_name = f"{config['experiment']['name']}_{timestamp}_{cfg_hash}"
    run_dir = os.path.join(output_dir, run_name)
    os.makedirs(run_dir, exist_ok=True)
    return run_dir


def _json_default(obj):
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return None if np.isnan(obj) else float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    return str(obj)


def save_results(run_dir, config, result):
    """
    Save all resample artifacts to the run directory.

    Writes config.yaml, metrics.json, per-iteration measure tables, the
    error table, merged predictions (if kept) and fitted models (if kept).
    """
    # Save config
    with open(os.path.join(run_dir, 'config.yaml'), 'w') as f:
        yaml.dump(config, f, default_flow_style=False)

    metrics = {
        'experiment_name': config['experiment']['name'],
        'seed': config['experiment'].get('seed'),
        'model_type': config['model']['type'],
        'target_column': config['data']['target_column'],
        'target_type': config['data']['target_type'],
        'resampling_method': config['resampling']['method'],
    }
    metrics.update(result.to_dict())

    with open(os.path.join(run_dir, 'metrics.json'), 'w') as f:
        json.dump(metrics, f, indent=2, default=_json_default)

    result.measures_test.to_csv(os.path.join(run_dir, 'measures_test.csv'), index=False)
    result.measures_train.to_csv(os.path.join(run_dir, 'measures_train.csv'), index=False)
    result.err_msgs.to_csv(os.path.join(run_dir, 'errors.csv'), index=False)

    if result.pred is not None:
        result.pred.data.to_csv(os.path.join(run_dir, 'predictions.csv'), index=False)

    if result.models is not None:
        model_path = os.path.join(run_dir, 'models.joblib')
        joblib.dump(result.models, model_path)
        print(f"Models saved to: {model_path}")

    print(f"Results saved to: {run_dir}")
    return run_dir


def save_data_profile(run_dir, df, task, dataset_path):
    """Save dataset fingerprint/profile for reproducibility tracking."""
    y = task.get_target()
    numeric = task.task_type == 'regr'
    profile = {
        'dataset_path': str(dataset_path) if dataset_path else None,
        'dataset_hash': dataset_hash(df),
        'total_rows': len(df),
        'total_columns': len(df.columns),
        'feature_count': len(task.feature_names),
        'features_used': task.feature_names,
        'target_column': task.target,
        'target_stats': {
            'mean': float(y.mean()) if numeric else None,
            'std': float(y.std()) if numeric else None,
            'min': float(y.min()) if numeric else None,
            'max': float(y.max()) if numeric else None,
            'unique_values': int(y.nunique()),
            'value_counts': {str(k): int(v) for k, v in y.value_counts().items()} if y.nunique() <= 10 else None
        },
        'has_weights': task.weights is not None,
        'n_blocks': int(len(np.unique(task.blocking))) if task.blocking is not None else None,
        'timestamp': datetime.now().isoformat()
    }

    with open(os.path.join(run_dir, 'data_profile.json'), 'w') as f:
        json.dump(profile, f, indent=2)

    return profile
