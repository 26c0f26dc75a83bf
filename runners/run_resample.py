# Resample experiment runner
# Loads a YAML config, runs one resampling of one learner on one dataset, saves artifacts

import argparse
import random
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np

from mlresample.config_schema import validate_config, run_options_from_config, ConfigurationError
from mlresample.io import load_config, save_results, create_run_dir, save_data_profile
from mlresample.data import load_dataset, make_task, validate_data_integrity
from mlresample.models import learner_from_config
from mlresample.measures import measures_from_config
from mlresample.resample_desc import desc_from_config
from mlresample.resample import resample


def set_seeds(seed):
    """Set global random seeds for reproducibility."""
    random.seed(seed)
    np.random.seed(seed)


def run_resample(config_path, dataset_path=None, output_dir=None, n_jobs=None):
    """
    Run a resample experiment.

    Args:
        config_path: Path to YAML config file
        dataset_path: Optional path to dataset CSV (overrides config)
        output_dir: Optional output directory (overrides config)
        n_jobs: Optional worker count (overrides config)

    Returns:
        run_dir: Path to experiment output directory
    """
    config = load_config(config_path)

    if output_dir:
        config['experiment']['output_dir'] = output_dir
    if n_jobs is not None:
        config.setdefault('parallel', {})['n_jobs'] = n_jobs

    try:
        validate_config(config)
    except ConfigurationError as e:
        print(f"\nCONFIG ERROR:\n{e}")
        raise

    seed = config['experiment'].get('seed')
    if seed is not None:
        set_seeds(seed)

    output = config.get('output', {})
    options = run_options_from_config(config)

    print("=" * 60)
    print("RESAMPLE EXPERIMENT")
    print("=" * 60)
    print(f"Experiment: {config['experiment']['name']}")
    print(f"Target: {config['data']['target_column']} ({config['data']['target_type']})")
    print(f"Model: {config['model']['type']}")
    print(f"Resampling: {config['resampling']['method']}")
    print(f"Seed: {seed}")
    print(f"Workers: {options['n_jobs']} ({options['backend']})")
    print("=" * 60)

    df, actual_path = load_dataset(config, dataset_path)
    task = make_task(df, config)
    validate_data_integrity(task)

    print(f"\nDataset shape: {task.data.shape}")
    print(f"Features: {len(task.feature_names)}")
    if task.task_type == 'classif':
        print(f"Class distribution: {task.get_target().value_counts().to_dict()}")

    learner = learner_from_config(config)
    desc = desc_from_config(config)
    measures = measures_from_config(config)

    result = resample(
        learner,
        task,
        desc,
        measures=measures,
        models=output.get('keep_models', False),
        keep_pred=output.get('keep_predictions', True),
        options=options,
    )

    print("\n" + "=" * 60)
    print("RESAMPLE RESULTS")
    print("=" * 60)
    for name, value in result.aggr.items():
        print(f"{name:30s} {value:.4f}")
    failed = result.get_failed_iterations()
    if failed:
        print(f"Failed iterations: {failed}")
    print(f"Runtime: {result.runtime:.2f}s")

    run_dir = create_run_dir(config)
    save_data_profile(run_dir, df, task, actual_path)
    save_results(run_dir, config, result)

    print("\n" + "=" * 60)
    print("Resample experiment complete!")
    print("=" * 60)

    return run_dir


def main():
    parser = argparse.ArgumentParser(
        description='Run one resampling experiment from a YAML config'
    )
    parser.add_argument('--config', '-c', type=str, default='configs/cv_classification.yaml',
                        help='Path to config YAML file')
    parser.add_argument('--dataset', '-d', type=str, default=None,
                        help='Path to dataset CSV (overrides config)')
    parser.add_argument('--output-dir', '-o', type=str, default=None,
                        help='Output directory (overrides config)')
    parser.add_argument('--n-jobs', '-j', type=int, default=None,
                        help='Number of parallel workers (overrides config)')
    args = parser.parse_args()

    run_resample(args.config, args.dataset, args.output_dir, args.n_jobs)


if __name__ == "__main__":
    main()
