# Experiment Runners Package
# Command-line entry points for resample experiments

import os
# Set LOKY_MAX_CPU_COUNT early to silence joblib/loky warnings on Windows
os.environ.setdefault('LOKY_MAX_CPU_COUNT', str(os.cpu_count() or 1))

from . import run_resample

__all__ = [
    'run_resample',
]
