# Ordered parallel map over resampling iterations
# joblib workers; results are reindexed by iteration number

from joblib import Parallel, delayed


class BatchExecutionError(Exception):
    """The execution backend failed; no partial results are returned."""
    pass


def _call_indexed(fun, i, more_args):
    return i, fun(i=i, **more_args)


def parallel_map(fun, iterations, options, more_args=None):
    """
    Apply `fun(i=i, **more_args)` to every iteration number.

    Args:
        fun: module-level function (must be picklable for process backends)
        iterations: iteration numbers, e.g. range(1, n + 1)
        options: run options dict with 'n_jobs' and 'backend'
        more_args: constant keyword arguments passed to every call

    Returns:
        list of results ordered by iteration number, regardless of the
        order in which workers finished

    Raises:
        BatchExecutionError if any call or the backend itself fails
    """
    iterations = list(iterations)
    more_args = more_args or {}
    n_jobs = options.get('n_jobs', 1)
    backend = options.get('backend', 'loky')

    try:
        if n_jobs == 1 or backend == 'sequential' or len(iterations) <= 1:
            pairs = [_call_indexed(fun, i, more_args) for i in iterations]
        else:
            pairs = Parallel(n_jobs=n_jobs, backend=backend, verbose=0)(
                delayed(_call_indexed)(fun, i, more_args) for i in iterations
            )
    except Exception as e:
        raise BatchExecutionError(f"Resampling batch failed: {type(e).__name__}: {e}") from e

    return reindex_results(pairs, iterations)


def reindex_results(pairs, iterations):
    """Order (iteration, result) pairs by iteration and check completeness."""
    by_iter = {}
    for i, result in pairs:
        if i in by_iter:
            raise BatchExecutionError(f"Iteration {i} returned more than one result")
        by_iter[i] = result

    missing = [i for i in iterations if i not in by_iter]
    unexpected = sorted(set(by_iter) - set(iterations))
    if missing or unexpected:
        raise BatchExecutionError(
            f"Incomplete batch: missing iterations {missing}, unexpected iterations {unexpected}"
        )
    return [by_iter[i] for i in sorted(iterations)]
