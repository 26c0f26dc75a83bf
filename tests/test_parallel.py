# Tests for the ordered parallel map
# Output order must follow iteration numbers, not completion order

import time

import pytest

from mlresample.config_schema import make_run_options
from mlresample.parallel import parallel_map, reindex_results, BatchExecutionError


def _delayed_identity(i, n, delays):
    # later iterations finish first
    time.sleep(delays[i - 1])
    return {"iter": i, "n": n}


def _square(i, offset=0):
    return i * i + offset


def _explode(i):
    if i == 3:
        raise MemoryError("worker died")
    return i


@pytest.mark.parametrize("n_jobs", [1, 2, 4])
def test_results_ordered_despite_variable_delays(n_jobs):
    n = 8
    delays = [0.02 * (n - k) for k in range(n)]
    options = make_run_options(show_info=False, n_jobs=n_jobs, backend="threading")

    results = parallel_map(_delayed_identity, range(1, n + 1), options, {"n": n, "delays": delays})

    assert [r["iter"] for r in results] == list(range(1, n + 1))


def test_process_backend_matches_sequential():
    seq = parallel_map(_square, range(1, 7), make_run_options(n_jobs=1), {"offset": 1})
    par = parallel_map(_square, range(1, 7), make_run_options(n_jobs=2, backend="loky"), {"offset": 1})
    assert seq == par == [i * i + 1 for i in range(1, 7)]


def test_sequential_backend_ignores_worker_count():
    options = make_run_options(n_jobs=4, backend="sequential")
    assert parallel_map(_square, [1, 2, 3], options) == [1, 4, 9]


@pytest.mark.parametrize("n_jobs,backend", [(1, "loky"), (2, "threading")])
def test_escaping_exception_is_batch_failure(n_jobs, backend):
    options = make_run_options(n_jobs=n_jobs, backend=backend)
    with pytest.raises(BatchExecutionError, match="worker died"):
        parallel_map(_explode, range(1, 5), options)


def test_reindex_orders_by_iteration():
    pairs = [(3, "c"), (1, "a"), (2, "b")]
    assert reindex_results(pairs, [1, 2, 3]) == ["a", "b", "c"]


def test_reindex_detects_missing_iterations():
    with pytest.raises(BatchExecutionError, match=r"missing iterations \[2\]"):
        reindex_results([(1, "a"), (3, "c")], [1, 2, 3])


def test_reindex_detects_duplicates():
    with pytest.raises(BatchExecutionError, match="more than one result"):
        reindex_results([(1, "a"), (1, "b"), (2, "c")], [1, 2])
