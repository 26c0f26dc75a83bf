import pytest
import copy
from mlresample.config_schema import (
    validate_config,
    make_run_options,
    run_options_from_config,
    ConfigurationError,
)
from mlresample.io import config_hash, load_config
from mlresample.measures import measures_from_config
from mlresample.resample_desc import desc_from_config


def test_valid_configs_pass(base_classification_config, base_regression_config):
    assert validate_config(base_classification_config)
    assert validate_config(base_regression_config)


def test_config_validates_required_keys():
    incomplete_config = {
        "experiment": {"name": "test"}
        # Missing data, model, resampling
    }
    with pytest.raises(ConfigurationError, match="Missing required"):
        validate_config(incomplete_config)


def test_config_rejects_invalid_target_type(base_regression_config):
    cfg = copy.deepcopy(base_regression_config)
    cfg["data"]["target_type"] = "invalid_type"
    with pytest.raises(ConfigurationError, match="Invalid target_type"):
        validate_config(cfg)


def test_config_rejects_invalid_method(base_regression_config):
    cfg = copy.deepcopy(base_regression_config)
    cfg["resampling"] = {"method": "jackknife"}
    with pytest.raises(ConfigurationError, match="Invalid resampling method"):
        validate_config(cfg)


def test_config_rejects_parameters_of_other_methods(base_regression_config):
    cfg = copy.deepcopy(base_regression_config)
    cfg["resampling"] = {"method": "holdout", "iters": 5}
    with pytest.raises(ConfigurationError, match="Unknown keys"):
        validate_config(cfg)


@pytest.mark.parametrize("split", [0, 1, 1.5, -0.2, "half"])
def test_config_rejects_bad_split(base_regression_config, split):
    cfg = copy.deepcopy(base_regression_config)
    cfg["resampling"] = {"method": "holdout", "split": split}
    with pytest.raises(ConfigurationError, match="split must be in"):
        validate_config(cfg)


def test_config_rejects_single_fold(base_regression_config):
    cfg = copy.deepcopy(base_regression_config)
    cfg["resampling"] = {"method": "cv", "iters": 1}
    with pytest.raises(ConfigurationError, match="must be >= 2"):
        validate_config(cfg)


def test_config_rejects_prob_for_regression(base_regression_config):
    cfg = copy.deepcopy(base_regression_config)
    cfg["model"]["predict_type"] = "prob"
    with pytest.raises(ConfigurationError, match="only available for classification"):
        validate_config(cfg)


def test_config_rejects_blocking_without_column(base_regression_config):
    cfg = copy.deepcopy(base_regression_config)
    cfg["data"].pop("blocking_column")
    cfg["resampling"] = {"method": "cv", "iters": 4, "blocking": True}
    with pytest.raises(ConfigurationError, match="requires data.blocking_column"):
        validate_config(cfg)


def test_config_collects_all_errors(base_regression_config):
    cfg = copy.deepcopy(base_regression_config)
    cfg["parallel"] = {"n_jobs": 0, "backend": "spark"}
    cfg["output"]["on_learner_error"] = "explode"
    with pytest.raises(ConfigurationError) as excinfo:
        validate_config(cfg)
    msg = str(excinfo.value)
    assert "n_jobs" in msg
    assert "backend" in msg
    assert "on_learner_error" in msg


def test_config_rejects_bad_measure_entries(base_regression_config):
    cfg = copy.deepcopy(base_regression_config)
    cfg["measures"] = ["mae", 3]
    with pytest.raises(ConfigurationError, match="invalid entry"):
        validate_config(cfg)


def test_run_options_defaults_and_validation():
    opts = make_run_options()
    assert opts == {"show_info": True, "on_learner_error": "warn", "n_jobs": 1, "backend": "loky"}

    with pytest.raises(ConfigurationError, match="Invalid backend"):
        make_run_options(backend="dask")
    with pytest.raises(ConfigurationError, match="n_jobs"):
        make_run_options(n_jobs=0)


def test_run_options_from_config(base_classification_config):
    opts = run_options_from_config(base_classification_config)
    assert opts["show_info"] is False
    assert opts["on_learner_error"] == "quiet"
    assert opts["n_jobs"] == 1


def test_desc_and_measures_from_config(base_regression_config):
    desc = desc_from_config(base_regression_config)
    assert desc.method == "repcv"
    assert desc.iters == 8
    assert desc.predict == "both"
    # experiment seed is used when the resampling section has none
    assert desc.seed == base_regression_config["experiment"]["seed"]

    measures = measures_from_config(base_regression_config)
    assert [m.aggr_name for m in measures] == ["mae.test.mean", "rmse.testgroup.mean"]


def test_unknown_measure_is_configuration_error(base_regression_config):
    cfg = copy.deepcopy(base_regression_config)
    cfg["measures"] = ["not_a_measure"]
    with pytest.raises(ConfigurationError, match="Unknown measure"):
        measures_from_config(cfg)


def test_config_hash_deterministic(base_regression_config):
    h1 = config_hash(base_regression_config)
    h2 = config_hash(base_regression_config)
    assert h1 == h2

    # Same content but different key insertion order should still match
    cfg2 = {k: base_regression_config[k] for k in reversed(list(base_regression_config))}
    assert config_hash(cfg2) == h1


def test_load_config_roundtrip(base_classification_config, write_yaml):
    path = write_yaml(base_classification_config, "cfg.yaml")
    loaded = load_config(path)
    assert loaded == base_classification_config


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))
