import json
import logging

import pytest

from multicurve.calibration import SolverConfig
from multicurve.errors import ConfigurationError


def test_defaults():
    config = SolverConfig()
    assert config.absolute_tolerance == 1e-10
    assert config.max_iterations == 100
    assert config.max_workers == 1
    assert config.log_level == logging.DEBUG
    assert SolverConfig(verbose=True).log_level == logging.INFO


@pytest.mark.parametrize(
    "overrides",
    [
        {"absolute_tolerance": 0.0},
        {"step_tolerance": -1e-10},
        {"finite_difference_bump": 0.0},
        {"max_iterations": 0},
        {"max_workers": 0},
    ],
)
def test_invalid_values(overrides):
    with pytest.raises(ConfigurationError):
        SolverConfig(**overrides)


def test_from_dict_ignores_unknown_keys(caplog):
    with caplog.at_level(logging.WARNING, logger="multicurve.calibration.config"):
        config = SolverConfig.from_dict({"max_iterations": 25, "damping": 0.5})
    assert config.max_iterations == 25
    assert "damping" in caplog.text


def test_json_round_trip(tmp_path):
    path = tmp_path / "solver.json"
    path.write_text(json.dumps({"absolute_tolerance": 1e-12, "max_workers": 4}))
    config = SolverConfig.from_json(path)
    assert config.absolute_tolerance == 1e-12
    assert config.max_workers == 4
    assert SolverConfig.from_dict(config.to_dict()) == config


def test_json_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        SolverConfig.from_json(tmp_path / "missing.json")
    path = tmp_path / "list.json"
    path.write_text("[1, 2]")
    with pytest.raises(ConfigurationError, match="JSON object"):
        SolverConfig.from_json(path)
