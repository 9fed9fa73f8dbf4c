"""Tests for configuration system."""

import pytest
from pathlib import Path
import yaml
from pydantic import ValidationError

from config.config_loader import deep_merge, load_run_config, load_yaml_config
from config.schema import (
    OptimizationOptions,
    RunConfig,
    SimulationConfig,
    SimulationPolicy,
    default_starting_capital,
    load_defaults,
    load_rules,
    validate_run_config,
)


def test_load_defaults():
    """Test loading default configuration."""
    defaults = load_defaults()
    assert isinstance(defaults, dict)
    assert "backtest" in defaults
    assert "monte_carlo" in defaults
    assert default_starting_capital() == 1_000_000.0


def test_simulation_config_camel_case_keys():
    config = SimulationConfig(**{
        "policy": "smaCrossover",
        "trailingStopLoss": True,
        "stopLossFigure": 5,
        "profitFactor": 0.1,
    })
    assert config.policy == SimulationPolicy.SMA_CROSSOVER
    assert config.trailing_stop_loss is True
    assert config.stop_loss_figure == 5.0
    assert config.profit_factor == 0.1


def test_simulation_config_rejects_invalid_values():
    with pytest.raises(ValidationError):
        SimulationConfig(stop_loss_figure=-1.0)
    with pytest.raises(ValidationError):
        SimulationConfig(profit_factor=0.0)
    with pytest.raises(ValidationError):
        SimulationConfig(policy="notAPolicy")


def test_optimization_options_validation():
    assert OptimizationOptions().search_direction == "max"
    with pytest.raises(ValidationError):
        OptimizationOptions(search_direction="up")
    with pytest.raises(ValidationError):
        OptimizationOptions(optimization_type="annealing")
    with pytest.raises(ValidationError):
        OptimizationOptions(num_starting_points=-1)


def test_custom_strategy_requires_entry_rules():
    with pytest.raises(ValidationError):
        validate_run_config({"simulation": {"policy": "CUSTOM_STRATEGY"}})

    config = validate_run_config({
        "simulation": {"policy": "CUSTOM_STRATEGY"},
        "entry_rules": [{"indicatorOneType": "close", "indicatorOneName": "close", "compare": "largerThan",
                         "indicatorTwoType": "constant", "indicatorTwoName": "level", "indicatorTwoFigureOne": 10}],
    })
    assert isinstance(config, RunConfig)
    assert config.entry_rules[0].indicator_two_figure_one == 10.0


def test_deep_merge():
    base = {"a": 1, "nested": {"x": 1, "y": 2}}
    override = {"b": 2, "nested": {"y": 3}}
    merged = deep_merge(base, override)
    assert merged == {"a": 1, "b": 2, "nested": {"x": 1, "y": 3}}
    assert base["nested"]["y"] == 2


def test_load_run_config_merges_defaults(tmp_path):
    run_file = tmp_path / "run.yml"
    with open(run_file, "w") as f:
        yaml.dump({
            "ticker": "SPY",
            "simulation": {"policy": "sma", "stop_loss_figure": 7.5},
            "monte_carlo": {"random_seed": 42},
            "optimization": {
                "parameters": [{"name": "period", "starting_value": 5, "ending_value": 50, "step_size": 5}],
                "walk_forward": {"in_sample_size": 200, "out_sample_size": 50},
            },
        }, f)

    config = load_run_config(run_file)

    assert config.ticker == "SPY"
    assert config.simulation.policy == SimulationPolicy.SMA
    assert config.simulation.stop_loss_figure == 7.5
    assert config.monte_carlo.random_seed == 42
    assert config.monte_carlo.num_iterations == 1000
    assert config.backtest.starting_capital == 1_000_000.0
    assert config.optimization.parameters[0].name == "period"
    assert config.optimization.options.optimization_type == "grid"
    assert config.optimization.walk_forward.out_sample_size == 50


def test_load_run_config_defaults_only():
    config = load_run_config()
    assert config.simulation.policy is None
    assert config.entry_rules == []


def test_missing_config_file():
    with pytest.raises(FileNotFoundError):
        load_yaml_config(Path("does/not/exist.yml"))


def test_load_rules(tmp_path):
    rules_file = tmp_path / "rules.yml"
    with open(rules_file, "w") as f:
        yaml.dump({
            "entry_rules": [{"indicatorOneType": "rsi", "indicatorOneName": "rsi", "indicatorOneFigureOne": 14,
                             "compare": "smallThan", "indicatorTwoType": "constant",
                             "indicatorTwoName": "oversold", "indicatorTwoFigureOne": 30}],
        }, f)

    entry, exit_ = load_rules(rules_file)

    assert len(entry) == 1
    assert entry[0].indicator_one_figure_one == 14.0
    assert exit_ == []
