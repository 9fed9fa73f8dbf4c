"""Configuration management module."""

from .schema import (
    SimulationPolicy,
    SimulationRule,
    SimulationConfig,
    BacktestDefaults,
    OptimizationOptions,
    WalkForwardConfig,
    MonteCarloOptions,
    ParameterDefConfig,
    OptimizationConfig,
    RunConfig,
    load_config,
    load_defaults,
    default_starting_capital,
    validate_run_config,
    load_rules,
)
from .config_loader import deep_merge, load_run_config

__all__ = [
    "SimulationPolicy",
    "SimulationRule",
    "SimulationConfig",
    "BacktestDefaults",
    "OptimizationOptions",
    "WalkForwardConfig",
    "MonteCarloOptions",
    "ParameterDefConfig",
    "OptimizationConfig",
    "RunConfig",
    "load_config",
    "load_defaults",
    "default_starting_capital",
    "validate_run_config",
    "load_rules",
    "deep_merge",
    "load_run_config",
]
