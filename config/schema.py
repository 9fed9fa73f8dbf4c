"""Configuration validation schemas using Pydantic."""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

import yaml
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class SimulationPolicy(str, Enum):
    """Strategy families the simulation driver knows how to build."""
    SMA = "sma"
    EMA = "ema"
    MACD = "macd"
    STOCHASTIC_SLOW = "stochasticSlow"
    STOCHASTIC_FAST = "stochasticFast"
    BOLLINGER = "bollinger"
    MACD_SMA = "macdSma"
    MACD_EMA = "macdEma"
    SMA_CROSSOVER = "smaCrossover"
    EMA_CROSSOVER = "emaCrossover"
    SMA_MEAN_REVERSION = "smaMeanReversion"
    EMA_MEAN_REVERSION = "emaMeanReversion"
    CUSTOM_STRATEGY = "CUSTOM_STRATEGY"


class SimulationRule(BaseModel):
    """One comparison between two operands.

    Fields accept both snake_case and camelCase keys (``indicatorOneName``)
    so rule files exported by other tools load unchanged. Every field is
    optional: a rule missing what it needs simply never fires.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    indicator_one_name: Optional[str] = None
    indicator_one_type: Optional[str] = None
    indicator_one_figure_one: Optional[float] = None
    indicator_one_figure_two: Optional[float] = None
    indicator_one_figure_three: Optional[float] = None
    compare: Optional[str] = None
    indicator_two_name: Optional[str] = None
    indicator_two_type: Optional[str] = None
    indicator_two_figure_one: Optional[float] = None
    indicator_two_figure_two: Optional[float] = None
    indicator_two_figure_three: Optional[float] = None


class SimulationConfig(BaseModel):
    """Risk settings for a rule-driven simulation."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    policy: Optional[SimulationPolicy] = None
    trailing_stop_loss: bool = False
    stop_loss_figure: float = Field(default=0.0, ge=0.0, description="Stop distance in percent of entry price")
    profit_factor: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Profit target distance as a multiple of entry price. None disables the target.",
    )


class BacktestDefaults(BaseModel):
    """Backtest defaults."""
    starting_capital: float = Field(default=1_000_000.0, gt=0.0)
    record_stop_price: bool = True
    record_risk: bool = True


class OptimizationOptions(BaseModel):
    """Parameter search options."""
    search_direction: Literal["max", "min"] = "max"
    optimization_type: Literal["grid", "hill-climb"] = "grid"
    record_all_results: bool = False
    random_seed: int = 0
    num_starting_points: int = Field(default=4, ge=0)
    record_duration: bool = False
    show_progress: bool = False


class WalkForwardConfig(BaseModel):
    """Walk-forward optimization windows, in bars."""
    in_sample_size: int
    out_sample_size: int
    random_seed: int = 0


class MonteCarloOptions(BaseModel):
    """Trade resampling options."""
    num_iterations: int = 1000
    num_samples: int = 100
    random_seed: int = 0


class ParameterDefConfig(BaseModel):
    """One optimisable parameter axis as written in a YAML file."""
    name: str
    starting_value: float
    ending_value: float
    step_size: float


class OptimizationConfig(BaseModel):
    """Optimization run definition: axes plus options."""
    parameters: List[ParameterDefConfig] = Field(default_factory=list)
    options: OptimizationOptions = Field(default_factory=OptimizationOptions)
    walk_forward: Optional[WalkForwardConfig] = None


class RunConfig(BaseModel):
    """Complete run configuration (defaults merged with a user file)."""
    ticker: str = ""
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    entry_rules: List[SimulationRule] = Field(default_factory=list)
    exit_rules: List[SimulationRule] = Field(default_factory=list)
    backtest: BacktestDefaults = Field(default_factory=BacktestDefaults)
    optimization: OptimizationConfig = Field(default_factory=OptimizationConfig)
    monte_carlo: MonteCarloOptions = Field(default_factory=MonteCarloOptions)

    @model_validator(mode="after")
    def validate_custom_policy(self):
        """Custom strategies are driven entirely by rules and need at least one entry rule."""
        if self.simulation.policy == SimulationPolicy.CUSTOM_STRATEGY and not self.entry_rules:
            raise ValueError("CUSTOM_STRATEGY policy requires at least one entry rule")
        return self


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def load_defaults() -> Dict[str, Any]:
    """Load default configuration values."""
    defaults_path = Path(__file__).parent / "defaults.yml"
    return load_config(defaults_path)


def default_starting_capital() -> float:
    """Starting capital used by the simulation driver."""
    return BacktestDefaults(**load_defaults().get("backtest", {})).starting_capital


def validate_run_config(config_dict: Dict[str, Any]) -> RunConfig:
    """Validate and return RunConfig object."""
    return RunConfig(**config_dict)


def load_rules(rules_path: Path) -> Tuple[List[SimulationRule], List[SimulationRule]]:
    """Load entry and exit rules from a YAML file with ``entry_rules``/``exit_rules`` lists."""
    data = load_config(rules_path)
    entry = [SimulationRule(**r) for r in data.get("entry_rules", [])]
    exit_ = [SimulationRule(**r) for r in data.get("exit_rules", [])]
    return entry, exit_
