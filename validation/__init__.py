"""Optimization and validation modules."""

from validation.rng import Random

from validation.optimization import (
    ParameterDef,
    OptimizationIterationResult,
    OptimizationResult,
    grid_search,
    hill_climb,
    optimize,
)

from validation.walkforward import (
    WalkForwardAnalyzer,
    WalkForwardStep,
    WalkForwardResult,
    walk_forward_optimize,
)

from validation.monte_carlo import (
    MonteCarloResult,
    monte_carlo,
    summarize_monte_carlo,
)

__all__ = [
    'Random',
    'ParameterDef',
    'OptimizationIterationResult',
    'OptimizationResult',
    'grid_search',
    'hill_climb',
    'optimize',
    'WalkForwardAnalyzer',
    'WalkForwardStep',
    'WalkForwardResult',
    'walk_forward_optimize',
    'MonteCarloResult',
    'monte_carlo',
    'summarize_monte_carlo',
]
