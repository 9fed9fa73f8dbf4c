"""Seeded pseudo-random generator shared by the search routines.

A new instance is created per search call and passed down explicitly, so
two searches with different seeds never interfere.
"""

import numpy as np


class Random:
    """Thin wrapper over ``numpy.random.Generator``."""

    def __init__(self, seed: int = 0):
        """
        Initialize generator.

        Args:
            seed: Random seed for reproducibility
        """
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def get_int(self, min_value: int, max_value: int) -> int:
        """Uniform integer in ``[min_value, max_value]`` (inclusive)."""
        if max_value <= min_value:
            return min_value
        return int(self.rng.integers(min_value, max_value + 1))

    def spawn_seed(self) -> int:
        """Seed for a child search (e.g. one walk-forward fold)."""
        return int(self.rng.integers(0, 2 ** 32))
