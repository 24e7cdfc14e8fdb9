"""
uniform.py
~~~~~~~~~~

Fan-in scaled uniform weight initialization.

Weights feeding a layer with fan-in ``n`` are drawn from
U(-1/sqrt(n), 1/sqrt(n)). The random generator is always passed in, so a
seeded ``numpy.random.Generator`` gives reproducible networks.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from sigmanet.errors import InvalidShapeError
from sigmanet.matrix import Matrix


def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """Create a random generator; ``None`` seeds it from OS entropy."""
    return np.random.default_rng(seed)


@dataclass(frozen=True)
class Uniform:
    """Uniform distribution over [low, high)."""

    low: float
    high: float

    @classmethod
    def for_fan_in(cls, fan_in: int) -> 'Uniform':
        """
        Build the symmetric range for a layer fed by ``fan_in`` inputs.

        Raises:
            InvalidShapeError: If fan_in is smaller than 1
        """
        if fan_in < 1:
            raise InvalidShapeError(f"Fan-in must be positive, got {fan_in}")
        bound = 1.0 / math.sqrt(fan_in)
        return cls(low=-bound, high=bound)

    def generate(self, rng: np.random.Generator) -> float:
        """Draw a single value."""
        return self.low + rng.random() * (self.high - self.low)

    def fill(self, matrix: Matrix, rng: np.random.Generator) -> None:
        """Overwrite every element of ``matrix`` with an independent draw."""
        matrix.apply(lambda _: self.generate(rng))
