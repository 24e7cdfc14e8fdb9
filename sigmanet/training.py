"""
training.py
~~~~~~~~~~~

Training sample container.
"""

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from sigmanet.matrix import Matrix


@dataclass(frozen=True)
class Sample:
    """
    One supervised example.

    ``input`` components are expected in [0.01, 0.99]; ``target`` uses soft
    one-hot encoding (0.99 for the correct class, 0.01 elsewhere).
    """

    input: Sequence[float]
    target: Sequence[float]

    def input_matrix(self) -> Matrix:
        return Matrix.column(self.input)

    def target_matrix(self) -> Matrix:
        return Matrix.column(self.target)

    @property
    def label(self) -> int:
        """Index of the highest target value."""
        return int(np.argmax(self.target))
