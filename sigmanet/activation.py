"""
activation.py
~~~~~~~~~~~~~

Activation functions applied elementwise to layer sums.

An activation is a named record of plain scalar functions, so new ones can
be registered without touching the network code.
"""

import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class Activation:
    """
    Elementwise activation function with its derivative.

    Attributes:
        name: Registry key, also written into saved networks
        evaluate: f(x)
        derivative: f'(x), evaluated on the layer sum
        output_derivative: f'(x) expressed through the activated value f(x).
            When present, training uses it on the stored activations instead
            of keeping the layer sums around.
    """

    name: str
    evaluate: Callable[[float], float]
    derivative: Callable[[float], float]
    output_derivative: Optional[Callable[[float], float]] = None


def sigmoid(x: float) -> float:
    """Logistic function 1 / (1 + e^-x)."""
    try:
        return 1.0 / (1.0 + math.exp(-x))
    except OverflowError:
        # e^-x is beyond float range, so the result underflows to zero
        return 0.0


def sigmoid_derivative(x: float) -> float:
    sig = sigmoid(x)
    return sig * (1.0 - sig)


def sigmoid_output_derivative(value: float) -> float:
    """Sigmoid slope given an already activated value: a(1 - a)."""
    return value * (1.0 - value)


SIGMOID = Activation(
    name='sigmoid',
    evaluate=sigmoid,
    derivative=sigmoid_derivative,
    output_derivative=sigmoid_output_derivative,
)

_registry: Dict[str, Activation] = {SIGMOID.name: SIGMOID}


def register_activation(activation: Activation) -> None:
    """
    Make an activation available by name (e.g. when loading saved networks).

    Registering a name twice replaces the earlier entry.
    """
    _registry[activation.name] = activation


def get_activation(name: str) -> Activation:
    """
    Look up a registered activation.

    Raises:
        KeyError: If no activation has been registered under ``name``
    """
    try:
        return _registry[name]
    except KeyError:
        raise KeyError(f"Unknown activation '{name}'") from None
