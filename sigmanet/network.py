"""
network.py
~~~~~~~~~~

Fully connected feed-forward network trained with stochastic gradient
descent (one sample per update).

Layer ``i`` is a weight matrix of shape (n_{i+1}, n_i) that maps an
``n_i``-long activation column to the next layer's sums. There are no bias
vectors.
"""

import logging
import numbers
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from sigmanet.activation import SIGMOID, Activation
from sigmanet.errors import (
    DimensionMismatchError,
    InputSizeError,
    InvalidShapeError,
    LayerCountError,
)
from sigmanet.matrix import (
    Matrix,
    copy,
    dot,
    multiply_elementwise,
    subtract,
    transpose,
)
from sigmanet.training import Sample
from sigmanet.uniform import Uniform, make_rng

logger = logging.getLogger(__name__)

MIN_LAYERS = 3


class Network:
    """
    Dense feed-forward network.

    Attributes:
        input_size: Length of the input vector
        layers: Number of declared layers, input and output included
        weights: One matrix per layer transition, owned by this network
        learning_rate: Step size applied to every weight delta
        activation: Elementwise activation used by every layer
    """

    def __init__(
        self,
        learning_rate: float,
        *layer_sizes: int,
        activation: Activation = SIGMOID,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None
    ):
        """
        Create a network with freshly initialized weights.

        Args:
            learning_rate: Step size for gradient descent
            *layer_sizes: Sizes of input, hidden and output layers, in order
            activation: Activation applied after every layer
            rng: Random generator used for weight initialization
            seed: Seed for a new generator when ``rng`` is not given

        Raises:
            LayerCountError: If fewer than three layer sizes are given
            InvalidShapeError: If any layer size is not a positive integer

        Example:
            >>> net = Network(0.1, 784, 200, 10, seed=42)
            >>> net.sizes
            [784, 200, 10]
        """
        _check_layer_count(len(layer_sizes))
        for size in layer_sizes:
            if (isinstance(size, bool)
                    or not isinstance(size, numbers.Integral)
                    or size < 1):
                raise InvalidShapeError(
                    f"Layer sizes must be positive integers, "
                    f"got {list(layer_sizes)}"
                )
        layer_sizes = tuple(int(size) for size in layer_sizes)

        if rng is None:
            rng = make_rng(seed)

        weights = []
        for prev_size, size in zip(layer_sizes, layer_sizes[1:]):
            distribution = Uniform.for_fan_in(prev_size)
            matrix = Matrix(size, prev_size)
            distribution.fill(matrix, rng)
            weights.append(matrix)

        self.input_size = layer_sizes[0]
        self.layers = len(layer_sizes)
        self.weights: List[Matrix] = weights
        self.learning_rate = float(learning_rate)
        self.activation = activation

        logger.debug(
            f"Initialized network {self.sizes} with "
            f"learning_rate={self.learning_rate}"
        )

    @classmethod
    def from_weights(
        cls,
        learning_rate: float,
        weights: Sequence[Matrix],
        activation: Activation = SIGMOID
    ) -> 'Network':
        """
        Rebuild a network around existing weight matrices.

        The matrices are copied, so the new network owns its weights.

        Raises:
            LayerCountError: If fewer than two weight matrices are given
            DimensionMismatchError: If consecutive shapes do not chain
        """
        _check_layer_count(len(weights) + 1)
        for i in range(1, len(weights)):
            if weights[i].columns != weights[i - 1].rows:
                raise DimensionMismatchError(
                    f"Weight matrix {i} expects {weights[i].columns} inputs "
                    f"but layer {i} has {weights[i - 1].rows} units"
                )

        network = cls.__new__(cls)
        network.input_size = weights[0].columns
        network.layers = len(weights) + 1
        network.weights = [copy(w) for w in weights]
        network.learning_rate = float(learning_rate)
        network.activation = activation
        return network

    @property
    def sizes(self) -> List[int]:
        """Declared layer sizes, input first."""
        return [self.input_size] + [w.rows for w in self.weights]

    @property
    def output_size(self) -> int:
        return self.weights[-1].rows

    # ------------------------------------------------------------------
    # Forward pass
    # ------------------------------------------------------------------

    def predict(self, input: Sequence[float]) -> np.ndarray:
        """
        Run a forward pass.

        Args:
            input: Vector of length ``input_size``

        Returns:
            1-D array with one activation per output unit

        Raises:
            InputSizeError: If the input length differs from ``input_size``
        """
        outputs, _ = self._layer_outputs(input)
        return outputs[-1].to_array().ravel()

    def _layer_outputs(
        self,
        input: Sequence[float]
    ) -> Tuple[List[Matrix], Optional[List[Matrix]]]:
        """
        Activations of every layer, input first.

        Layer sums are only kept when the activation cannot derive its slope
        from the activated values.
        """
        if len(input) != self.input_size:
            raise InputSizeError(
                f"Wrong number of inputs: expected {self.input_size}, "
                f"got {len(input)}"
            )

        keep_sums = self.activation.output_derivative is None
        layer_output = Matrix.column(input)
        outputs = [layer_output]
        sums = [None] if keep_sums else None

        for weights in self.weights:
            layer_output = dot(weights, layer_output)
            if keep_sums:
                sums.append(copy(layer_output))
            layer_output.apply(self.activation.evaluate)
            outputs.append(layer_output)

        return outputs, sums

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train(self, sample: Sample) -> None:
        """
        Perform one gradient descent step on a single sample.

        All deltas are computed from the current weights before any weight is
        updated.

        Raises:
            InputSizeError: If the sample input has the wrong length
            DimensionMismatchError: If the target length differs from the
                output layer size
        """
        if len(sample.target) != self.output_size:
            raise DimensionMismatchError(
                f"Target has {len(sample.target)} values but the network "
                f"outputs {self.output_size}"
            )

        outputs, sums = self._layer_outputs(sample.input)

        deltas: List[Optional[Matrix]] = [None] * len(self.weights)
        last_errors = None

        for i in reversed(range(len(self.weights))):
            # dE/do
            if last_errors is None:
                # -(t - o) = o - t
                errors = subtract(outputs[i + 1], sample.target_matrix())
            else:
                errors = dot(transpose(self.weights[i + 1]), last_errors)
            last_errors = errors

            # do/dsum
            slope = self._slope(outputs, sums, i + 1)

            # dsum/dw is the previous layer's output
            delta = dot(
                multiply_elementwise(errors, slope),
                transpose(outputs[i])
            )
            delta.scale(self.learning_rate)
            deltas[i] = delta

        for i, delta in enumerate(deltas):
            self.weights[i] = subtract(self.weights[i], delta)

    def _slope(
        self,
        outputs: List[Matrix],
        sums: Optional[List[Matrix]],
        layer: int
    ) -> Matrix:
        """Activation derivative for ``layer``, shaped like its output."""
        if sums is None:
            slope = copy(outputs[layer])
            slope.apply(self.activation.output_derivative)
        else:
            slope = copy(sums[layer])
            slope.apply(self.activation.derivative)
        return slope

    def train_epochs(
        self,
        samples: Sequence[Sample],
        epochs: int,
        callback: Optional[Callable[[Dict[str, Any]], None]] = None
    ) -> None:
        """
        Train on every sample, in order, ``epochs`` times.

        Args:
            samples: Training samples
            epochs: Number of full passes over ``samples``
            callback: Called after each epoch with a dict holding
                ``epoch``, ``total_epochs`` and ``elapsed_time`` (seconds)

        Raises:
            ValueError: If epochs is smaller than 1
        """
        if epochs < 1:
            raise ValueError(f"epochs must be a positive integer, got {epochs}")

        start = time.time()
        for epoch in range(1, epochs + 1):
            for sample in samples:
                self.train(sample)

            elapsed = time.time() - start
            logger.info(
                f"Completed epoch {epoch}/{epochs} "
                f"({len(samples)} samples, {elapsed:.2f}s)"
            )
            if callback is not None:
                callback({
                    'epoch': epoch,
                    'total_epochs': epochs,
                    'elapsed_time': elapsed
                })

    def evaluate(self, samples: Iterable[Sample]) -> int:
        """Return how many samples are classified correctly (argmax match)."""
        return sum(
            int(np.argmax(self.predict(sample.input)) == sample.label)
            for sample in samples
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: str) -> None:
        """
        Write this network to ``path`` as JSON.

        Raises:
            NetworkIOError: If the file cannot be written
        """
        from sigmanet.serialization import save_network_file
        save_network_file(self, path)

    @classmethod
    def load(cls, path: str) -> 'Network':
        """
        Read a network previously written with :meth:`save`.

        Raises:
            NetworkIOError: If the file cannot be read
            FormatError: If the file does not describe a valid network
        """
        from sigmanet.serialization import load_network_file
        return load_network_file(path)

    def __repr__(self) -> str:
        return (
            f"Network(sizes={self.sizes}, learning_rate={self.learning_rate}, "
            f"activation={self.activation.name!r})"
        )


def _check_layer_count(count: int) -> None:
    if count < MIN_LAYERS:
        raise LayerCountError(
            f"Network must have at least {MIN_LAYERS} layers, got {count}"
        )
