"""
conftest.py
~~~~~~~~~~~

Shared fixtures for the test suite.
"""

import pytest

from sigmanet import activation
from sigmanet.mnist_loader import soft_one_hot
from sigmanet.network import Network
from sigmanet.training import Sample


@pytest.fixture
def temp_db_dir(tmp_path):
    """Create a temporary directory for database storage."""
    db_dir = tmp_path / "test_models"
    db_dir.mkdir()
    return str(db_dir)


@pytest.fixture
def simple_network():
    """Create a small seeded 3-layer network."""
    return Network(0.1, 3, 4, 2, seed=1234)


@pytest.fixture
def small_samples():
    """A handful of deterministic 3-input, 2-class samples."""
    inputs = [
        [0.01, 0.5, 0.99],
        [0.99, 0.2, 0.01],
        [0.3, 0.7, 0.5],
        [0.8, 0.8, 0.1],
    ]
    return [
        Sample(input=x, target=soft_one_hot(i % 2, classes=2))
        for i, x in enumerate(inputs)
    ]


@pytest.fixture
def trained_network(simple_network, small_samples):
    """Create a simple network with some training applied."""
    simple_network.train_epochs(small_samples, epochs=3)
    return simple_network


@pytest.fixture
def activation_registry(monkeypatch):
    """A private copy of the activation registry, discarded after the test."""
    registry = dict(activation._registry)
    monkeypatch.setattr(activation, '_registry', registry)
    return registry


@pytest.fixture
def write_mnist_csv(tmp_path):
    """Factory writing ``(label, pixels)`` rows in MNIST CSV format."""
    def write(name, rows):
        path = tmp_path / name
        with open(path, 'w') as f:
            for label, pixels in rows:
                f.write(','.join(str(v) for v in [label] + list(pixels)) + '\n')
        return str(path)
    return write


@pytest.fixture
def mnist_csv(write_mnist_csv):
    """A tiny MNIST-formatted CSV with one image per digit."""
    rows = []
    for label in range(10):
        pixels = [0] * 784
        # A distinct bright stripe per digit
        for i in range(label * 78, label * 78 + 78):
            pixels[i] = 255
        rows.append((label, pixels))
    return write_mnist_csv("mnist_tiny.csv", rows)
