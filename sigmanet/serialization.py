"""
serialization.py
~~~~~~~~~~~~~~~~

JSON persistence for networks.

A saved network is a human-readable document::

    {
        "input_size": 784,
        "layer_count": 3,
        "learning_rate": 0.1,
        "activation": "sigmoid",
        "weights": [
            {"rows": 200, "columns": 784, "values": [...]},
            {"rows": 10, "columns": 200, "values": [...]}
        ]
    }

Weight values are stored row-major. Python writes floats with round-trip
precision, so a loaded network behaves exactly like the saved one.
"""

import json
import logging
from typing import Any, Dict

from sigmanet.activation import get_activation
from sigmanet.errors import FormatError, NetworkError, NetworkIOError
from sigmanet.matrix import Matrix
from sigmanet.network import Network

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ('input_size', 'layer_count', 'learning_rate', 'weights')


def to_document(network: Network) -> Dict[str, Any]:
    """Describe ``network`` as a JSON-compatible dictionary."""
    return {
        'input_size': network.input_size,
        'layer_count': network.layers,
        'learning_rate': network.learning_rate,
        'activation': network.activation.name,
        'weights': [
            {'rows': w.rows, 'columns': w.columns, 'values': w.values()}
            for w in network.weights
        ]
    }


def from_document(document: Any) -> Network:
    """
    Rebuild a network from a dictionary produced by :func:`to_document`.

    Raises:
        FormatError: If the document is not a valid network description
    """
    if not isinstance(document, dict):
        raise FormatError(
            f"Expected a JSON object, got {type(document).__name__}"
        )

    missing = [key for key in REQUIRED_KEYS if key not in document]
    if missing:
        raise FormatError(f"Missing key(s): {', '.join(missing)}")

    input_size = _expect_int(document['input_size'], 'input_size')
    layer_count = _expect_int(document['layer_count'], 'layer_count')
    learning_rate = document['learning_rate']
    if isinstance(learning_rate, bool) or not isinstance(learning_rate, (int, float)):
        raise FormatError(
            f"learning_rate must be a number, got {learning_rate!r}"
        )

    try:
        activation = get_activation(document.get('activation', 'sigmoid'))
    except KeyError as e:
        raise FormatError(str(e.args[0])) from e

    raw_weights = document['weights']
    if not isinstance(raw_weights, list):
        raise FormatError("weights must be a list")
    if layer_count != len(raw_weights) + 1:
        raise FormatError(
            f"layer_count is {layer_count} but {len(raw_weights)} weight "
            f"matrices were found"
        )

    weights = [
        _matrix_from_entry(entry, index)
        for index, entry in enumerate(raw_weights)
    ]
    if weights and weights[0].columns != input_size:
        raise FormatError(
            f"input_size is {input_size} but the first weight matrix has "
            f"{weights[0].columns} columns"
        )

    try:
        return Network.from_weights(learning_rate, weights, activation)
    except NetworkError as e:
        raise FormatError(f"Invalid network structure: {e}") from e


def _expect_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise FormatError(f"{key} must be an integer, got {value!r}")
    return value


def _matrix_from_entry(entry: Any, index: int) -> Matrix:
    if not isinstance(entry, dict):
        raise FormatError(f"Weight matrix {index} must be an object")
    try:
        rows = _expect_int(entry['rows'], f"weights[{index}].rows")
        columns = _expect_int(entry['columns'], f"weights[{index}].columns")
        values = entry['values']
    except KeyError as e:
        raise FormatError(
            f"Weight matrix {index} is missing key {e.args[0]!r}"
        ) from e

    if not isinstance(values, list) or not all(
        isinstance(v, (int, float)) and not isinstance(v, bool)
        for v in values
    ):
        raise FormatError(f"weights[{index}].values must be a list of numbers")

    try:
        return Matrix.from_values(rows, columns, values)
    except NetworkError as e:
        raise FormatError(f"Weight matrix {index}: {e}") from e


def dumps(network: Network) -> str:
    """Serialize ``network`` to an indented JSON string."""
    return json.dumps(to_document(network), indent=4)


def loads(text: str) -> Network:
    """
    Deserialize a network from a JSON string.

    Raises:
        FormatError: If the text is not JSON or not a valid network
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise FormatError(f"Invalid JSON: {e}") from e
    except RecursionError as e:
        raise FormatError("Invalid JSON: nesting is too deep") from e
    return from_document(document)


def save_network_file(network: Network, path: str) -> None:
    """
    Write ``network`` to ``path``.

    Raises:
        NetworkIOError: If the file cannot be written
    """
    text = dumps(network)
    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(text)
    except OSError as e:
        raise NetworkIOError(f"Could not write network to '{path}': {e}") from e

    logger.info(f"Saved network {network.sizes} to '{path}'")


def load_network_file(path: str) -> Network:
    """
    Read a network from ``path``.

    Raises:
        NetworkIOError: If the file cannot be read
        FormatError: If the contents do not describe a valid network
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except UnicodeDecodeError as e:
        raise FormatError(f"'{path}' is not UTF-8 text: {e}") from e
    except OSError as e:
        raise NetworkIOError(f"Could not read network from '{path}': {e}") from e

    network = loads(text)
    logger.info(f"Loaded network {network.sizes} from '{path}'")
    return network
