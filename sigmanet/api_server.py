"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server for creating, training and querying networks.

This module provides endpoints for:
- Creating and managing networks
- Training networks on posted samples or the loaded MNIST training set
- Running predictions and inspecting MNIST test examples
- Persisting networks to/from the SQLite model store
- Exporting and importing the JSON network document

Training runs synchronously inside the request.
"""

import os
import sys
import time
import uuid
import logging
from typing import Any, Dict, List, Optional

import numpy as np
from flask import Flask, request, jsonify
from flask_cors import CORS

from sigmanet import serialization
from sigmanet.digit_image import create_digit_image
from sigmanet.errors import FormatError, NetworkError
from sigmanet.logging_setup import configure_logging
from sigmanet.mnist_loader import load_csv, predicted_label
from sigmanet.model_persistence import (
    save_network,
    load_network,
    list_saved_networks,
    delete_network,
    delete_old_networks
)
from sigmanet.network import Network
from sigmanet.training import Sample

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION
# ============================================================================

MODEL_DIR = os.getenv('MODEL_DIR', 'models')
DEFAULT_LAYER_SIZES = [784, 200, 10]
DEFAULT_LEARNING_RATE = 0.1

# ============================================================================
# FLASK APP SETUP
# ============================================================================

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": "*"}})  # Allow requests from any origin

# ============================================================================
# GLOBAL STATE
# ============================================================================

# Networks currently loaded in memory: {network_id: network_info}
active_networks: Dict[str, Dict[str, Any]] = {}

# MNIST samples - loaded once at startup when the CSV files exist
training_data: Optional[List[Sample]] = None
test_data: Optional[List[Sample]] = None


# ============================================================================
# DATA LOADING
# ============================================================================

def load_mnist_data() -> None:
    """
    Load the MNIST CSV files named by MNIST_TRAIN_CSV / MNIST_TEST_CSV.

    Missing files are skipped; training then requires posted samples.
    """
    global training_data, test_data

    train_path = os.getenv('MNIST_TRAIN_CSV', 'mnist_train.csv')
    test_path = os.getenv('MNIST_TEST_CSV', 'mnist_test.csv')

    if os.path.exists(train_path):
        training_data = load_csv(train_path)
    else:
        logger.warning(f"Training data not found at '{train_path}'")

    if os.path.exists(test_path):
        test_data = load_csv(test_path)
    else:
        logger.warning(f"Test data not found at '{test_path}'")


def reload_saved_networks() -> None:
    """
    Reload all saved networks from the model store into memory.

    Called at startup to restore networks that were saved before the
    application was restarted.
    """
    saved_networks = list_saved_networks(MODEL_DIR)

    if not saved_networks:
        logger.info("No saved networks to reload")
        return

    loaded_count = 0
    for net_info in saved_networks:
        network_id = net_info['network_id']
        net = load_network(network_id, MODEL_DIR)
        if net is None:
            logger.warning(f"Failed to load network {network_id}")
            continue

        active_networks[network_id] = {
            'network': net,
            'trained': net_info['trained'],
            'accuracy': net_info['accuracy']
        }
        loaded_count += 1

    logger.info(f"Reloaded {loaded_count} network(s) from database")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def array_to_float_list(array: np.ndarray) -> List[float]:
    """Convert a numpy array to a list of floats (for JSON serialization)."""
    return [float(val) for val in np.asarray(array).flatten()]


def network_summary(network_id: str, info: Dict[str, Any]) -> Dict[str, Any]:
    """JSON view of an in-memory network."""
    net = info['network']
    return {
        'network_id': network_id,
        'architecture': net.sizes,
        'learning_rate': net.learning_rate,
        'activation': net.activation.name,
        'trained': info['trained'],
        'accuracy': info['accuracy'],
        'status': 'in_memory'
    }


def parse_samples(raw_samples: Any) -> List[Sample]:
    """
    Convert posted ``[{'input': [...], 'target': [...]}, ...]`` into samples.

    Raises:
        ValueError: If the payload has the wrong structure
    """
    if not isinstance(raw_samples, list) or not raw_samples:
        raise ValueError('samples must be a non-empty list')

    samples = []
    for index, raw in enumerate(raw_samples):
        if not isinstance(raw, dict) or 'input' not in raw or 'target' not in raw:
            raise ValueError(
                f"sample {index} must be an object with 'input' and 'target'"
            )
        try:
            samples.append(Sample(
                input=[float(v) for v in raw['input']],
                target=[float(v) for v in raw['target']]
            ))
        except (TypeError, ValueError):
            raise ValueError(
                f"sample {index} must contain lists of numbers"
            ) from None
    return samples


def _not_found(network_id: str, action: str):
    logger.warning(f"{action} requested for non-existent network: {network_id}")
    return jsonify({'error': 'Network not found'}), 404


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.route('/api/status', methods=['GET'])
def get_status():
    """Return server status and statistics."""
    return jsonify({
        'status': 'online',
        'active_networks': len(active_networks),
        'training_data_loaded': training_data is not None,
        'test_data_loaded': test_data is not None
    }), 200


@app.route('/api/networks', methods=['POST'])
def create_network():
    """
    Create a new network.

    Request body (optional):
        {
            'layer_sizes': [784, 200, 10],
            'learning_rate': 0.1,
            'seed': 42
        }

    Returns:
        JSON with network_id, architecture, and status
    """
    data = request.get_json(silent=True) or {}
    layer_sizes = data.get('layer_sizes', DEFAULT_LAYER_SIZES)
    learning_rate = data.get('learning_rate', DEFAULT_LEARNING_RATE)
    seed = data.get('seed')

    if (not isinstance(layer_sizes, list)
            or not all(isinstance(s, int) and not isinstance(s, bool)
                       for s in layer_sizes)):
        logger.warning(f"Invalid architecture requested: {layer_sizes}")
        return jsonify({
            'error': 'layer_sizes must be a list of integers'
        }), 400
    if isinstance(learning_rate, bool) or not isinstance(learning_rate, (int, float)) \
            or learning_rate <= 0:
        return jsonify({'error': 'learning_rate must be a positive number'}), 400
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
        return jsonify({'error': 'seed must be an integer'}), 400

    try:
        net = Network(learning_rate, *layer_sizes, seed=seed)
    except NetworkError as e:
        logger.warning(f"Invalid architecture requested: {layer_sizes}: {e}")
        return jsonify({'error': f'Invalid architecture: {e}'}), 400

    network_id = str(uuid.uuid4())
    active_networks[network_id] = {
        'network': net,
        'trained': False,
        'accuracy': None
    }

    logger.info(f"Created network {network_id} with architecture {layer_sizes}")

    return jsonify({
        'network_id': network_id,
        'architecture': net.sizes,
        'learning_rate': net.learning_rate,
        'status': 'created'
    }), 201


@app.route('/api/networks', methods=['GET'])
def list_networks():
    """List all available networks (both in-memory and saved)."""
    in_memory = [
        network_summary(nid, info) for nid, info in active_networks.items()
    ]

    # Saved networks, excluding duplicates already in memory
    saved_only = []
    for net in list_saved_networks(MODEL_DIR):
        if net['network_id'] not in active_networks:
            net['status'] = 'saved'
            saved_only.append(net)

    logger.debug(
        f"Listing networks: {len(in_memory)} in memory, {len(saved_only)} saved"
    )

    return jsonify({'networks': in_memory + saved_only}), 200


@app.route('/api/networks/<network_id>', methods=['GET'])
def get_network(network_id: str):
    """Return the description of one in-memory network."""
    if network_id not in active_networks:
        return _not_found(network_id, 'Details')
    return jsonify(network_summary(network_id, active_networks[network_id])), 200


@app.route('/api/networks/<network_id>/train', methods=['POST'])
def train_network(network_id: str):
    """
    Train a network.

    Request body (all optional):
        {
            'epochs': 1,
            'samples': [{'input': [...], 'target': [...]}, ...],
            'save': true
        }

    Without 'samples' the loaded MNIST training set is used. Accuracy is
    measured on the MNIST test set when it is loaded.

    Returns:
        JSON with epochs, elapsed_time and accuracy
    """
    if network_id not in active_networks:
        return _not_found(network_id, 'Training')

    data = request.get_json(silent=True) or {}
    epochs = data.get('epochs', 1)
    save = data.get('save', True)

    if isinstance(epochs, bool) or not isinstance(epochs, int) or epochs < 1:
        return jsonify({'error': 'epochs must be a positive integer'}), 400

    if 'samples' in data:
        try:
            samples = parse_samples(data['samples'])
        except ValueError as e:
            return jsonify({'error': str(e)}), 400
    elif training_data is not None:
        samples = training_data
    else:
        return jsonify({
            'error': 'No samples posted and no training data loaded'
        }), 400

    info = active_networks[network_id]
    net = info['network']

    logger.info(
        f"Training network {network_id}: epochs={epochs}, "
        f"samples={len(samples)}, lr={net.learning_rate}"
    )

    start = time.time()
    try:
        net.train_epochs(samples, epochs)
    except NetworkError as e:
        logger.warning(f"Training rejected for network {network_id}: {e}")
        return jsonify({'error': str(e)}), 400
    elapsed = time.time() - start

    accuracy = None
    if _accepts_test_data(net):
        accuracy = net.evaluate(test_data) / len(test_data)
    elif test_data:
        logger.info(
            f"Skipping accuracy for {network_id}: network takes "
            f"{net.input_size} inputs, test samples have {len(test_data[0].input)}"
        )

    info['trained'] = True
    info['accuracy'] = accuracy

    saved = False
    if save:
        saved = save_network(
            net, network_id, model_dir=MODEL_DIR, trained=True, accuracy=accuracy
        )

    if accuracy is not None:
        logger.info(f"Training completed for {network_id}: accuracy {accuracy:.2%}")
    else:
        logger.info(f"Training completed for {network_id}")

    return jsonify({
        'network_id': network_id,
        'status': 'completed',
        'epochs': epochs,
        'samples': len(samples),
        'elapsed_time': elapsed,
        'accuracy': accuracy,
        'saved': saved
    }), 200


@app.route('/api/networks/<network_id>/predict', methods=['POST'])
def predict(network_id: str):
    """
    Run a forward pass.

    Request body:
        {'input': [0.01, 0.5, ...]}

    Returns:
        JSON with the network output and the index of the strongest unit
    """
    if network_id not in active_networks:
        return _not_found(network_id, 'Prediction')

    data = request.get_json(silent=True) or {}
    values = data.get('input')
    if not isinstance(values, list):
        return jsonify({'error': 'input must be a list of numbers'}), 400

    try:
        output = active_networks[network_id]['network'].predict(
            [float(v) for v in values]
        )
    except (TypeError, ValueError) as e:
        # InputSizeError is a ValueError
        return jsonify({'error': str(e)}), 400

    return jsonify({
        'network_id': network_id,
        'output': array_to_float_list(output),
        'predicted': predicted_label(output)
    }), 200


@app.route('/api/networks/<network_id>/save', methods=['POST'])
def save_network_endpoint(network_id: str):
    """Persist an in-memory network into the model store."""
    if network_id not in active_networks:
        return _not_found(network_id, 'Save')

    info = active_networks[network_id]
    if not save_network(
        info['network'],
        network_id,
        model_dir=MODEL_DIR,
        trained=info['trained'],
        accuracy=info['accuracy']
    ):
        return jsonify({'error': 'Failed to save network'}), 500

    return jsonify({'network_id': network_id, 'status': 'saved'}), 200


@app.route('/api/networks/<network_id>/export', methods=['GET'])
def export_network(network_id: str):
    """Return the network's JSON document."""
    if network_id not in active_networks:
        return _not_found(network_id, 'Export')
    net = active_networks[network_id]['network']
    return jsonify(serialization.to_document(net)), 200


@app.route('/api/networks/import', methods=['POST'])
def import_network():
    """
    Create an in-memory network from a posted JSON document.

    Returns:
        201 with the new network_id, or 400 if the document is invalid
    """
    document = request.get_json(silent=True)
    try:
        net = serialization.from_document(document)
    except FormatError as e:
        logger.warning(f"Rejected network import: {e}")
        return jsonify({'error': f'Invalid network document: {e}'}), 400

    network_id = str(uuid.uuid4())
    active_networks[network_id] = {
        'network': net,
        'trained': False,
        'accuracy': None
    }
    logger.info(f"Imported network {network_id} with architecture {net.sizes}")

    return jsonify({
        'network_id': network_id,
        'architecture': net.sizes,
        'status': 'imported'
    }), 201


@app.route('/api/networks/<network_id>', methods=['DELETE'])
def delete_network_endpoint(network_id: str):
    """Delete a network from both memory and the model store."""
    deleted_from_memory = active_networks.pop(network_id, None) is not None
    deleted_from_disk = delete_network(network_id, MODEL_DIR)

    if not deleted_from_memory and not deleted_from_disk:
        return _not_found(network_id, 'Delete')

    logger.info(
        f"Deleted network {network_id}: memory={deleted_from_memory}, "
        f"disk={deleted_from_disk}"
    )

    return jsonify({
        'network_id': network_id,
        'deleted_from_memory': deleted_from_memory,
        'deleted_from_disk': deleted_from_disk
    }), 200


@app.route('/api/networks', methods=['DELETE'])
def delete_all_networks():
    """Delete all networks from both memory and the model store."""
    saved_ids = [net['network_id'] for net in list_saved_networks(MODEL_DIR)]
    all_network_ids = set(active_networks) | set(saved_ids)

    deleted_from_memory_count = len(active_networks)
    active_networks.clear()

    deleted_from_disk_count = sum(
        1 for network_id in saved_ids if delete_network(network_id, MODEL_DIR)
    )

    logger.info(
        f"Deleted all networks: {len(all_network_ids)} total, "
        f"{deleted_from_memory_count} from memory, "
        f"{deleted_from_disk_count} from disk"
    )

    return jsonify({
        'deleted_count': len(all_network_ids),
        'deleted_from_memory': deleted_from_memory_count,
        'deleted_from_disk': deleted_from_disk_count,
        'message': f'Successfully deleted {len(all_network_ids)} network(s)'
    }), 200


@app.route('/api/networks/cleanup', methods=['POST'])
def cleanup_old_networks_endpoint():
    """
    Delete stored networks older than the given number of days.

    Request body (optional):
        {'days': 2}

    Networks removed from the store are dropped from memory as well.
    """
    data = request.get_json(silent=True) or {}
    days = data.get('days', 2)

    if isinstance(days, bool) or not isinstance(days, (int, float)) or days < 0:
        return jsonify({'error': 'days must be a non-negative number'}), 400

    deleted_count = delete_old_networks(days=int(days), model_dir=MODEL_DIR)
    if deleted_count == -1:
        return jsonify({'error': 'Error occurred during cleanup'}), 500

    if deleted_count > 0:
        saved_ids = {net['network_id'] for net in list_saved_networks(MODEL_DIR)}
        for nid in [nid for nid in active_networks if nid not in saved_ids]:
            del active_networks[nid]
            logger.info(f"Removed network {nid} from memory (deleted from database)")

    logger.info(
        f"Manual cleanup: deleted {deleted_count} network(s) "
        f"older than {days} day(s)"
    )

    return jsonify({
        'deleted_count': deleted_count,
        'days': days,
        'message': (
            f'Successfully deleted {deleted_count} network(s) '
            f'older than {days} day(s)'
        )
    }), 200


# ============================================================================
# EXAMPLE ENDPOINTS
# ============================================================================

def _accepts_test_data(net: Network) -> bool:
    return bool(test_data) and len(test_data[0].input) == net.input_size


def _find_example(network_id: str, successful: bool, max_attempts: int):
    """Pick random test samples until one matches the requested outcome."""
    if network_id not in active_networks:
        return _not_found(network_id, 'Example')

    if not test_data:
        logger.error("Test data not loaded")
        return jsonify({'error': 'Test data not available'}), 500

    net = active_networks[network_id]['network']
    if not _accepts_test_data(net):
        return jsonify({
            'error': f'Network takes {net.input_size} inputs but test samples '
                     f'have {len(test_data[0].input)}'
        }), 400

    rng = np.random.default_rng()

    for attempt in range(max_attempts):
        index = int(rng.integers(0, len(test_data)))
        sample = test_data[index]

        output = net.predict(sample.input)
        predicted_digit = predicted_label(output)
        actual_digit = sample.label

        if (predicted_digit == actual_digit) == successful:
            logger.debug(f"Found example on attempt {attempt + 1}")
            return jsonify({
                'network_id': network_id,
                'example_index': index,
                'predicted_digit': predicted_digit,
                'actual_digit': actual_digit,
                'image_data': create_digit_image(
                    sample.input, predicted_digit, actual_digit
                ),
                'output_weights': net.weights[-1].to_list(),
                'network_output': array_to_float_list(output)
            }), 200

    kind = 'successful' if successful else 'unsuccessful'
    logger.warning(f"No {kind} example found after {max_attempts} attempts")
    return jsonify({
        'error': f'No {kind} example found after {max_attempts} attempts'
    }), 404


@app.route('/api/networks/<network_id>/successful_example', methods=['GET'])
def get_successful_example(network_id: str):
    """Return a random test example the network predicts correctly."""
    return _find_example(network_id, successful=True, max_attempts=100)


@app.route('/api/networks/<network_id>/unsuccessful_example', methods=['GET'])
def get_unsuccessful_example(network_id: str):
    """Return a random test example the network predicts incorrectly."""
    return _find_example(network_id, successful=False, max_attempts=200)


# ============================================================================
# SERVER STARTUP
# ============================================================================

def main() -> None:
    configure_logging()

    load_mnist_data()
    reload_saved_networks()

    port = int(os.environ.get('PORT', 8000))
    is_production = os.getenv('FLASK_ENV') == 'production'

    logger.info(f"Starting server at http://localhost:{port}/")

    try:
        app.run(
            host='0.0.0.0',
            port=port,
            debug=not is_production,
            use_reloader=False
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use.")
            sys.exit(1)
        raise


if __name__ == '__main__':
    main()
