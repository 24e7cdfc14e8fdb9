"""
test_serialization.py
~~~~~~~~~~~~~~~~~~~~~

Unit tests for JSON network persistence.
"""

import json
import os

import numpy as np
import pytest

from sigmanet import serialization
from sigmanet.activation import Activation, register_activation
from sigmanet.errors import FormatError, NetworkIOError, PersistenceError
from sigmanet.network import Network


@pytest.fixture
def document(trained_network):
    return serialization.to_document(trained_network)


@pytest.mark.unit
class TestDocument:
    """Structure of the saved document."""

    def test_document_fields(self, trained_network, document):
        assert document['input_size'] == 3
        assert document['layer_count'] == 3
        assert document['learning_rate'] == 0.1
        assert document['activation'] == 'sigmoid'
        assert [(w['rows'], w['columns']) for w in document['weights']] == [
            (4, 3), (2, 4)
        ]
        assert document['weights'][0]['values'] == trained_network.weights[0].values()

    def test_dumps_is_readable_json(self, trained_network):
        text = serialization.dumps(trained_network)
        assert '\n    "input_size": 3' in text
        assert json.loads(text)['layer_count'] == 3

    def test_round_trip_is_exact(self, trained_network):
        restored = serialization.loads(serialization.dumps(trained_network))
        assert restored.sizes == trained_network.sizes
        assert restored.learning_rate == trained_network.learning_rate
        for original, loaded in zip(trained_network.weights, restored.weights):
            assert np.array_equal(original.to_array(), loaded.to_array())

    def test_custom_activation_is_restored(self, activation_registry):
        softsign = Activation(
            name='softsign_roundtrip',
            evaluate=lambda x: x / (1 + abs(x)),
            derivative=lambda x: 1 / (1 + abs(x)) ** 2
        )
        register_activation(softsign)
        net = Network(0.1, 3, 4, 2, seed=4, activation=softsign)

        restored = serialization.loads(serialization.dumps(net))
        assert restored.activation is softsign

    def test_missing_activation_defaults_to_sigmoid(self, document):
        del document['activation']
        assert serialization.from_document(document).activation.name == 'sigmoid'


@pytest.mark.unit
class TestMalformedDocuments:
    """Every structural problem surfaces as FormatError."""

    def test_invalid_json(self):
        with pytest.raises(FormatError):
            serialization.loads('{"input_size": 3,')

    def test_deeply_nested_json(self):
        with pytest.raises(FormatError):
            serialization.loads('[' * 100000)

    def test_not_an_object(self):
        with pytest.raises(FormatError):
            serialization.loads('[1, 2, 3]')

    @pytest.mark.parametrize(
        "key", ['input_size', 'layer_count', 'learning_rate', 'weights']
    )
    def test_missing_key(self, document, key):
        del document[key]
        with pytest.raises(FormatError):
            serialization.from_document(document)

    def test_layer_count_mismatch(self, document):
        document['layer_count'] = 4
        with pytest.raises(FormatError):
            serialization.from_document(document)

    def test_input_size_mismatch(self, document):
        document['input_size'] = 5
        with pytest.raises(FormatError):
            serialization.from_document(document)

    def test_value_count_mismatch(self, document):
        document['weights'][1]['values'].pop()
        with pytest.raises(FormatError):
            serialization.from_document(document)

    def test_huge_shape_with_short_values(self, document):
        document['weights'][1] = {
            'rows': 10 ** 6, 'columns': 10 ** 6, 'values': [0.0]
        }
        with pytest.raises(FormatError):
            serialization.from_document(document)

    def test_broken_shape_chain(self, document):
        document['weights'][1] = {'rows': 2, 'columns': 5, 'values': [0.0] * 10}
        with pytest.raises(FormatError):
            serialization.from_document(document)

    def test_too_few_layers(self, document):
        document['weights'] = document['weights'][:1]
        document['layer_count'] = 2
        with pytest.raises(FormatError):
            serialization.from_document(document)

    def test_non_numeric_values(self, document):
        document['weights'][0]['values'][0] = 'x'
        with pytest.raises(FormatError):
            serialization.from_document(document)

    def test_non_integer_shape(self, document):
        document['weights'][0]['rows'] = 4.0
        with pytest.raises(FormatError):
            serialization.from_document(document)

    def test_unknown_activation(self, document):
        document['activation'] = 'no-such-activation'
        with pytest.raises(FormatError):
            serialization.from_document(document)

    def test_format_error_is_value_error(self):
        with pytest.raises(ValueError):
            serialization.loads('not json')


@pytest.mark.integration
class TestFiles:
    """Network.save / Network.load through the file system."""

    def test_save_then_load_predicts_identically(self, trained_network, tmp_path):
        path = str(tmp_path / "net.json")
        trained_network.save(path)
        restored = Network.load(path)

        x = [0.2, 0.6, 0.9]
        assert np.array_equal(restored.predict(x), trained_network.predict(x))

    def test_loaded_network_trains_identically(
        self, trained_network, small_samples, tmp_path
    ):
        path = str(tmp_path / "net.json")
        trained_network.save(path)
        restored = Network.load(path)

        trained_network.train(small_samples[0])
        restored.train(small_samples[0])

        for a, b in zip(trained_network.weights, restored.weights):
            assert a == b

    def test_save_to_missing_directory(self, simple_network, tmp_path):
        path = str(tmp_path / "missing" / "net.json")
        with pytest.raises(NetworkIOError) as exc_info:
            simple_network.save(path)
        assert isinstance(exc_info.value, OSError)
        assert not os.path.exists(path)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(NetworkIOError):
            Network.load(str(tmp_path / "nope.json"))

    def test_load_corrupt_file(self, tmp_path):
        path = tmp_path / "corrupt.json"
        path.write_text('{"input_size": "three"}')
        with pytest.raises(FormatError):
            Network.load(str(path))

    def test_load_binary_file(self, tmp_path):
        path = tmp_path / "binary.json"
        path.write_bytes(b'\xff\xfe\x00\x81')
        with pytest.raises(PersistenceError):
            Network.load(str(path))

    def test_load_deeply_nested_file(self, tmp_path):
        path = tmp_path / "nested.json"
        path.write_text('[' * 100000)
        with pytest.raises(FormatError):
            Network.load(str(path))
