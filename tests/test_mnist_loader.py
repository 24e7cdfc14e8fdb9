"""
test_mnist_loader.py
~~~~~~~~~~~~~~~~~~~~

Unit tests for MNIST CSV ingestion and digit image rendering.
"""

import base64

import numpy as np
import pytest

from sigmanet.digit_image import create_digit_image, save_digit_image
from sigmanet.mnist_loader import (
    load_csv,
    normalize_pixels,
    predicted_label,
    record_to_sample,
    soft_one_hot,
)

PNG_MAGIC = b'\x89PNG'


@pytest.mark.unit
class TestEncoding:

    def test_normalize_pixels_bounds(self):
        values = normalize_pixels([0, 255, 127.5])
        assert values[0] == pytest.approx(0.01)
        assert values[1] == pytest.approx(1.0)
        assert values[2] == pytest.approx(0.505)

    def test_soft_one_hot(self):
        assert soft_one_hot(3) == [0.01, 0.01, 0.01, 0.99] + [0.01] * 6
        assert soft_one_hot(1, classes=2) == [0.01, 0.99]

    @pytest.mark.parametrize("label", [-1, 10])
    def test_soft_one_hot_invalid_label(self, label):
        with pytest.raises(ValueError):
            soft_one_hot(label)

    def test_record_to_sample(self):
        sample = record_to_sample([7.0] + [0.0] * 784)
        assert len(sample.input) == 784
        assert sample.input[0] == pytest.approx(0.01)
        assert sample.label == 7
        assert sample.target[7] == 0.99

    def test_record_with_fractional_label(self):
        with pytest.raises(ValueError):
            record_to_sample([2.5, 0.0, 0.0])

    def test_predicted_label(self):
        assert predicted_label(np.array([0.1, 0.7, 0.3])) == 1


@pytest.mark.unit
class TestLoadCsv:

    def test_loads_every_record(self, mnist_csv):
        samples = load_csv(mnist_csv)
        assert len(samples) == 10
        assert [s.label for s in samples] == list(range(10))
        assert all(len(s.input) == 784 for s in samples)
        assert max(samples[0].input) == pytest.approx(1.0)
        assert min(samples[0].input) == pytest.approx(0.01)

    def test_limit(self, mnist_csv):
        assert len(load_csv(mnist_csv, limit=3)) == 3

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_csv(str(tmp_path / "missing.csv"))

    def test_non_numeric_content(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("label,pixel0\n1,2\n")
        with pytest.raises(ValueError):
            load_csv(str(path))

    def test_record_width_mismatch(self, write_mnist_csv):
        path = write_mnist_csv("narrow.csv", [(3, [0] * 783)])
        with pytest.raises(ValueError, match="783"):
            load_csv(path)

    def test_any_width_when_image_size_is_none(self, write_mnist_csv):
        path = write_mnist_csv("tiny.csv", [(1, [0, 255])])
        samples = load_csv(path, classes=2, image_size=None)
        assert len(samples[0].input) == 2
        assert samples[0].label == 1

    def test_invalid_label(self, write_mnist_csv):
        path = write_mnist_csv("bad_label.csv", [(12, [0] * 784)])
        with pytest.raises(ValueError) as exc_info:
            load_csv(path)
        assert "record 1" in str(exc_info.value)


@pytest.mark.unit
class TestDigitImage:

    def test_create_digit_image_is_base64_png(self):
        encoded = create_digit_image([0.01] * 784, predicted=3, actual=5)
        assert base64.b64decode(encoded).startswith(PNG_MAGIC)

    def test_save_digit_image(self, tmp_path):
        path = tmp_path / "digit.png"
        save_digit_image(np.linspace(0.01, 0.99, 784), str(path), title="7")
        assert path.read_bytes().startswith(PNG_MAGIC)

    def test_wrong_pixel_count(self, tmp_path):
        with pytest.raises(ValueError):
            save_digit_image([0.5] * 10, str(tmp_path / "x.png"))
