"""
mnist_loader.py
~~~~~~~~~~~~~~~

Load MNIST digits from CSV files into training samples.

Each line holds a label followed by 784 pixel values in 0-255::

    5,0,0,0,...,0

Pixels are scaled into [0.01, 0.99] and labels become soft one-hot targets,
which keeps the sigmoid away from its flat regions.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from sigmanet.training import Sample

logger = logging.getLogger(__name__)

IMAGE_SIZE = 28 * 28
NUM_CLASSES = 10

TARGET_ON = 0.99
TARGET_OFF = 0.01


def normalize_pixels(pixels) -> np.ndarray:
    """Scale 0-255 pixel values into [0.01, 0.99]."""
    return (np.asarray(pixels, dtype=np.float64) / 255.0) * 0.99 + 0.01


def soft_one_hot(label: int, classes: int = NUM_CLASSES) -> List[float]:
    """
    Encode ``label`` as a soft one-hot target.

    Raises:
        ValueError: If label is outside [0, classes)
    """
    if not 0 <= label < classes:
        raise ValueError(f"Label must be in [0, {classes}), got {label}")
    target = [TARGET_OFF] * classes
    target[label] = TARGET_ON
    return target


def record_to_sample(record: Sequence[float], classes: int = NUM_CLASSES) -> Sample:
    """
    Convert one CSV record (label first, then pixels) into a sample.

    Raises:
        ValueError: If the label is not a valid class index
    """
    label = record[0]
    if float(label) != int(label):
        raise ValueError(f"Label must be an integer, got {label}")
    return Sample(
        input=normalize_pixels(record[1:]).tolist(),
        target=soft_one_hot(int(label), classes)
    )


def load_csv(
    path: str,
    limit: Optional[int] = None,
    classes: int = NUM_CLASSES,
    image_size: Optional[int] = IMAGE_SIZE
) -> List[Sample]:
    """
    Load every record of an MNIST CSV file.

    Args:
        path: CSV file path
        limit: Only read the first ``limit`` records
        classes: Number of output classes
        image_size: Pixels expected per record, or None to accept any width

    Returns:
        list of Sample

    Raises:
        OSError: If the file cannot be opened
        ValueError: If a record is malformed, has the wrong number of pixels
            or has an invalid label
    """
    logger.info(f"Loading MNIST data from '{path}'...")
    records = np.loadtxt(
        path,
        delimiter=',',
        dtype=np.float64,
        ndmin=2,
        max_rows=limit
    )
    if records.size and records.shape[1] < 2:
        raise ValueError(
            f"Expected a label and pixel values per line in '{path}'"
        )
    if records.size and image_size is not None and records.shape[1] != image_size + 1:
        raise ValueError(
            f"Expected {image_size} pixels per record in '{path}', "
            f"got {records.shape[1] - 1}"
        )

    samples = []
    for line, record in enumerate(records, start=1):
        try:
            samples.append(record_to_sample(record, classes))
        except ValueError as e:
            raise ValueError(f"{path}, record {line}: {e}") from e

    logger.info(f"Loaded {len(samples)} samples from '{path}'")
    return samples


def predicted_label(output: Sequence[float]) -> int:
    """Index of the strongest output activation."""
    return int(np.argmax(output))
