"""
digit_image.py
~~~~~~~~~~~~~~

Render 28x28 digit samples as PNG images for visual inspection.
"""

import base64
from io import BytesIO
from typing import Optional, Sequence

import numpy as np

# Use non-GUI backend for matplotlib (required for server environments)
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

IMAGE_SIDE = 28


def _draw(pixels: Sequence[float], title: Optional[str]) -> None:
    image = np.asarray(pixels, dtype=np.float64).reshape(IMAGE_SIDE, IMAGE_SIDE)
    plt.figure(figsize=(3, 3))
    plt.imshow(image, cmap='gray', vmin=0.0, vmax=1.0)
    if title:
        plt.title(title)
    plt.axis('off')


def create_digit_image(pixels: Sequence[float], predicted: int, actual: int) -> str:
    """
    Create a base64-encoded PNG image of a digit.

    Args:
        pixels: 784 normalized pixel values
        predicted: The digit the network predicted (0-9)
        actual: The correct digit (0-9)

    Returns:
        Base64-encoded PNG image string
    """
    _draw(pixels, f"Predicted: {predicted} | Actual: {actual}")

    # Save image to a bytes buffer instead of a file
    buffer = BytesIO()
    try:
        plt.savefig(buffer, format='png', bbox_inches='tight')
    finally:
        plt.close()

    return base64.b64encode(buffer.getvalue()).decode('utf-8')


def save_digit_image(
    pixels: Sequence[float],
    path: str,
    title: Optional[str] = None
) -> None:
    """Write a digit as a PNG file at ``path``."""
    _draw(pixels, title)
    try:
        plt.savefig(path, format='png', bbox_inches='tight')
    finally:
        plt.close()
