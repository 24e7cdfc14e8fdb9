"""
matrix.py
~~~~~~~~~

Dense 2-D float64 matrix used by the network engine.

Values are stored in a numpy array of shape (rows, columns). The public
element accessors take a (column, row) pair, matching how the network
reads and writes its weights. Shape never changes after construction;
``transpose`` and ``copy`` always return new matrices.
"""

import numbers
from typing import Callable, List, Sequence, Tuple

import numpy as np

from sigmanet.errors import (
    DimensionMismatchError,
    InvalidShapeError,
    OutOfBoundsError,
    SizeMismatchError,
)


def _check_shape(rows, columns) -> None:
    for value in (rows, columns):
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise InvalidShapeError(
                f"Number of rows and columns must be integers, "
                f"got {rows!r}x{columns!r}"
            )
    if rows < 1 or columns < 1:
        raise InvalidShapeError(
            f"Number of rows and columns must be positive, "
            f"got {rows}x{columns}"
        )


class Matrix:
    """Rectangular grid of 64-bit floats with fixed rows and columns."""

    __slots__ = ('_data',)

    def __init__(self, rows: int, columns: int):
        """
        Create a zero-filled matrix.

        Args:
            rows: Number of rows (at least 1)
            columns: Number of columns (at least 1)

        Raises:
            InvalidShapeError: If either dimension is not an integer or is
                smaller than 1
        """
        _check_shape(rows, columns)
        self._data = np.zeros((int(rows), int(columns)), dtype=np.float64)

    @classmethod
    def _wrap(cls, array: np.ndarray) -> 'Matrix':
        """Adopt an existing 2-D float64 array without copying it."""
        matrix = cls.__new__(cls)
        matrix._data = array
        return matrix

    @classmethod
    def from_values(
        cls,
        rows: int,
        columns: int,
        values: Sequence[float]
    ) -> 'Matrix':
        """
        Create a matrix filled row-major from a flat sequence.

        Dimensions are checked before anything is allocated.

        Raises:
            InvalidShapeError: If either dimension is not a positive integer
            SizeMismatchError: If len(values) != rows * columns
        """
        _check_shape(rows, columns)
        if len(values) != rows * columns:
            raise SizeMismatchError(
                f"Expected {rows * columns} values for a {rows}x{columns} "
                f"matrix, got {len(values)}"
            )
        data = np.array(values, dtype=np.float64).reshape(int(rows), int(columns))
        return cls._wrap(data)

    @classmethod
    def column(cls, values: Sequence[float]) -> 'Matrix':
        """Create a (len(values) x 1) column matrix."""
        return cls.from_values(len(values), 1, values)

    @classmethod
    def from_array(cls, array) -> 'Matrix':
        """Create a matrix holding a copy of a 2-D array-like."""
        data = np.array(array, dtype=np.float64)
        if data.ndim != 2:
            raise InvalidShapeError(
                f"Expected a 2-D array, got {data.ndim} dimension(s)"
            )
        rows, columns = data.shape
        if rows < 1 or columns < 1:
            raise InvalidShapeError(
                f"Number of rows and columns must be positive, "
                f"got {rows}x{columns}"
            )
        return cls._wrap(data)

    # ------------------------------------------------------------------
    # Shape and element access
    # ------------------------------------------------------------------

    @property
    def rows(self) -> int:
        return self._data.shape[0]

    @property
    def columns(self) -> int:
        return self._data.shape[1]

    @property
    def shape(self) -> Tuple[int, int]:
        return self._data.shape

    def _check_bounds(self, column: int, row: int) -> None:
        if not (0 <= column < self.columns and 0 <= row < self.rows):
            raise OutOfBoundsError(
                f"Index (column={column}, row={row}) is out of bounds for a "
                f"{self.rows}x{self.columns} matrix"
            )

    def get(self, column: int, row: int) -> float:
        """Return the element at (column, row)."""
        self._check_bounds(column, row)
        return float(self._data[row, column])

    def set(self, column: int, row: int, value: float) -> None:
        """Overwrite the element at (column, row)."""
        self._check_bounds(column, row)
        self._data[row, column] = value

    # ------------------------------------------------------------------
    # In-place transforms
    # ------------------------------------------------------------------

    def scale(self, factor: float) -> None:
        """Multiply every element by ``factor`` in place."""
        self._data *= factor

    def apply(self, func: Callable[[float], float]) -> None:
        """Replace every element ``x`` with ``func(x)`` in place."""
        mapped = np.vectorize(func, otypes=[np.float64])(self._data)
        self._data[:, :] = mapped

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    def to_array(self) -> np.ndarray:
        """Return a copy of the underlying (rows, columns) array."""
        return self._data.copy()

    def to_list(self) -> List[List[float]]:
        """Return the elements as nested row-major lists."""
        return self._data.tolist()

    def values(self) -> List[float]:
        """Return the elements as a flat row-major list."""
        return self._data.ravel().tolist()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Matrix):
            return NotImplemented
        return same_shape(self, other) and bool(
            np.array_equal(self._data, other._data)
        )

    __hash__ = None

    def __repr__(self) -> str:
        return f"Matrix(rows={self.rows}, columns={self.columns})"

    def __str__(self) -> str:
        rows = [
            '[' + ', '.join(f"{value:.3f}" for value in row) + ']'
            for row in self._data
        ]
        return '[' + '\n '.join(rows) + ']'


def same_shape(a: Matrix, b: Matrix) -> bool:
    return a.shape == b.shape


def _require_same_shape(a: Matrix, b: Matrix, operation: str) -> None:
    if not same_shape(a, b):
        raise DimensionMismatchError(
            f"Dimensions do not match for {operation}: "
            f"{a.rows}x{a.columns} and {b.rows}x{b.columns}"
        )


def add(a: Matrix, b: Matrix) -> Matrix:
    """Elementwise sum of two equally shaped matrices."""
    _require_same_shape(a, b, 'addition')
    return Matrix._wrap(a._data + b._data)


def subtract(a: Matrix, b: Matrix) -> Matrix:
    """Elementwise difference ``a - b`` of two equally shaped matrices."""
    _require_same_shape(a, b, 'subtraction')
    return Matrix._wrap(a._data - b._data)


def multiply_elementwise(a: Matrix, b: Matrix) -> Matrix:
    """Elementwise (Hadamard) product of two equally shaped matrices."""
    _require_same_shape(a, b, 'element-wise multiplication')
    return Matrix._wrap(a._data * b._data)


def dot(a: Matrix, b: Matrix) -> Matrix:
    """
    Matrix product of ``a`` and ``b``.

    Returns:
        A new (a.rows x b.columns) matrix

    Raises:
        DimensionMismatchError: If a.columns != b.rows
    """
    if a.columns != b.rows:
        raise DimensionMismatchError(
            f"Dimensions do not match for dot product: "
            f"{a.rows}x{a.columns} and {b.rows}x{b.columns}"
        )
    return Matrix._wrap(np.dot(a._data, b._data))


def transpose(m: Matrix) -> Matrix:
    """Return a new matrix with rows and columns swapped."""
    return Matrix._wrap(m._data.T.copy())


def copy(m: Matrix) -> Matrix:
    """Return an independent deep duplicate of ``m``."""
    return Matrix._wrap(m._data.copy())
