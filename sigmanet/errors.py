"""
errors.py
~~~~~~~~~

Exception hierarchy for the network engine.

Two families live here:
- Precondition violations (bad shapes, indices, input sizes, layer counts).
  These are caller errors and are raised immediately.
- Persistence errors (unreadable/unwritable files, malformed documents).
  These are recoverable and are meant to be caught by the caller.
"""


class NetworkError(Exception):
    """Base class for every error raised by sigmanet."""


# ============================================================================
# PRECONDITION VIOLATIONS
# ============================================================================

class InvalidShapeError(NetworkError, ValueError):
    """A matrix or layer dimension is smaller than 1."""


class SizeMismatchError(NetworkError, ValueError):
    """The number of supplied values does not fill the requested shape."""


class OutOfBoundsError(NetworkError, IndexError):
    """A (column, row) index lies outside the matrix."""


class DimensionMismatchError(NetworkError, ValueError):
    """Two matrices have incompatible shapes for an operation."""


class InputSizeError(NetworkError, ValueError):
    """The input vector length differs from the network's input size."""


class LayerCountError(NetworkError, ValueError):
    """Fewer than three layer sizes were declared."""


# ============================================================================
# PERSISTENCE
# ============================================================================

class PersistenceError(NetworkError):
    """Base class for recoverable save/load failures."""


class NetworkIOError(PersistenceError, OSError):
    """The destination could not be written or the source could not be read."""


class FormatError(PersistenceError, ValueError):
    """The persisted document does not describe a valid network."""
