"""
exceptions.py
~~~~~~~~~~~~~

Error types raised by the network components.
"""


class ScratchNetError(Exception):
    """Base class for all library errors."""


class ConfigurationError(ScratchNetError):
    """
    Raised for an invalid network configuration.

    Covers incompatible layer chains, empty networks and unknown
    layer or activation type codes.
    """


class ShapeMismatchError(ConfigurationError):
    """Raised when a matrix is assigned to a layer with the wrong shape."""

    def __init__(self, name: str, expected: tuple, actual: tuple):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{name} must have shape {expected}, got {actual}"
        )


class FileIOError(ScratchNetError):
    """Raised when a model file cannot be read or written."""
