"""
model_persistence.py
~~~~~~~~~~~~~~~~~~~~

Binary file persistence for neural network layer stacks.

File layout (little-endian)::

    int32 num_layers
    per layer, either
      Dense:      int32 LayerType.DENSE, int32 n_input, int32 n_output,
                  float64 weights[n_input * n_output], float64 biases[n_output],
                  float64 l1_weights, l2_weights, l1_biases, l2_biases,
                  float64 weights_optimizer[...], biases_optimizer[...],
                  float64 weights_optimizer_additional[...],
                  float64 biases_optimizer_additional[...]
      Activation: int32 LayerType.ACTIVATION, int32 ActivationType

Matrices are stored row-major. A saved stack restores every piece of
Dense state, so training resumes exactly where it stopped.
"""

import os
import struct
import tempfile
import logging
from typing import BinaryIO, Generator, List, Optional, Sequence
from contextlib import contextmanager

import numpy as np

from .activations import Activation, create_activation
from .exceptions import ConfigurationError, FileIOError
from .layers import Dense, Layer, LayerType

# Configure module logger
logger = logging.getLogger(__name__)

_INT = struct.Struct('<i')
_DOUBLE = struct.Struct('<d')
_FLOAT64 = np.dtype('<f8')


# ============================================================================
# LOW-LEVEL CODEC
# ============================================================================

def _write_int(stream: BinaryIO, value: int) -> None:
    stream.write(_INT.pack(int(value)))


def _write_double(stream: BinaryIO, value: float) -> None:
    stream.write(_DOUBLE.pack(float(value)))


def _write_matrix(stream: BinaryIO, matrix: np.ndarray) -> None:
    stream.write(np.ascontiguousarray(matrix, dtype=_FLOAT64).tobytes())


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise FileIOError(
            f"Unexpected end of file: wanted {size} bytes, got {len(data)}"
        )
    return data


def _read_int(stream: BinaryIO) -> int:
    return _INT.unpack(_read_exact(stream, _INT.size))[0]


def _read_double(stream: BinaryIO) -> float:
    return _DOUBLE.unpack(_read_exact(stream, _DOUBLE.size))[0]


def _read_matrix(stream: BinaryIO, rows: int, cols: int) -> np.ndarray:
    data = _read_exact(stream, rows * cols * _FLOAT64.itemsize)
    return np.frombuffer(data, dtype=_FLOAT64).reshape(rows, cols).astype(np.float64)


# ============================================================================
# LAYER RECORDS
# ============================================================================

def write_layers(stream: BinaryIO, layers: Sequence[Layer]) -> None:
    """
    Encode a layer stack onto a binary stream.

    Args:
        stream: Writable binary stream
        layers: Layers in forward order

    Raises:
        ConfigurationError: If a layer has no binary representation
    """
    _write_int(stream, len(layers))

    for index, layer in enumerate(layers):
        if isinstance(layer, Dense):
            _write_int(stream, LayerType.DENSE)
            _write_int(stream, layer.n_input)
            _write_int(stream, layer.n_output)
            _write_matrix(stream, layer.weights)
            _write_matrix(stream, layer.biases)
            _write_double(stream, layer.l1_weights_regularizer)
            _write_double(stream, layer.l2_weights_regularizer)
            _write_double(stream, layer.l1_biases_regularizer)
            _write_double(stream, layer.l2_biases_regularizer)
            _write_matrix(stream, layer.weights_optimizer)
            _write_matrix(stream, layer.biases_optimizer)
            _write_matrix(stream, layer.weights_optimizer_additional)
            _write_matrix(stream, layer.biases_optimizer_additional)
        elif isinstance(layer, Activation):
            _write_int(stream, LayerType.ACTIVATION)
            _write_int(stream, layer.activation_type)
        else:
            raise ConfigurationError(
                f"Layer {index} ({layer!r}) cannot be serialized"
            )


def _read_dense(stream: BinaryIO) -> Dense:
    n_input = _read_int(stream)
    n_output = _read_int(stream)
    if n_input < 1 or n_output < 1:
        raise ConfigurationError(
            f"Invalid Dense shape in model file: ({n_input}, {n_output})"
        )

    weights = _read_matrix(stream, n_input, n_output)
    biases = _read_matrix(stream, 1, n_output)
    regularizers = [_read_double(stream) for _ in range(4)]

    layer = Dense(n_input, n_output, *regularizers)
    layer.weights = weights
    layer.biases = biases
    layer.weights_optimizer = _read_matrix(stream, n_input, n_output)
    layer.biases_optimizer = _read_matrix(stream, 1, n_output)
    layer.weights_optimizer_additional = _read_matrix(stream, n_input, n_output)
    layer.biases_optimizer_additional = _read_matrix(stream, 1, n_output)
    return layer


def read_layers(stream: BinaryIO) -> List[Layer]:
    """
    Decode a layer stack from a binary stream.

    Args:
        stream: Readable binary stream positioned at the layer count

    Returns:
        list: Layers in forward order

    Raises:
        ConfigurationError: On an unknown layer or activation code
        FileIOError: If the stream ends early
    """
    num_layers = _read_int(stream)
    if num_layers < 0:
        raise ConfigurationError(f"Invalid layer count in model file: {num_layers}")

    layers: List[Layer] = []
    for _ in range(num_layers):
        layer_type = _read_int(stream)

        if layer_type == LayerType.DENSE:
            layers.append(_read_dense(stream))
        elif layer_type == LayerType.ACTIVATION:
            layers.append(create_activation(_read_int(stream)))
        else:
            raise ConfigurationError(f"Unknown layer type code: {layer_type}")

    return layers


# ============================================================================
# FILE OPERATIONS
# ============================================================================

@contextmanager
def _atomic_write(path: str) -> Generator[BinaryIO, None, None]:
    """
    Context manager writing to a uniquely named temporary sibling of ``path``.

    The temporary file replaces ``path`` only when the block completes;
    on any error only that temporary file is removed.

    Yields:
        BinaryIO: Writable binary stream
    """
    tmp_fd, tmp_path = tempfile.mkstemp(
        dir=os.path.dirname(path) or '.',
        prefix=f"{os.path.basename(path)}.",
        suffix='.tmp'
    )
    stream = os.fdopen(tmp_fd, 'wb')
    try:
        yield stream
        stream.close()
        os.replace(tmp_path, path)
    except BaseException:
        stream.close()
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def save_layers(layers: Sequence[Layer], path: str) -> bool:
    """
    Save a layer stack to a binary model file.

    Args:
        layers: Layers in forward order
        path: Destination file path

    Returns:
        bool: True if the save was successful, False otherwise

    Example:
        >>> save_layers(net.layers, 'models/mnist.bin')
        True
    """
    if not path or not isinstance(path, str):
        logger.error("Invalid path: must be a non-empty string")
        return False

    try:
        with _atomic_write(path) as stream:
            write_layers(stream, layers)

        logger.info(f"Saved {len(layers)} layer(s) to '{path}'")
        return True

    except ConfigurationError as e:
        logger.error(f"Configuration error saving model to '{path}': {e}")
        return False
    except OSError as e:
        logger.error(f"File error saving model to '{path}': {e}")
        return False
    except Exception as e:
        logger.exception(f"Unexpected error saving model to '{path}': {e}")
        return False


def load_layers(path: str) -> Optional[List[Layer]]:
    """
    Load a layer stack from a binary model file.

    Args:
        path: Model file path

    Returns:
        The loaded layers, or None if the file is missing or invalid

    Example:
        >>> layers = load_layers('models/mnist.bin')
        >>> if layers:
        ...     print(f"Loaded {len(layers)} layers")
    """
    if not path or not isinstance(path, str):
        logger.error("Invalid path: must be a non-empty string")
        return None

    if not os.path.isfile(path):
        logger.error(f"Model file '{path}' not found")
        return None

    try:
        with open(path, 'rb') as stream:
            layers = read_layers(stream)
            if stream.read(1):
                logger.warning(f"Ignoring trailing data in model file '{path}'")

        logger.info(f"Loaded {len(layers)} layer(s) from '{path}'")
        return layers

    except ConfigurationError as e:
        logger.error(f"Invalid model file '{path}': {e}")
        return None
    except FileIOError as e:
        logger.error(f"Corrupt model file '{path}': {e}")
        return None
    except OSError as e:
        logger.error(f"File error loading model from '{path}': {e}")
        return None
    except Exception as e:
        logger.exception(f"Unexpected error loading model from '{path}': {e}")
        return None
