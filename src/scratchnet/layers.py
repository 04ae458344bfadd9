"""
layers.py
~~~~~~~~~

Layer base class and the fully connected Dense layer.

Every layer implements the same contract: ``forward`` maps a batch of
inputs (one row per example) to outputs and caches whatever the
backward pass needs; ``backward`` maps the gradient of the loss with
respect to the layer's output to the gradient with respect to its input.
"""

import enum
from typing import Optional, Tuple

import numpy as np

from .exceptions import ShapeMismatchError


class LayerType(enum.IntEnum):
    """Type tag stored on every layer and in model files."""

    DENSE = 0
    ACTIVATION = 1


class Layer:
    """Abstract base class for layers in a network."""

    def __init__(self, layer_type: LayerType):
        self.layer_type = layer_type

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def backward(self, dvalues: np.ndarray) -> np.ndarray:
        raise NotImplementedError


def _as_matrix(name: str, value: np.ndarray, expected: Tuple[int, int]) -> np.ndarray:
    """Copy ``value`` into a float64 matrix, checking its shape."""
    matrix = np.array(value, dtype=np.float64)
    if matrix.shape != expected:
        raise ShapeMismatchError(name, expected, matrix.shape)
    return matrix


class Dense(Layer):
    """
    Fully connected layer computing ``inputs @ weights + biases``.

    Besides its parameters the layer carries two pairs of optimizer state
    matrices. Their meaning belongs to the optimizer (velocity for SGD,
    squared-gradient cache for Adagrad and RMSProp, cache and momentum for
    Adam); they live here because one optimizer updates many layers.
    """

    def __init__(
        self,
        n_input: int,
        n_output: int,
        l1_weights_regularizer: float = 0.0,
        l2_weights_regularizer: float = 0.0,
        l1_biases_regularizer: float = 0.0,
        l2_biases_regularizer: float = 0.0,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None
    ):
        """
        Initialize the layer.

        Args:
            n_input: Number of input features
            n_output: Number of output units
            l1_weights_regularizer: L1 penalty factor on weights
            l2_weights_regularizer: L2 penalty factor on weights
            l1_biases_regularizer: L1 penalty factor on biases
            l2_biases_regularizer: L2 penalty factor on biases
            rng: Random generator used for weight initialization
            seed: Seed for a new generator when ``rng`` is not given

        Raises:
            ValueError: If a dimension is not positive
        """
        super().__init__(LayerType.DENSE)

        if n_input < 1 or n_output < 1:
            raise ValueError(
                f"Dense dimensions must be positive, got ({n_input}, {n_output})"
            )

        self._n_input = int(n_input)
        self._n_output = int(n_output)

        if rng is None:
            rng = np.random.default_rng(seed)

        self._weights = 0.01 * rng.standard_normal((self._n_input, self._n_output))
        self._biases = np.zeros((1, self._n_output))

        self._dweights = np.zeros_like(self._weights)
        self._dbiases = np.zeros_like(self._biases)

        self._weights_optimizer = np.zeros_like(self._weights)
        self._biases_optimizer = np.zeros_like(self._biases)
        self._weights_optimizer_additional = np.zeros_like(self._weights)
        self._biases_optimizer_additional = np.zeros_like(self._biases)

        self.l1_weights_regularizer = float(l1_weights_regularizer)
        self.l2_weights_regularizer = float(l2_weights_regularizer)
        self.l1_biases_regularizer = float(l1_biases_regularizer)
        self.l2_biases_regularizer = float(l2_biases_regularizer)

        self._forward_input: Optional[np.ndarray] = None

    def __repr__(self) -> str:
        return f"Dense({self._n_input}, {self._n_output})"

    # ------------------------------------------------------------------
    # Forward / backward
    # ------------------------------------------------------------------

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        """
        Compute the affine transform of a batch.

        Args:
            inputs: Matrix of shape (batch, n_input)

        Returns:
            Matrix of shape (batch, n_output)
        """
        self._forward_input = inputs
        return np.dot(inputs, self._weights) + self._biases

    def backward(self, dvalues: np.ndarray) -> np.ndarray:
        """
        Compute parameter gradients and the gradient for the previous layer.

        Regularization gradients are added to ``dweights`` and ``dbiases``
        for every regularizer that is greater than zero.

        Args:
            dvalues: Gradient of the loss w.r.t. this layer's output,
                shape (batch, n_output)

        Returns:
            Gradient w.r.t. this layer's input, shape (batch, n_input)

        Raises:
            RuntimeError: If called before ``forward``
        """
        if self._forward_input is None:
            raise RuntimeError("Dense backward called before forward")

        self._dweights = np.dot(self._forward_input.T, dvalues)
        self._dbiases = np.sum(dvalues, axis=0, keepdims=True)

        if self.l1_weights_regularizer > 0:
            sign = np.where(self._weights < 0, -1.0, 1.0)
            self._dweights += self.l1_weights_regularizer * sign
        if self.l2_weights_regularizer > 0:
            self._dweights += 2 * self.l2_weights_regularizer * self._weights

        if self.l1_biases_regularizer > 0:
            sign = np.where(self._biases < 0, -1.0, 1.0)
            self._dbiases += self.l1_biases_regularizer * sign
        if self.l2_biases_regularizer > 0:
            self._dbiases += 2 * self.l2_biases_regularizer * self._biases

        return np.dot(dvalues, self._weights.T)

    # ------------------------------------------------------------------
    # Shape
    # ------------------------------------------------------------------

    @property
    def n_input(self) -> int:
        return self._n_input

    @property
    def n_output(self) -> int:
        return self._n_output

    @property
    def shape(self) -> Tuple[int, int]:
        """(n_input, n_output)"""
        return self._n_input, self._n_output

    def parameters(self) -> int:
        """Number of learnable parameters (weights plus biases)."""
        return self._n_input * self._n_output + self._n_output

    # ------------------------------------------------------------------
    # Parameters and gradients
    # ------------------------------------------------------------------

    @property
    def weights(self) -> np.ndarray:
        return self._weights

    @weights.setter
    def weights(self, value: np.ndarray) -> None:
        self._weights = _as_matrix('weights', value, self.shape)

    @property
    def biases(self) -> np.ndarray:
        return self._biases

    @biases.setter
    def biases(self, value: np.ndarray) -> None:
        self._biases = _as_matrix('biases', value, (1, self._n_output))

    @property
    def dweights(self) -> np.ndarray:
        return self._dweights

    @property
    def dbiases(self) -> np.ndarray:
        return self._dbiases

    # ------------------------------------------------------------------
    # Optimizer state
    # ------------------------------------------------------------------

    @property
    def weights_optimizer(self) -> np.ndarray:
        return self._weights_optimizer

    @weights_optimizer.setter
    def weights_optimizer(self, value: np.ndarray) -> None:
        self._weights_optimizer = _as_matrix(
            'weights_optimizer', value, self.shape
        )

    @property
    def biases_optimizer(self) -> np.ndarray:
        return self._biases_optimizer

    @biases_optimizer.setter
    def biases_optimizer(self, value: np.ndarray) -> None:
        self._biases_optimizer = _as_matrix(
            'biases_optimizer', value, (1, self._n_output)
        )

    @property
    def weights_optimizer_additional(self) -> np.ndarray:
        return self._weights_optimizer_additional

    @weights_optimizer_additional.setter
    def weights_optimizer_additional(self, value: np.ndarray) -> None:
        self._weights_optimizer_additional = _as_matrix(
            'weights_optimizer_additional', value, self.shape
        )

    @property
    def biases_optimizer_additional(self) -> np.ndarray:
        return self._biases_optimizer_additional

    @biases_optimizer_additional.setter
    def biases_optimizer_additional(self, value: np.ndarray) -> None:
        self._biases_optimizer_additional = _as_matrix(
            'biases_optimizer_additional', value, (1, self._n_output)
        )
