"""
activations.py
~~~~~~~~~~~~~~

Activation layers. They share the Layer contract but carry no
learnable parameters, only the forward state their derivative needs.
"""

import enum
from typing import Optional

import numpy as np

from .exceptions import ConfigurationError
from .layers import Layer, LayerType


class ActivationType(enum.IntEnum):
    """Activation codes as written in model files."""

    RELU = 0
    SIGMOID = 1
    TANH = 2
    SOFTMAX = 3
    LINEAR = 4


class Activation(Layer):
    """Base class for activation layers."""

    def __init__(self, activation_type: ActivationType):
        super().__init__(LayerType.ACTIVATION)
        self.activation_type = activation_type
        self.forward_input: Optional[np.ndarray] = None
        self.forward_output: Optional[np.ndarray] = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def _require_forward(self) -> None:
        if self.forward_input is None and self.forward_output is None:
            raise RuntimeError(
                f"{self.__class__.__name__} backward called before forward"
            )


class ReLU(Activation):
    """Rectified linear unit."""

    def __init__(self):
        super().__init__(ActivationType.RELU)

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        self.forward_input = inputs
        self.forward_output = np.where(inputs < 0, 0.0, inputs)
        return self.forward_output

    def backward(self, dvalues: np.ndarray) -> np.ndarray:
        # Inputs equal to zero pass no gradient.
        self._require_forward()
        return dvalues * (self.forward_input > 0)


class Sigmoid(Activation):
    """Logistic sigmoid, ``1 / (1 + e^-x)``."""

    def __init__(self):
        super().__init__(ActivationType.SIGMOID)

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        self.forward_input = inputs
        self.forward_output = 1.0 / (1.0 + np.exp(-inputs))
        return self.forward_output

    def backward(self, dvalues: np.ndarray) -> np.ndarray:
        self._require_forward()
        return self.forward_output * (1.0 - self.forward_output) * dvalues


class Tanh(Activation):
    """Hyperbolic tangent."""

    def __init__(self):
        super().__init__(ActivationType.TANH)

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        self.forward_input = inputs
        self.forward_output = np.tanh(inputs)
        return self.forward_output

    def backward(self, dvalues: np.ndarray) -> np.ndarray:
        self._require_forward()
        return (1.0 - np.square(self.forward_output)) * dvalues


class Softmax(Activation):
    """
    Row-wise softmax.

    The forward pass subtracts each row's maximum before exponentiating
    so large logits do not overflow. The backward pass applies the full
    Jacobian ``diag(s) - s s^T`` of every row, which costs O(classes^2)
    per example; pair the final Dense layer with ``CCESoftmax`` instead
    when training a classifier.
    """

    def __init__(self):
        super().__init__(ActivationType.SOFTMAX)

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        self.forward_input = inputs
        exp_values = np.exp(inputs - np.max(inputs, axis=1, keepdims=True))
        self.forward_output = exp_values / np.sum(exp_values, axis=1, keepdims=True)
        return self.forward_output

    def backward(self, dvalues: np.ndarray) -> np.ndarray:
        self._require_forward()
        dinputs = np.empty_like(dvalues, dtype=np.float64)

        for index, (single_output, single_dvalues) in enumerate(
            zip(self.forward_output, dvalues)
        ):
            single_output = single_output.reshape(-1, 1)
            jacobian_matrix = (
                np.diagflat(single_output)
                - np.dot(single_output, single_output.T)
            )
            dinputs[index] = np.dot(jacobian_matrix, single_dvalues)

        return dinputs


class Linear(Activation):
    """Identity activation, a no-op slot in the layer stack."""

    def __init__(self):
        super().__init__(ActivationType.LINEAR)

    def forward(self, inputs: np.ndarray) -> np.ndarray:
        self.forward_input = inputs
        self.forward_output = inputs
        return inputs

    def backward(self, dvalues: np.ndarray) -> np.ndarray:
        self._require_forward()
        return np.ones_like(self.forward_input, dtype=np.float64) * dvalues


_ACTIVATIONS = {
    ActivationType.RELU: ReLU,
    ActivationType.SIGMOID: Sigmoid,
    ActivationType.TANH: Tanh,
    ActivationType.SOFTMAX: Softmax,
    ActivationType.LINEAR: Linear,
}


def create_activation(code: int) -> Activation:
    """
    Build a fresh activation from its type code.

    Args:
        code: An ``ActivationType`` value

    Returns:
        Activation: New activation instance

    Raises:
        ConfigurationError: If the code is unknown
    """
    try:
        activation_type = ActivationType(code)
    except ValueError:
        raise ConfigurationError(f"Unknown activation type code: {code}")
    return _ACTIVATIONS[activation_type]()
