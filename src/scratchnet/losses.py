"""
losses.py
~~~~~~~~~

Loss functions. ``forward`` returns one loss per example, ``backward``
returns the gradient of the loss with respect to the predictions, and
``calculate`` reduces the per-example losses to the scalar reported for
a batch.
"""

import enum
from typing import Optional

import numpy as np

from .activations import Softmax
from .layers import Dense

# Predictions are clipped to [EPSILON, 1 - EPSILON] before taking logs
EPSILON = 1e-7


class LossType(enum.IntEnum):
    CCE = 0
    CCE_SOFTMAX = 1
    BINARY_CROSS_ENTROPY = 2


class Loss:
    """Base class for loss functions."""

    def __init__(self, loss_type: LossType):
        self.loss_type = loss_type

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    def forward(self, predictions: np.ndarray, labels: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def backward(self, predictions: np.ndarray, labels: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def calculate(self, predictions: np.ndarray, labels: np.ndarray) -> float:
        """
        Mean loss over a batch.

        Args:
            predictions: Network output, one row per example
            labels: Expected output of the same shape

        Returns:
            float: Mean of the per-example losses
        """
        sample_losses = self.forward(predictions, labels)
        return float(np.mean(sample_losses))

    @staticmethod
    def regularization_loss(layer: Dense) -> float:
        """
        L1/L2 penalty contributed by a Dense layer.

        Each term is counted only when its regularizer is greater
        than zero.

        Args:
            layer: Dense layer whose parameters are penalized

        Returns:
            float: Sum of the enabled penalty terms

        Raises:
            TypeError: If ``layer`` is not a Dense layer
        """
        if not isinstance(layer, Dense):
            raise TypeError(
                f"Regularization loss needs a Dense layer, got {layer!r}"
            )

        regularization_loss = 0.0

        if layer.l1_weights_regularizer > 0:
            regularization_loss += layer.l1_weights_regularizer * np.sum(
                np.abs(layer.weights)
            )
        if layer.l2_weights_regularizer > 0:
            regularization_loss += layer.l2_weights_regularizer * np.sum(
                layer.weights * layer.weights
            )
        if layer.l1_biases_regularizer > 0:
            regularization_loss += layer.l1_biases_regularizer * np.sum(
                np.abs(layer.biases)
            )
        if layer.l2_biases_regularizer > 0:
            regularization_loss += layer.l2_biases_regularizer * np.sum(
                layer.biases * layer.biases
            )

        return float(regularization_loss)


class CCE(Loss):
    """Categorical cross-entropy over one-hot labels."""

    def __init__(self):
        super().__init__(LossType.CCE)

    def forward(self, predictions: np.ndarray, labels: np.ndarray) -> np.ndarray:
        clipped = np.clip(predictions, EPSILON, 1 - EPSILON)
        correct_confidences = np.sum(labels * clipped, axis=1)
        return -np.log(correct_confidences)

    def backward(self, predictions: np.ndarray, labels: np.ndarray) -> np.ndarray:
        # Not clipped: a zero prediction on the true class yields inf.
        samples = len(labels)
        return -labels / predictions / samples


class CCESoftmax(Loss):
    """
    Softmax activation fused with categorical cross-entropy.

    The network's last layer feeds raw logits to this loss. The gradient
    of the combined function reduces to ``softmax - labels`` divided by
    the number of examples, which avoids building a Jacobian per example.

    The loss owns its Softmax and CCE instances; ``softmax_output`` reads
    back the probabilities cached by the last ``forward`` call.
    """

    def __init__(self):
        super().__init__(LossType.CCE_SOFTMAX)
        self._softmax = Softmax()
        self._cce = CCE()

    @property
    def softmax_output(self) -> Optional[np.ndarray]:
        return self._softmax.forward_output

    def forward(self, predictions: np.ndarray, labels: np.ndarray) -> np.ndarray:
        probabilities = self._softmax.forward(predictions)
        return self._cce.forward(probabilities, labels)

    def backward(self, predictions: np.ndarray, labels: np.ndarray) -> np.ndarray:
        """
        Gradient w.r.t. the logits, using the cached softmax output.

        Raises:
            RuntimeError: If ``forward`` has not run yet
        """
        if self.softmax_output is None:
            raise RuntimeError("CCESoftmax backward called before forward")

        samples = len(predictions)
        class_labels = np.argmax(labels, axis=1)

        dinputs = self.softmax_output.copy()
        dinputs[np.arange(samples), class_labels] -= 1
        return dinputs / samples


class BinaryCrossEntropy(Loss):
    """Binary cross-entropy for independent sigmoid outputs."""

    def __init__(self):
        super().__init__(LossType.BINARY_CROSS_ENTROPY)

    def forward(self, predictions: np.ndarray, labels: np.ndarray) -> np.ndarray:
        sample_losses = -(
            labels * np.log(predictions)
            + (1 - labels) * np.log(1 - predictions)
        )
        return np.mean(sample_losses, axis=1)

    def backward(self, predictions: np.ndarray, labels: np.ndarray) -> np.ndarray:
        clipped = np.clip(predictions, EPSILON, 1 - EPSILON)
        return -(labels / clipped - (1 - labels) / (1 - clipped))
