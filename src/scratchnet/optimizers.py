"""
optimizers.py
~~~~~~~~~~~~~

Parameter update rules for Dense layers.

An optimizer keeps only its schedule (base and decayed learning rate,
iteration count). Per-parameter state such as momentum or gradient
caches is stored on each Dense layer, so a single optimizer can serve
every layer of a network. ``update_params`` reads a layer's parameters,
gradients and state, and writes back new parameters and state; it never
modifies the gradients.
"""

import numpy as np

from .layers import Dense


class Optimizer:
    """
    Base class for all optimizers.

    Subclasses implement ``update_params``; the training loop calls
    ``pre_update_params`` before and ``post_update_params`` after
    each batch's updates.
    """

    def __init__(self, learning_rate: float, decay: float = 0.0):
        self._learning_rate = float(learning_rate)
        self.current_learning_rate = float(learning_rate)
        self.decay = float(decay)
        self.iterations = 0

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(learning_rate={self._learning_rate}, "
            f"decay={self.decay})"
        )

    @property
    def learning_rate(self) -> float:
        """Base learning rate, fixed at construction."""
        return self._learning_rate

    def pre_update_params(self) -> None:
        """Apply learning rate decay for the coming update."""
        if self.decay > 0:
            self.current_learning_rate = self._learning_rate * (
                1.0 / (1.0 + self.decay * self.iterations)
            )

    def post_update_params(self) -> None:
        self.iterations += 1

    def update_params(self, layer: Dense) -> None:
        raise NotImplementedError

    @staticmethod
    def _check_layer(layer) -> None:
        if not isinstance(layer, Dense):
            raise TypeError(f"Optimizers can only update Dense layers, got {layer!r}")


class SGD(Optimizer):
    """
    Stochastic gradient descent with optional momentum.

    With momentum the velocity is kept in the layer's
    ``weights_optimizer``/``biases_optimizer`` slots.
    """

    def __init__(
        self,
        learning_rate: float = 1.0,
        decay: float = 0.0,
        momentum: float = 0.0
    ):
        super().__init__(learning_rate, decay)
        self.momentum = float(momentum)

    def update_params(self, layer: Dense) -> None:
        self._check_layer(layer)

        if self.momentum > 0:
            weight_updates = (
                self.momentum * layer.weights_optimizer
                - self.current_learning_rate * layer.dweights
            )
            bias_updates = (
                self.momentum * layer.biases_optimizer
                - self.current_learning_rate * layer.dbiases
            )
            layer.weights_optimizer = weight_updates
            layer.biases_optimizer = bias_updates
        else:
            weight_updates = -self.current_learning_rate * layer.dweights
            bias_updates = -self.current_learning_rate * layer.dbiases

        layer.weights = layer.weights + weight_updates
        layer.biases = layer.biases + bias_updates


class Adagrad(Optimizer):
    """Adaptive gradient: per-parameter rates from a running sum of squares."""

    def __init__(
        self,
        learning_rate: float = 1.0,
        decay: float = 0.0,
        epsilon: float = 1e-7
    ):
        super().__init__(learning_rate, decay)
        self.epsilon = float(epsilon)

    def update_params(self, layer: Dense) -> None:
        self._check_layer(layer)

        weights_cache = layer.weights_optimizer + layer.dweights ** 2
        biases_cache = layer.biases_optimizer + layer.dbiases ** 2

        layer.weights = layer.weights + (
            -self.current_learning_rate * layer.dweights
            / (np.sqrt(weights_cache) + self.epsilon)
        )
        layer.biases = layer.biases + (
            -self.current_learning_rate * layer.dbiases
            / (np.sqrt(biases_cache) + self.epsilon)
        )

        layer.weights_optimizer = weights_cache
        layer.biases_optimizer = biases_cache


class RMSProp(Optimizer):
    """Root mean square propagation: exponentially decaying cache."""

    def __init__(
        self,
        learning_rate: float = 1e-3,
        decay: float = 1e-3,
        epsilon: float = 1e-7,
        rho: float = 0.9
    ):
        super().__init__(learning_rate, decay)
        self.epsilon = float(epsilon)
        self.rho = float(rho)

    def update_params(self, layer: Dense) -> None:
        self._check_layer(layer)

        weights_cache = (
            self.rho * layer.weights_optimizer
            + (1 - self.rho) * layer.dweights ** 2
        )
        biases_cache = (
            self.rho * layer.biases_optimizer
            + (1 - self.rho) * layer.dbiases ** 2
        )

        layer.weights = layer.weights + (
            -self.current_learning_rate * layer.dweights
            / (np.sqrt(weights_cache) + self.epsilon)
        )
        layer.biases = layer.biases + (
            -self.current_learning_rate * layer.dbiases
            / (np.sqrt(biases_cache) + self.epsilon)
        )

        layer.weights_optimizer = weights_cache
        layer.biases_optimizer = biases_cache


class Adam(Optimizer):
    """
    Adaptive moment estimation.

    The squared-gradient cache is stored in ``*_optimizer`` and the
    momentum in ``*_optimizer_additional``. Both are bias-corrected with
    the iteration count before the update.
    """

    def __init__(
        self,
        learning_rate: float = 1e-3,
        decay: float = 0.0,
        epsilon: float = 1e-7,
        beta_1: float = 0.9,
        beta_2: float = 0.999
    ):
        super().__init__(learning_rate, decay)
        self.epsilon = float(epsilon)
        self.beta_1 = float(beta_1)
        self.beta_2 = float(beta_2)

    def update_params(self, layer: Dense) -> None:
        self._check_layer(layer)

        step = self.iterations + 1

        weights_momentums = (
            self.beta_1 * layer.weights_optimizer_additional
            + (1 - self.beta_1) * layer.dweights
        )
        biases_momentums = (
            self.beta_1 * layer.biases_optimizer_additional
            + (1 - self.beta_1) * layer.dbiases
        )
        weights_momentums_corrected = weights_momentums / (1 - self.beta_1 ** step)
        biases_momentums_corrected = biases_momentums / (1 - self.beta_1 ** step)

        weights_cache = (
            self.beta_2 * layer.weights_optimizer
            + (1 - self.beta_2) * layer.dweights ** 2
        )
        biases_cache = (
            self.beta_2 * layer.biases_optimizer
            + (1 - self.beta_2) * layer.dbiases ** 2
        )
        weights_cache_corrected = weights_cache / (1 - self.beta_2 ** step)
        biases_cache_corrected = biases_cache / (1 - self.beta_2 ** step)

        layer.weights = layer.weights + (
            -self.current_learning_rate * weights_momentums_corrected
            / (np.sqrt(weights_cache_corrected) + self.epsilon)
        )
        layer.biases = layer.biases + (
            -self.current_learning_rate * biases_momentums_corrected
            / (np.sqrt(biases_cache_corrected) + self.epsilon)
        )

        layer.weights_optimizer = weights_cache
        layer.biases_optimizer = biases_cache
        layer.weights_optimizer_additional = weights_momentums
        layer.biases_optimizer_additional = biases_momentums
