"""
network.py
~~~~~~~~~~

Feed-forward neural network trained by mini-batch gradient descent.

A ``NeuralNetwork`` owns a linear stack of layers, a loss and an
optimizer. ``compile`` validates the stack before any training or
inference; ``fit`` runs the epoch/batch loop and ``save``/``load``
persist every layer's state in the binary model format.

Example:
    >>> net = NeuralNetwork(loss=CCESoftmax(), optimizer=Adam(learning_rate=0.01))
    >>> net.add_layer(Dense(784, 128))
    >>> net.add_layer(ReLU())
    >>> net.add_layer(Dense(128, 10))
    >>> net.compile()
    True
    >>> history = net.fit(x_train, y_train, x_test, y_test, epochs=5, batch_size=64)
"""

import time
import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from .callbacks import Callback
from .layers import Dense, Layer, LayerType
from .losses import Loss
from .metrics import Metrics
from .model_persistence import load_layers, save_layers
from .optimizers import Optimizer

logger = logging.getLogger(__name__)


class NeuralNetwork:
    """
    A linear stack of layers with a loss and an optimizer.

    The network is single-threaded and not reentrant: layers cache their
    last forward input and optimizers keep a single iteration counter.
    """

    def __init__(
        self,
        layers: Optional[Sequence[Layer]] = None,
        loss: Optional[Loss] = None,
        optimizer: Optional[Optimizer] = None,
        callbacks: Optional[Sequence[Callback]] = None
    ):
        """
        Initialize the network.

        Args:
            layers: Initial layers in forward order
            loss: Loss used by ``fit``
            optimizer: Optimizer used by ``fit``
            callbacks: Objects notified at the end of each epoch
        """
        self._layers: List[Layer] = list(layers) if layers else []
        self.loss = loss
        self.optimizer = optimizer
        self.callbacks: List[Callback] = list(callbacks) if callbacks else []

        self.input_dim = 0
        self.output_dim = 0
        self.compiled = False

    def __repr__(self) -> str:
        return (
            f"NeuralNetwork(layers={self._layers!r}, loss={self.loss!r}, "
            f"optimizer={self.optimizer!r}, compiled={self.compiled})"
        )

    # ------------------------------------------------------------------
    # Layer stack
    # ------------------------------------------------------------------

    @property
    def layers(self) -> List[Layer]:
        return list(self._layers)

    @layers.setter
    def layers(self, layers: Sequence[Layer]) -> None:
        self._layers = list(layers)
        self.compiled = False

    def add_layer(self, layer: Layer) -> None:
        """Append a layer; the network must be compiled again."""
        self._layers.append(layer)
        self.compiled = False

    def dense_layers(self) -> List[Dense]:
        return [layer for layer in self._layers if isinstance(layer, Dense)]

    def parameters(self) -> int:
        """Total number of learnable parameters."""
        return sum(layer.parameters() for layer in self.dense_layers())

    def compile(self) -> bool:
        """
        Validate the layer stack and derive the network's dimensions.

        Activation layers at the start of the stack or directly after
        another activation only produce warnings. An empty stack, a stack
        without Dense layers, an unknown layer type, or a Dense layer whose
        input width differs from the previous Dense layer's output width
        are errors.

        Returns:
            bool: True if the network is ready for training and inference
        """
        self.compiled = False

        if not self._layers:
            logger.error("Cannot compile a network with no layers")
            return False

        previous_dense: Optional[Dense] = None
        previous_was_activation = False

        for index, layer in enumerate(self._layers):
            layer_type = getattr(layer, 'layer_type', None)

            if layer_type == LayerType.ACTIVATION:
                if index == 0:
                    logger.warning(
                        f"Layer 0 ({layer!r}) is an activation; "
                        "the network input is transformed without weights"
                    )
                elif previous_was_activation:
                    logger.warning(
                        f"Layers {index - 1} and {index} are consecutive activations"
                    )
                previous_was_activation = True

            elif layer_type == LayerType.DENSE and isinstance(layer, Dense):
                if (previous_dense is not None
                        and previous_dense.n_output != layer.n_input):
                    logger.error(
                        f"Layer {index} ({layer!r}) expects {layer.n_input} inputs "
                        f"but the previous Dense layer produces {previous_dense.n_output}"
                    )
                    return False
                previous_dense = layer
                previous_was_activation = False

            else:
                logger.error(f"Layer {index} ({layer!r}) has an unknown layer type")
                return False

        dense_layers = self.dense_layers()
        if not dense_layers:
            logger.error("Cannot compile a network without Dense layers")
            return False

        self.input_dim = dense_layers[0].n_input
        self.output_dim = dense_layers[-1].n_output
        self.compiled = True

        logger.debug(
            f"Compiled network: {len(self._layers)} layers, "
            f"input_dim={self.input_dim}, output_dim={self.output_dim}, "
            f"parameters={self.parameters()}"
        )
        return True

    # ------------------------------------------------------------------
    # Forward / backward
    # ------------------------------------------------------------------

    def forward(self, x: np.ndarray) -> np.ndarray:
        """Run ``x`` through every layer in order."""
        for layer in self._layers:
            x = layer.forward(x)
        return x

    def backward(self, predicted: np.ndarray, labels: np.ndarray) -> None:
        """
        Backpropagate the loss and update every Dense layer.

        Args:
            predicted: Output of the preceding ``forward`` call
            labels: Expected output for the same batch
        """
        dvalues = self.loss.backward(predicted, labels)

        for layer in reversed(self._layers):
            dvalues = layer.backward(dvalues)

        for layer in self.dense_layers():
            self.optimizer.update_params(layer)

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def _check_inputs(self, examples: np.ndarray, name: str = 'examples') -> bool:
        if not self.compiled:
            logger.error("The network is not compiled; call compile() first")
            return False
        if examples.ndim != 2 or examples.shape[1] != self.input_dim:
            logger.error(
                f"{name} must have {self.input_dim} columns, got shape {examples.shape}"
            )
            return False
        return True

    def _check_labels(
        self,
        examples: np.ndarray,
        labels: np.ndarray,
        name: str = 'labels'
    ) -> bool:
        if labels.ndim != 2 or labels.shape[1] != self.output_dim:
            logger.error(
                f"{name} must have {self.output_dim} columns, got shape {labels.shape}"
            )
            return False
        if labels.shape[0] != examples.shape[0]:
            logger.error(
                f"{name} has {labels.shape[0]} rows but there are "
                f"{examples.shape[0]} examples"
            )
            return False
        return True

    def fit(
        self,
        examples: np.ndarray,
        labels: np.ndarray,
        test_examples: Optional[np.ndarray] = None,
        test_labels: Optional[np.ndarray] = None,
        epochs: int = 1,
        batch_size: int = 32,
        verbose: bool = False,
        callbacks: Optional[Sequence[Callback]] = None
    ) -> Optional[Dict[str, List[float]]]:
        """
        Train the network with mini-batch gradient descent.

        Examples are split into ``len(examples) // batch_size`` contiguous
        batches in their given order; a final partial batch is skipped.

        Args:
            examples: Training inputs, shape (n, input_dim)
            labels: Training labels, shape (n, output_dim)
            test_examples: Optional inputs for the epoch report
            test_labels: Labels for ``test_examples``
            epochs: Number of passes over the training data
            batch_size: Examples per batch
            verbose: Log metrics at the end of every epoch
            callbacks: Replace the network's callbacks for this run

        Returns:
            Per-epoch history with keys 'loss', 'data_loss',
            'regularization_loss', 'accuracy' and 'learning_rate',
            or None if the inputs were rejected
        """
        examples = np.asarray(examples, dtype=np.float64)
        labels = np.asarray(labels, dtype=np.float64)

        if not self._check_inputs(examples):
            return None
        if not self._check_labels(examples, labels):
            return None
        if self.loss is None or self.optimizer is None:
            logger.error("A loss and an optimizer are required to fit the network")
            return None

        has_test_data = test_examples is not None and test_labels is not None
        if has_test_data:
            test_examples = np.asarray(test_examples, dtype=np.float64)
            test_labels = np.asarray(test_labels, dtype=np.float64)
            if not self._check_inputs(test_examples, 'test_examples'):
                return None
            if not self._check_labels(test_examples, test_labels, 'test_labels'):
                return None

        if epochs < 1 or batch_size < 1:
            logger.error(
                f"epochs and batch_size must be positive, got {epochs} and {batch_size}"
            )
            return None

        num_batches = len(examples) // batch_size
        if num_batches == 0:
            logger.error(
                f"batch_size {batch_size} is larger than the {len(examples)} examples"
            )
            return None

        if callbacks is not None:
            self.callbacks = list(callbacks)

        dropped = len(examples) - num_batches * batch_size
        if dropped:
            logger.debug(f"Skipping the last {dropped} example(s) of every epoch")

        history: Dict[str, List[float]] = {
            'loss': [],
            'data_loss': [],
            'regularization_loss': [],
            'accuracy': [],
            'learning_rate': [],
        }

        for epoch in range(1, epochs + 1):
            epoch_start = time.perf_counter()
            data_losses = []
            regularization_losses = []
            accuracies = []

            for batch in range(num_batches):
                start = batch * batch_size
                batch_examples = examples[start:start + batch_size]
                batch_labels = labels[start:start + batch_size]

                output = self.forward(batch_examples)

                data_loss = self.loss.calculate(output, batch_labels)
                regularization_loss = sum(
                    self.loss.regularization_loss(layer)
                    for layer in self.dense_layers()
                )

                self.optimizer.pre_update_params()
                self.backward(output, batch_labels)
                self.optimizer.post_update_params()

                data_losses.append(data_loss)
                regularization_losses.append(regularization_loss)
                accuracies.append(Metrics.accuracy(output, batch_labels))

            epoch_time = time.perf_counter() - epoch_start
            data_loss = float(np.mean(data_losses))
            regularization_loss = float(np.mean(regularization_losses))
            loss = data_loss + regularization_loss

            history['loss'].append(loss)
            history['data_loss'].append(data_loss)
            history['regularization_loss'].append(regularization_loss)
            history['accuracy'].append(float(np.mean(accuracies)))
            history['learning_rate'].append(self.optimizer.current_learning_rate)

            for callback in self.callbacks:
                callback.on_epoch_end(epoch, loss)

            if verbose:
                train_accuracy = self.accuracy(examples, labels)
                message = (
                    f"Epoch {epoch}/{epochs} - {num_batches} batches in "
                    f"{epoch_time:.2f}s ({epoch_time / num_batches * 1000:.1f} ms/batch) - "
                    f"loss: {loss:.4f} (data: {data_loss:.4f}, "
                    f"reg: {regularization_loss:.4f}) - "
                    f"lr: {self.optimizer.current_learning_rate:.6g} - "
                    f"train accuracy: {train_accuracy:.2%}"
                )
                if has_test_data:
                    test_loss = self.evaluate(test_examples, test_labels)
                    test_accuracy = self.accuracy(test_examples, test_labels)
                    message += (
                        f" - test loss: {test_loss:.4f}"
                        f" - test accuracy: {test_accuracy:.2%}"
                    )
                logger.info(message)

        return history

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def predict(self, sample: np.ndarray) -> Optional[np.ndarray]:
        """
        Raw network output for one or more examples.

        Args:
            sample: Inputs, shape (n, input_dim)

        Returns:
            Output of the last layer, or None if the input was rejected
        """
        sample = np.asarray(sample, dtype=np.float64)
        if not self._check_inputs(sample, 'sample'):
            return None
        return self.forward(sample)

    def accuracy(self, examples: np.ndarray, labels: np.ndarray) -> Optional[float]:
        """
        Classification accuracy on a labelled dataset.

        Returns:
            float between 0.0 and 1.0, or None if the inputs were rejected
        """
        examples = np.asarray(examples, dtype=np.float64)
        labels = np.asarray(labels, dtype=np.float64)
        if not self._check_inputs(examples):
            return None
        if not self._check_labels(examples, labels):
            return None
        return Metrics.accuracy(self.forward(examples), labels)

    def evaluate(self, examples: np.ndarray, labels: np.ndarray) -> Optional[float]:
        """
        Mean data loss on a labelled dataset, e.g. a held-out test set.

        Regularization is not included. Parameters are not updated.

        Returns:
            float: Loss value, or None if the inputs were rejected
        """
        examples = np.asarray(examples, dtype=np.float64)
        labels = np.asarray(labels, dtype=np.float64)
        if not self._check_inputs(examples):
            return None
        if not self._check_labels(examples, labels):
            return None
        if self.loss is None:
            logger.error("A loss is required to evaluate the network")
            return None
        return self.loss.calculate(self.forward(examples), labels)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: str) -> bool:
        """Write every layer to a binary model file."""
        return save_layers(self._layers, path)

    def load(self, path: str) -> bool:
        """
        Replace the layer stack with the one stored in ``path``.

        The current layers are kept if the file cannot be read.
        The loss and optimizer are not part of the file.

        Returns:
            bool: True if the layers were loaded and compiled
        """
        layers = load_layers(path)
        if layers is None:
            return False

        self.layers = layers
        return self.compile()
