"""
metrics.py
~~~~~~~~~~

Evaluation metrics computed from network outputs.
"""

import numpy as np


class Metrics:
    """Stateless metric functions."""

    @staticmethod
    def accuracy(predictions: np.ndarray, labels: np.ndarray) -> float:
        """
        Fraction of rows whose predicted class matches the label.

        Args:
            predictions: Network outputs, one row per example
            labels: One-hot encoded labels of the same shape

        Returns:
            float: Accuracy between 0.0 and 1.0
        """
        predicted_classes = np.argmax(predictions, axis=1)
        class_labels = np.argmax(labels, axis=1)
        return float(np.mean(predicted_classes == class_labels))
