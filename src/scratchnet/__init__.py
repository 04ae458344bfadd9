"""
scratchnet package
~~~~~~~~~~~~~~~~~~

Neural networks from scratch on NumPy.
Contains Dense and activation layers, losses, optimizers, the training
loop, and binary model persistence.
"""

from .activations import (
    Activation,
    ActivationType,
    Linear,
    ReLU,
    Sigmoid,
    Softmax,
    Tanh,
    create_activation,
)
from .callbacks import Callback, CSVLogger
from .config import configure_logging
from .exceptions import (
    ConfigurationError,
    FileIOError,
    ScratchNetError,
    ShapeMismatchError,
)
from .layers import Dense, Layer, LayerType
from .losses import BinaryCrossEntropy, CCE, CCESoftmax, Loss, LossType
from .metrics import Metrics
from .model_persistence import load_layers, save_layers
from .network import NeuralNetwork
from .optimizers import Adagrad, Adam, Optimizer, RMSProp, SGD

__version__ = "1.0.0"
