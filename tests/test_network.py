"""
test_network.py
~~~~~~~~~~~~~~~

Unit and integration tests for NeuralNetwork.
"""

import pytest
import os
import sys
import logging

import numpy as np

# Add src directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from scratchnet.activations import ReLU, Sigmoid, Softmax
from scratchnet.callbacks import Callback
from scratchnet.layers import Dense
from scratchnet.losses import CCE, CCESoftmax
from scratchnet.network import NeuralNetwork
from scratchnet.optimizers import Adam, SGD


class RecordingCallback(Callback):
    def __init__(self):
        self.calls = []

    def on_epoch_end(self, epoch, loss):
        self.calls.append((epoch, loss))


@pytest.fixture
def blobs():
    """Two well separated Gaussian blobs with one-hot labels."""
    rng = np.random.default_rng(42)
    n = 100
    class_0 = rng.normal(loc=-2.0, scale=0.5, size=(n, 2))
    class_1 = rng.normal(loc=2.0, scale=0.5, size=(n, 2))
    examples = np.vstack([class_0, class_1])
    labels = np.zeros((2 * n, 2))
    labels[:n, 0] = 1.0
    labels[n:, 1] = 1.0

    order = rng.permutation(2 * n)
    return examples[order], labels[order]


@pytest.fixture
def network():
    """A compiled 2 -> 8 -> 2 classifier."""
    net = NeuralNetwork(
        layers=[Dense(2, 8, seed=0), ReLU(), Dense(8, 2, seed=1)],
        loss=CCESoftmax(),
        optimizer=Adam(learning_rate=0.05),
    )
    assert net.compile()
    return net


@pytest.mark.unit
class TestCompile:

    def test_compile_sets_dimensions(self, network):
        assert network.compiled
        assert network.input_dim == 2
        assert network.output_dim == 2
        assert network.parameters() == 2 * 8 + 8 + 8 * 2 + 2

    def test_empty_network(self, caplog):
        """Test that an empty stack does not compile."""
        assert not NeuralNetwork().compile()
        assert 'no layers' in caplog.text

    def test_dimension_mismatch(self, caplog):
        """Test that Dense layers must chain."""
        net = NeuralNetwork([Dense(2, 3), ReLU(), Dense(4, 2)])

        assert not net.compile()
        assert not net.compiled
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    def test_leading_activation_warns(self, caplog):
        """Test that an activation first in the stack is only a warning."""
        net = NeuralNetwork([Sigmoid(), Dense(2, 2)])

        assert net.compile()
        assert any(r.levelno == logging.WARNING for r in caplog.records)

    def test_consecutive_activations_warn(self, caplog):
        net = NeuralNetwork([Dense(2, 2), ReLU(), Sigmoid(), Dense(2, 1)])

        assert net.compile()
        assert 'consecutive activations' in caplog.text

    def test_activations_only(self):
        """Test that a network needs at least one Dense layer."""
        assert not NeuralNetwork([ReLU(), Softmax()]).compile()

    def test_unknown_layer_type(self, caplog):
        net = NeuralNetwork([Dense(2, 2), object()])

        assert not net.compile()
        assert 'unknown layer type' in caplog.text

    def test_changing_layers_requires_recompile(self, network):
        """Test that adding or replacing layers clears the compiled flag."""
        network.add_layer(Softmax())
        assert not network.compiled

        assert network.compile()
        network.layers = [Dense(3, 1)]
        assert not network.compiled

    def test_layers_property_is_a_copy(self, network):
        network.layers.append(ReLU())
        assert len(network.layers) == 3


@pytest.mark.unit
class TestValidation:

    def test_uncompiled_network_rejects_everything(self, blobs):
        """Test that fit, predict and accuracy need a compiled network."""
        examples, labels = blobs
        net = NeuralNetwork([Dense(2, 2)], CCESoftmax(), SGD())

        assert net.fit(examples, labels) is None
        assert net.predict(examples) is None
        assert net.accuracy(examples, labels) is None

    def test_wrong_columns(self, network, blobs):
        examples, labels = blobs

        assert network.predict(np.ones((3, 5))) is None
        assert network.fit(examples, labels[:, :1]) is None

    def test_row_count_mismatch(self, network, blobs):
        examples, labels = blobs

        assert network.fit(examples, labels[:10]) is None
        assert network.accuracy(examples[:5], labels) is None

    def test_missing_loss_or_optimizer(self, blobs):
        examples, labels = blobs
        net = NeuralNetwork([Dense(2, 2)], loss=CCESoftmax())
        assert net.compile()

        assert net.fit(examples, labels) is None

    @pytest.mark.parametrize('epochs, batch_size', [(0, 10), (1, 0), (1, 1000)])
    def test_invalid_schedule_leaves_weights_untouched(self, network, blobs, epochs, batch_size):
        """Test that a rejected fit does not train."""
        examples, labels = blobs
        before = [layer.weights.copy() for layer in network.dense_layers()]

        assert network.fit(examples, labels, epochs=epochs, batch_size=batch_size) is None

        for layer, weights in zip(network.dense_layers(), before):
            assert np.array_equal(layer.weights, weights)
        assert network.optimizer.iterations == 0

    def test_mismatched_test_data(self, network, blobs):
        examples, labels = blobs

        assert network.fit(examples, labels, np.ones((4, 3)), np.ones((4, 2))) is None


@pytest.mark.integration
class TestTraining:

    def test_learns_separable_classes(self, network, blobs):
        """Test that training on two blobs reaches high accuracy."""
        examples, labels = blobs

        history = network.fit(examples, labels, epochs=20, batch_size=20)

        assert history is not None
        assert len(history['loss']) == 20
        assert history['loss'][-1] < history['loss'][0]
        assert network.accuracy(examples, labels) > 0.9

    def test_history_keys(self, network, blobs):
        examples, labels = blobs

        history = network.fit(examples, labels, epochs=2, batch_size=50)

        assert set(history) == {
            'loss', 'data_loss', 'regularization_loss', 'accuracy', 'learning_rate'
        }
        assert history['regularization_loss'] == [0.0, 0.0]
        assert history['learning_rate'] == [0.05, 0.05]

    def test_remainder_batch_is_dropped(self, network, blobs):
        """Test that only full batches produce updates."""
        examples, labels = blobs

        network.fit(examples[:105], labels[:105], epochs=3, batch_size=10)

        assert network.optimizer.iterations == 3 * 10

    def test_regularization_is_reported(self, blobs):
        examples, labels = blobs
        net = NeuralNetwork(
            [Dense(2, 4, l2_weights_regularizer=0.01, seed=0), ReLU(), Dense(4, 2, seed=1)],
            CCESoftmax(),
            Adam(learning_rate=0.01),
        )
        assert net.compile()

        history = net.fit(examples, labels, epochs=2, batch_size=50)

        assert all(value > 0 for value in history['regularization_loss'])
        assert history['loss'][0] == pytest.approx(
            history['data_loss'][0] + history['regularization_loss'][0]
        )

    def test_callbacks_receive_epoch_loss(self, network, blobs):
        """Test that callbacks are notified once per epoch."""
        examples, labels = blobs
        callback = RecordingCallback()

        history = network.fit(examples, labels, epochs=3, batch_size=40, callbacks=[callback])

        assert [epoch for epoch, _ in callback.calls] == [1, 2, 3]
        assert [loss for _, loss in callback.calls] == history['loss']

    def test_verbose_logs_epoch_report(self, network, blobs, caplog):
        examples, labels = blobs

        with caplog.at_level(logging.INFO, logger='scratchnet'):
            network.fit(examples, labels, examples, labels, epochs=2, batch_size=50, verbose=True)

        assert 'Epoch 1/2' in caplog.text
        assert 'Epoch 2/2' in caplog.text
        assert 'test loss' in caplog.text
        assert 'test accuracy' in caplog.text

    def test_softmax_with_plain_cce(self, blobs):
        """Test the unfused Softmax and CCE path."""
        examples, labels = blobs
        net = NeuralNetwork(
            [Dense(2, 2, seed=3), Softmax()],
            CCE(),
            SGD(learning_rate=0.5),
        )
        assert net.compile()

        history = net.fit(examples, labels, epochs=10, batch_size=20)

        assert history['loss'][-1] < history['loss'][0]
        assert net.accuracy(examples, labels) > 0.9

    def test_predict_shape(self, network):
        out = network.predict(np.zeros((7, 2)))

        assert out.shape == (7, 2)

    def test_learning_rate_decay_over_epochs(self, blobs):
        """Test that a decaying optimizer reports a falling learning rate."""
        examples, labels = blobs
        net = NeuralNetwork(
            [Dense(2, 4, seed=0), ReLU(), Dense(4, 2, seed=1)],
            CCESoftmax(),
            SGD(learning_rate=1.0, decay=0.1),
        )
        assert net.compile()

        history = net.fit(examples, labels, epochs=3, batch_size=50)

        rates = history['learning_rate']
        assert rates[0] > rates[1] > rates[2]
        # 4 batches per epoch; the last update of epoch 3 is iteration 11
        assert rates[-1] == pytest.approx(1.0 / (1.0 + 0.1 * 11))
        assert net.optimizer.learning_rate == 1.0


@pytest.mark.unit
class TestEvaluate:

    def test_uncompiled_network(self, blobs):
        examples, labels = blobs
        net = NeuralNetwork([Dense(2, 2)], CCESoftmax(), SGD())

        assert net.evaluate(examples, labels) is None

    def test_requires_loss(self, blobs):
        """Test that evaluate needs a loss function."""
        examples, labels = blobs
        net = NeuralNetwork([Dense(2, 2)])
        assert net.compile()

        assert net.evaluate(examples, labels) is None

    def test_invalid_shapes(self, network, blobs):
        examples, labels = blobs

        assert network.evaluate(np.ones((3, 5)), labels[:3]) is None
        assert network.evaluate(examples, labels[:10]) is None

    def test_matches_loss_on_forward_output(self, network, blobs):
        """Test that evaluate is the loss of the current network output."""
        examples, labels = blobs
        expected = CCESoftmax().calculate(network.predict(examples), labels)

        assert network.evaluate(examples, labels) == pytest.approx(expected)

    def test_does_not_train(self, network, blobs):
        examples, labels = blobs
        before = [layer.weights.copy() for layer in network.dense_layers()]

        network.evaluate(examples, labels)

        for layer, weights in zip(network.dense_layers(), before):
            assert np.array_equal(layer.weights, weights)
        assert network.optimizer.iterations == 0

    @pytest.mark.integration
    def test_held_out_loss_falls_with_training(self, network, blobs):
        """Test that training lowers the loss on unseen examples."""
        examples, labels = blobs
        train_x, train_y = examples[:150], labels[:150]
        test_x, test_y = examples[150:], labels[150:]

        initial = network.evaluate(test_x, test_y)
        network.fit(train_x, train_y, epochs=10, batch_size=15)

        assert network.evaluate(test_x, test_y) < initial
