import numpy as np
import pytest

from glyphnet.core.activations import ActivationKind
from glyphnet.core.layer import DenseLayer
from glyphnet.core.network import EmptyNetworkError, Network, predicted_classes
from glyphnet.core.rng import RandomSource


def _two_layer(seed=3, dims=(6, 5, 3), lr=0.01):
    network = Network(rng=RandomSource(seed), learning_rate=lr)
    network.add_layer(dims[0], dims[1], "relu")
    network.add_layer(dims[1], dims[2], "sigmoid")
    return network


def test_he_initialisation_draws_bias_then_weight_row():
    layer = DenseLayer(4, 3, "relu", rng=RandomSource(9))
    expected = RandomSource(9).normal((3, 5)) * np.sqrt(2.0 / 4)
    np.testing.assert_allclose(layer.biases, expected[:, 0].astype(np.float32))
    np.testing.assert_allclose(layer.weights, expected[:, 1:].astype(np.float32))
    assert layer.weights.dtype == np.float32


def test_layer_rejects_bad_dimensions_and_inputs():
    with pytest.raises(ValueError):
        DenseLayer(0, 3, "relu")
    layer = DenseLayer(4, 3, "relu", rng=RandomSource(0))
    with pytest.raises(ValueError):
        layer.forward(np.zeros((2, 5)))


def test_output_buffer_reallocated_only_when_batch_size_changes():
    layer = DenseLayer(4, 3, ActivationKind.SIGMOID, rng=RandomSource(0))
    first = layer.forward(np.ones((2, 4)))
    second = layer.forward(np.zeros((2, 4)))
    assert first is second
    third = layer.forward(np.ones((5, 4)))
    assert third is not first and third.shape == (5, 3)


def test_hidden_backprop_requires_signal_from_layer_above():
    rng = RandomSource(0)
    lower = DenseLayer(4, 3, "relu", rng=rng)
    upper = DenseLayer(3, 2, "sigmoid", rng=rng)
    lower.forward(np.ones((1, 4)))
    with pytest.raises(RuntimeError):
        lower.backpropagate_hidden(upper, np.ones((1, 4)), 0.1)


def test_hidden_error_uses_weights_from_before_the_update():
    network = _two_layer(lr=0.5)
    hidden, output = network.layers
    x = np.array([[0.5, 1.0, 0.0, 1.0, 0.25, 1.0]], dtype=np.float32)
    target = np.array([[1.0]], dtype=np.float32)

    network.forward_pass(x)
    o_hidden = hidden.outputs.copy()
    o_out = output.outputs.copy()
    w_out = output.weights.copy()
    w_hidden = hidden.weights.copy()
    b_hidden = hidden.biases.copy()

    one_hot = np.array([[0.0, 1.0, 0.0]], dtype=np.float32)
    delta_out = (o_out - one_hot) * o_out * (1 - o_out)
    delta_hidden = (delta_out @ w_out) * (o_hidden > 0)
    expected_w = w_hidden - 0.5 * (delta_hidden.T @ x)
    expected_b = b_hidden - 0.5 * delta_hidden.sum(axis=0)

    network.backward_pass(x, target)
    np.testing.assert_allclose(hidden.weights, expected_w, rtol=1e-5, atol=1e-6)
    np.testing.assert_allclose(hidden.biases, expected_b, rtol=1e-5, atol=1e-6)


def test_single_step_decreases_loss_on_that_sample():
    network = _two_layer(seed=11, lr=0.01)
    x = np.linspace(0.0, 1.0, 6, dtype=np.float32).reshape(1, 6)
    y = np.array([[2.0]], dtype=np.float32)
    network.forward_pass(x)
    before = network.compute_loss(y)
    network.backward_pass(x, y)
    network.forward_pass(x)
    assert network.compute_loss(y) < before


def test_backward_pass_handles_three_layers():
    network = Network(rng=RandomSource(4), learning_rate=0.05)
    network.add_layer(5, 4, "relu")
    network.add_layer(4, 4, "relu")
    network.add_layer(4, 2, "sigmoid")
    x = np.ones((3, 5), dtype=np.float32)
    y = np.array([[0], [1], [1]], dtype=np.float32)
    before = [layer.weights.copy() for layer in network.layers]
    network.forward_pass(x)
    network.backward_pass(x, y)
    assert not np.array_equal(before[-1], network.layers[-1].weights)
    assert all(layer.input_error is not None for layer in network.layers)


def test_empty_network_raises():
    network = Network()
    with pytest.raises(EmptyNetworkError):
        network.forward_pass(np.zeros((1, 2)))
    assert isinstance(EmptyNetworkError("x"), RuntimeError)


def test_loss_against_constant_outputs():
    network = Network()
    network.add_layer(4, 3, "sigmoid")  # zero weights, sigmoid(0) == 0.5
    network.forward_pass(np.ones((2, 4)))
    assert network.compute_loss(np.array([[0], [2]])) == pytest.approx(0.75)


def test_labels_outside_class_range_raise():
    network = Network()
    network.add_layer(2, 3, "sigmoid")
    network.forward_pass(np.ones((1, 2)))
    with pytest.raises(ValueError):
        network.compute_loss(np.array([[3]]))
    with pytest.raises(ValueError):
        network.confusion_matrix_and_accuracy(np.array([[0], [1]]))


def test_argmax_ties_pick_the_last_index():
    outputs = np.array([[0.5, 0.5, 0.1], [0.2, 0.9, 0.9], [0.7, 0.1, 0.2]])
    np.testing.assert_array_equal(predicted_classes(outputs), [1, 2, 0])


def test_confusion_matrix_sums_match_hits_and_totals():
    network = _two_layer(seed=8, dims=(6, 7, 4))
    rng = np.random.default_rng(0)
    x = rng.random((40, 6)).astype(np.float32)
    labels = rng.integers(0, 4, size=40)
    report = network.evaluate(x, labels.reshape(-1, 1))
    predicted = predicted_classes(network.outputs)

    assert int(np.trace(report.confusion)) == report.hits
    assert report.total == 40
    np.testing.assert_array_equal(report.confusion.sum(axis=1), np.bincount(labels, minlength=4))
    np.testing.assert_array_equal(
        report.confusion.sum(axis=0), np.bincount(predicted, minlength=4)
    )
    assert report.accuracy == pytest.approx(report.hits / 40)
    assert report.loss is not None


def test_snapshot_export_import_reproduces_outputs_exactly():
    network = _two_layer(seed=21)
    x = np.random.default_rng(1).random((5, 6)).astype(np.float32)
    expected = network.forward_pass(x).copy()

    restored = Network.from_snapshot(network.export_snapshot())
    np.testing.assert_array_equal(restored.forward_pass(x), expected)

    other = _two_layer(seed=99)
    other.import_snapshot(network.export_snapshot())
    np.testing.assert_array_equal(other.forward_pass(x), expected)
    assert other.describe() == [6, 5, 3]
    assert other.parameter_count() == 6 * 5 + 5 + 5 * 3 + 3
