import numpy as np
import pytest

from glyphnet.core.activations import (
    ActivationKind,
    relu,
    relu_derivative,
    resolve,
    sigmoid,
    sigmoid_derivative,
)
from glyphnet.core.rng import DEFAULT_SEED, RandomSource


def test_same_seed_reproduces_every_draw():
    a, b = RandomSource(5), RandomSource(5)
    assert a.uniform() == b.uniform()
    assert a.integers(0, 100) == b.integers(0, 100)
    np.testing.assert_array_equal(a.normal((3, 4)), b.normal((3, 4)))
    np.testing.assert_array_equal(a.permutation(10), b.permutation(10))


def test_default_seed():
    assert RandomSource().seed == DEFAULT_SEED == 123


def test_integers_respect_bounds():
    rng = RandomSource(0)
    draws = rng.integers(-15, 5, size=500)
    assert draws.min() >= -15 and draws.max() < 5
    assert isinstance(rng.integers(0, 3), int)


def test_normal_is_finite_and_roughly_standard():
    samples = RandomSource(1).normal(20000)
    assert np.all(np.isfinite(samples))
    assert abs(samples.mean()) < 0.05
    assert abs(samples.std() - 1.0) < 0.05


def test_permutation_covers_range():
    perm = RandomSource(2).permutation(50)
    assert sorted(perm.tolist()) == list(range(50))


@pytest.mark.parametrize(
    "value, expected",
    [
        ("relu", ActivationKind.RELU),
        ("Sigmoid", ActivationKind.SIGMOID),
        (0, ActivationKind.RELU),
        (1, ActivationKind.SIGMOID),
        (ActivationKind.RELU, ActivationKind.RELU),
    ],
)
def test_activation_parse(value, expected):
    assert ActivationKind.parse(value) is expected


@pytest.mark.parametrize("value", ["tanh", 2, -1])
def test_activation_parse_rejects_unknown(value):
    with pytest.raises(ValueError):
        ActivationKind.parse(value)


def test_activation_functions():
    x = np.array([-1.0, 0.0, 2.0], dtype=np.float32)
    np.testing.assert_array_equal(relu(x), [0.0, 0.0, 2.0])
    np.testing.assert_array_equal(relu_derivative(x), [0.0, 0.0, 1.0])
    out = sigmoid(np.array([0.0]))
    assert out[0] == pytest.approx(0.5)
    assert sigmoid_derivative(out)[0] == pytest.approx(0.25)
    fn, deriv = resolve("sigmoid")
    assert fn is sigmoid and deriv is sigmoid_derivative
