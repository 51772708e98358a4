import numpy as np
import pytest

from neuralnet.core.activations import ActivationFunction, leaky_relu
from neuralnet.core.costs import MEAN_ABSOLUTE_ERROR, MEAN_SQUARED_ERROR, CostFunction
from neuralnet.core.errors import ConfigurationError, UnsupportedOperationError

POINTS = np.linspace(-10.0, 10.0, 40)


@pytest.mark.parametrize("name", ["sigmoid", "relu", "tanh", "leakyrelu(0.1)"])
def test_derivative_matches_central_difference(name):
    fn = ActivationFunction.parse(name)
    h = 1e-6
    numeric = (fn.function(POINTS + h) - fn.function(POINTS - h)) / (2 * h)
    assert np.allclose(fn.derivative(POINTS), numeric, atol=1e-4)


def test_scalar_in_scalar_out():
    relu = ActivationFunction.parse("relu")
    assert relu.function(-2.0) == 0.0
    assert isinstance(relu.function(3.0), float)
    assert relu.derivative(0.0) == 1.0
    assert leaky_relu(0.2).function(-5.0) == pytest.approx(-1.0)
    assert leaky_relu(0.2).derivative(-5.0) == pytest.approx(0.2)


def test_sigmoid_saturates_without_overflow():
    sigmoid = ActivationFunction.parse("sigmoid")
    with np.errstate(over="raise"):
        values = sigmoid.function(np.array([-1000.0, 0.0, 1000.0]))
    assert values.tolist() == [0.0, 0.5, 1.0]


def test_parse_round_trips_through_str():
    for name in ["input", "sigmoid", "relu", "tanh", "leakyrelu(0.25)"]:
        fn = ActivationFunction.parse(name)
        assert ActivationFunction.parse(str(fn)) == fn
    assert ActivationFunction.parse(" LeakyReLU(0.25) ") == leaky_relu(0.25)
    assert ActivationFunction.parse("TANH").kind == "tanh"


@pytest.mark.parametrize("name", ["softmax", "", "leakyrelu(abc)", "leakyrelu"])
def test_parse_rejects_unknown_names(name):
    with pytest.raises(ConfigurationError, match="invalid activation function"):
        ActivationFunction.parse(name)


def test_input_has_no_function():
    fn = ActivationFunction.parse("input")
    rng = np.random.default_rng(0)
    with pytest.raises(UnsupportedOperationError):
        fn.function(1.0)
    with pytest.raises(UnsupportedOperationError):
        fn.derivative(1.0)
    with pytest.raises(UnsupportedOperationError):
        fn.initialize_weight(4, rng)


def test_weight_initialisation_policies():
    rng = np.random.default_rng(123)
    uniform = ActivationFunction.parse("sigmoid").initialize_weights((20000,), 16, rng)
    assert np.all(np.abs(uniform) <= 0.25)
    assert abs(uniform.std() - 0.25 / np.sqrt(3)) < 0.01

    gaussian = ActivationFunction.parse("relu").initialize_weights((20000,), 16, rng)
    assert abs(gaussian.mean()) < 0.02
    assert abs(gaussian.std() - np.sqrt(2 / 16)) < 0.02

    with pytest.raises(ConfigurationError):
        ActivationFunction.parse("tanh").initialize_weight(0, rng)


def test_weight_initialisation_is_seeded():
    first = ActivationFunction.parse("tanh").initialize_weights((3, 3), 3, np.random.default_rng(9))
    second = ActivationFunction.parse("tanh").initialize_weights((3, 3), 3, np.random.default_rng(9))
    assert np.array_equal(first, second)


def test_mean_squared_error():
    output = np.array([1.0, 2.0, -1.0])
    expected = np.zeros(3)
    assert MEAN_SQUARED_ERROR.function(output, expected).tolist() == [0.5, 2.0, 0.5]
    assert MEAN_SQUARED_ERROR.derivative(output, expected).tolist() == [1.0, 2.0, -1.0]
    assert MEAN_SQUARED_ERROR.total(output, expected) == pytest.approx(3.0)


def test_mean_absolute_error():
    output = np.array([1.0, -2.0, 0.5])
    expected = np.array([0.0, 0.0, 0.5])
    assert MEAN_ABSOLUTE_ERROR.function(output, expected).tolist() == [1.0, 2.0, 0.0]
    assert MEAN_ABSOLUTE_ERROR.derivative(output, expected).tolist() == [1.0, -1.0, 0.0]


def test_cost_parse_aliases():
    assert CostFunction.parse("mse") is MEAN_SQUARED_ERROR
    assert CostFunction.parse("mean-squared-error") is MEAN_SQUARED_ERROR
    assert CostFunction.parse("mae") is MEAN_ABSOLUTE_ERROR
    assert CostFunction.parse("mean-absolute-error") is MEAN_ABSOLUTE_ERROR
    assert str(MEAN_SQUARED_ERROR) == "mse"
    with pytest.raises(ConfigurationError, match="Available cost functions"):
        CostFunction.parse("cross-entropy")
