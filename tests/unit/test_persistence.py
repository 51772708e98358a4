import numpy as np
import pytest

from neuralnet.core.builder import build_network
from neuralnet.io.persistence import PersistenceError, decode, encode, load_network, save_network

SPECS = [
    "input:64",
    "conv2d:2:8x8:3x3",
    "pool2d:max:12x6:2x2",
    "leakyrelu(0.05):5",
    "tanh:4",
    "sigmoid:2",
]


def _network():
    return build_network(SPECS, "mae", np.random.default_rng(3))


def test_round_trip_is_exact():
    network = _network()
    restored = decode(encode(network))
    assert restored.shape() == network.shape()
    assert restored.cost_function == network.cost_function
    for original, copy in zip(network.layers, restored.layers):
        assert type(original) is type(copy)
        assert len(original.parameters()) == len(copy.parameters())
        for a, b in zip(original.parameters(), copy.parameters()):
            assert a.dtype == b.dtype == np.float64
            assert np.array_equal(a, b)
    assert restored.layers[3].activation_function == network.layers[3].activation_function
    assert restored.layers[3].activation_function.alpha == 0.05
    assert restored.layers[2].pool_type is network.layers[2].pool_type
    x = np.random.default_rng(0).uniform(size=64)
    assert np.array_equal(restored.feed_forward(x), network.feed_forward(x))


def test_decode_rejects_garbage():
    with pytest.raises(PersistenceError):
        decode(b"not a network")
    with pytest.raises(PersistenceError):
        decode(b"")


def test_save_network_new_and_existing(tmp_path):
    network = _network()
    path = tmp_path / "model.nnet"
    with pytest.raises(PersistenceError, match="does not exist"):
        save_network(network, path, new=False)
    save_network(network, path, new=True)
    with pytest.raises(PersistenceError, match="already exists"):
        save_network(network, path, new=True)
    save_network(network, path, new=False)
    assert load_network(path).shape() == network.shape()


def test_extension_is_enforced(tmp_path):
    network = _network()
    with pytest.raises(PersistenceError, match=".nnet"):
        save_network(network, tmp_path / "model.bin")
    with pytest.raises(PersistenceError, match=".nnet"):
        load_network(tmp_path / "model.bin")
    with pytest.raises(PersistenceError, match="does not exist"):
        load_network(tmp_path / "missing.nnet")
