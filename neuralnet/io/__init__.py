"""Reading and writing trained networks."""

from .persistence import PersistenceError, decode, encode, load_network, save_network

__all__ = ["PersistenceError", "decode", "encode", "load_network", "save_network"]
