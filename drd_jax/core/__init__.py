# drd_jax/core/__init__.py
from .data import Dataset
from .hypers import Hypers, HyperBounds, HyperHistory, POSITIVE, check_names

__all__ = [
    "Dataset",
    "Hypers",
    "HyperBounds",
    "HyperHistory",
    "POSITIVE",
    "check_names",
]
