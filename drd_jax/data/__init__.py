# drd_jax/data/__init__.py
"""
Data utilities.

- synthetic: sparse and smooth regression problems with known ground truth
"""
from .synthetic import Truth, make_synthetic

__all__ = ["Truth", "make_synthetic"]
