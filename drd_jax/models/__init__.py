# drd_jax/models/__init__.py
"""Weight estimators."""
from .dual import DualEstimate, DualWeightEstimator, dual_posterior_mean

__all__ = ["DualEstimate", "DualWeightEstimator", "dual_posterior_mean"]
