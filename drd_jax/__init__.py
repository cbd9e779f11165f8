# drd_jax/__init__.py
"""
drd-jax: smooth dependent relevance determination in JAX.

Bayesian estimation of a sparse and smooth weight vector under a
linear-Gaussian observation model, with a hierarchical Gaussian-process
prior whose covariance is diagonal in a real Fourier basis (ASD).

Layers:
  - fourier:   real DFT basis, factored ASD covariance, frequency resizing
  - core:      Dataset, Hypers, bounds, history
  - energy:    evidence / likelihood objectives and prior densities
  - inference: optimisers, samplers, latent-field and hyperparameter updates
  - models:    dual-form weight estimator
  - drd:       the alternating inference driver
"""
from __future__ import annotations

import jax

jax.config.update("jax_enable_x64", True)

__version__ = "0.1.0"

from .core import Dataset, Hypers, HyperBounds, HyperHistory
from .fourier import build, FourierCovariance, FourierCFG
from .energy import neglogev_ridge_dual, RidgeParams, HyperPrior
from .models import DualWeightEstimator
from .drd import DRD, DRDCFG, DRDRun, IterationInfo

__all__ = [
    "Dataset",
    "Hypers",
    "HyperBounds",
    "HyperHistory",
    "build",
    "FourierCovariance",
    "FourierCFG",
    "neglogev_ridge_dual",
    "RidgeParams",
    "HyperPrior",
    "DualWeightEstimator",
    "DRD",
    "DRDCFG",
    "DRDRun",
    "IterationInfo",
]
