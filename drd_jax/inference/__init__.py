# drd_jax/inference/__init__.py
from __future__ import annotations

"""
Inference layer (dynamics).

Optimisers and samplers are generic operators on scalar objectives
(inference.optimisation, inference.sampling). The two per-iteration
updates of the DRD loop are compositions of these with the objectives in
energy.*:
  - latent field: L-BFGS on the penalized NLL, or elliptical slice sampling,
  - hyperparameters: box L-BFGS on the Laplace evidence, or a sweep of
    univariate slice-sampling steps.
"""

from .base import InferenceMethod
from .optimisation import LBFGS, LBFGSCFG, LBFGSRun, to_box, from_box
from .sampling import (
    SliceSampler, SliceCFG, SliceStep, slice_sample_1d,
    EllipticalSlice, EllipticalCFG, EllipticalStep, elliptical_slice,
)
from .latent import LatentCFG, LatentState, LatentFieldSolver
from .hypers import HyperCFG, HyperUpdate, HyperOptimizer, HyperSampler, trust_bounds

__all__ = [
    "InferenceMethod",
    "LBFGS", "LBFGSCFG", "LBFGSRun", "to_box", "from_box",
    "SliceSampler", "SliceCFG", "SliceStep", "slice_sample_1d",
    "EllipticalSlice", "EllipticalCFG", "EllipticalStep", "elliptical_slice",
    "LatentCFG", "LatentState", "LatentFieldSolver",
    "HyperCFG", "HyperUpdate", "HyperOptimizer", "HyperSampler", "trust_bounds",
]
