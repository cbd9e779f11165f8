# drd_jax/inference/sampling/__init__.py
"""
MCMC transition kernels.

Each kernel returns exactly one new state per call and takes an explicit
PRNG key:
    kernel.run(target, state, ..., key=key) -> step record
"""
from .slice import SliceSampler, SliceCFG, SliceStep, slice_sample_1d
from .elliptical import EllipticalSlice, EllipticalCFG, EllipticalStep, elliptical_slice

__all__ = [
    "SliceSampler", "SliceCFG", "SliceStep", "slice_sample_1d",
    "EllipticalSlice", "EllipticalCFG", "EllipticalStep", "elliptical_slice",
]
