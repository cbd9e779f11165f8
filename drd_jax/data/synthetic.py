# drd_jax/data/synthetic.py
"""
Synthetic sparse and smooth regression problems.

The true weights are a sum of a few Gaussian bumps on the feature grid, so
they are smooth and zero over most of the grid. The latent field and prior
variances that would produce them are returned alongside, for observers
that compare estimates against the truth.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import jax.numpy as jnp
from jax import random

from ..core.data import Dataset


@dataclass(frozen=True)
class Truth:
    """Ground truth of a synthetic problem (all of length p)."""
    w_true: jnp.ndarray
    u_true: jnp.ndarray
    c_true: jnp.ndarray


def _bump_field(key, dims, n_bumps, width, amplitude):
    grids = np.meshgrid(*[np.arange(d, dtype=np.float64) for d in dims], indexing="ij")
    coords = jnp.asarray(np.stack([g.reshape(-1) for g in grids], axis=1))  # (p, D)

    k_c, k_a, k_s = random.split(key, 3)
    hi = jnp.asarray(dims, dtype=jnp.float64)
    centers = random.uniform(k_c, (n_bumps, len(dims)), minval=0.2 * hi, maxval=0.8 * hi)
    signs = jnp.where(random.bernoulli(k_s, 0.5, (n_bumps,)), 1.0, -1.0)
    amps = signs * amplitude * random.uniform(k_a, (n_bumps,), minval=0.5, maxval=1.0)

    sq = jnp.sum((coords[None, :, :] - centers[:, None, :]) ** 2, axis=2)  # (n_bumps, p)
    bumps = jnp.exp(-0.5 * sq / width ** 2)
    return bumps, amps


def make_synthetic(
    key,
    n: int = 50,
    dims: Sequence[int] = (64,),
    nsevar: float = 0.01,
    n_bumps: int = 2,
    width: float = 3.0,
    amplitude: float = 1.0,
    floor: float = -12.0,
) -> Tuple[Dataset, Truth]:
    """
    Draw a synthetic problem y = X w_true + sqrt(nsevar) · eps.

    Args:
        key: PRNG key
        n: number of samples
        dims: feature grid shape
        nsevar: noise variance
        n_bumps: number of Gaussian bumps in w_true
        width: bump width in grid units
        amplitude: maximal bump height
        floor: latent value where w_true is (numerically) zero

    Returns:
        (Dataset, Truth)
    """
    dims = tuple(int(d) for d in np.atleast_1d(dims))
    p = int(np.prod(dims))
    k_w, k_x, k_e = random.split(key, 3)

    bumps, amps = _bump_field(k_w, dims, n_bumps, width, amplitude)
    w_true = amps @ bumps

    # prior variances supporting w_true, and the latent field mapping onto them
    envelope = jnp.max(bumps, axis=0)
    c_true = jnp.maximum(envelope * amplitude ** 2, 1e-12)
    u_true = jnp.maximum(jnp.log(jnp.expm1(c_true)), floor)  # inverse soft-rectification

    x = random.normal(k_x, (n, p))
    y = x @ w_true + jnp.sqrt(nsevar) * random.normal(k_e, (n,))
    return Dataset(x, y, dims), Truth(w_true=w_true, u_true=u_true, c_true=c_true)


__all__ = ["Truth", "make_synthetic"]
