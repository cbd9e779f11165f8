# drd_jax/models/dual.py
"""
Dual-form posterior mean of the weights.

Given prior variances c = |f(u)| and the smoothing covariance
Kf = Gf' diag(cf) Gf, the weights have prior covariance
C^1/2 Kf C^1/2 and the posterior mean is computed in the n-dimensional
dual space:

    S     = Z Z' + nsevar I,          Z = (X C^1/2) Gf' diag(sqrt(cf))
    w_hat = C^1/2 Gf' diag(sqrt(cf)) Z' S^-1 y

Cost is O(n^2 Lf + n^3), independent of p beyond the transforms.
"""
from __future__ import annotations

from dataclasses import dataclass

import jax
import jax.numpy as jnp

from ..core.data import Dataset
from ..core.hypers import Hypers
from ..energy.latent import smoothed_design
from ..energy.nonlinearity import NonlinearityCFG, cdiag_from_u, safe_sqrt
from ..fourier.covariance import KronBasis


@dataclass
class DualEstimate:
    """Weight estimate and the prior variances it was computed with."""
    w_hat: jnp.ndarray  # (p,)
    cdiag: jnp.ndarray  # (p,)


@jax.jit
def dual_posterior_mean(x, y, c_half, cf_half, basis_f: KronBasis, nsevar) -> jnp.ndarray:
    """w_hat for fixed sqrt(c), sqrt(cf) and noise variance."""
    n = y.shape[0]
    z = smoothed_design(x, c_half, cf_half, basis_f)
    S = z @ z.T + nsevar * jnp.eye(n)
    alpha = jnp.linalg.solve(S, y)
    # back to the real domain: rows of (Z · sqrt(cf)) through Gf'
    x1 = basis_f.to_real((z * cf_half[None, :]).T)  # (p, n)
    return c_half * (x1 @ alpha)


class DualWeightEstimator:
    """
    Pure, deterministic weight estimator for one iteration.

    Excluded features (keep-mask false) get zero prior variance and hence
    a zero weight.
    """

    def __init__(self, cfg: NonlinearityCFG = NonlinearityCFG()):
        self.cfg = cfg

    def estimate(
        self,
        ureal,
        hypers: Hypers,
        dat: Dataset,
        cf_half,
        basis_f: KronBasis,
    ) -> DualEstimate:
        """
        Args:
            ureal: latent field on the grid (p,)
            hypers: current hyperparameters (for the noise variance)
            dat: Dataset
            cf_half: sqrt of the smoothing covariance diagonal (Lf,)
            basis_f: Gf for the smoothing covariance

        Returns:
            DualEstimate(w_hat, cdiag), both of length p
        """
        keep = dat.keep_weights
        cdiag = cdiag_from_u(jnp.asarray(ureal), keep, self.cfg)
        w_hat = dual_posterior_mean(dat.x, dat.y, safe_sqrt(cdiag), cf_half, basis_f, hypers.nsevar)
        w_hat = jnp.where(keep > 0, w_hat, 0.0)
        return DualEstimate(w_hat=w_hat, cdiag=cdiag)


__all__ = ["DualEstimate", "DualWeightEstimator", "dual_posterior_mean"]
