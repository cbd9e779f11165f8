# drd_jax/energy/latent.py
"""
Dual-form likelihood of the latent relevance field.

Given the whitened Fourier-domain state v, the latent field is

    ufreq = v · sqrt(k) + bp,        u = G' ufreq

and the prior variances of the weights are c = |f(u)|. With the smoothing
covariance Kf = Gf' diag(cf) Gf, the weights have prior

    w ~ N(0, C^1/2 Kf C^1/2)

and integrating them out gives y ~ N(0, S) with the (n, n) matrix

    S = Z Z' + nsevar · I,       Z = (X C^1/2) Gf' diag(sqrt(cf))

All functions here are pure: the fixed quantities travel in an explicit
LatentParams pytree rather than being captured by closures.
"""
from __future__ import annotations

import numpy as np
import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from ..core.data import Dataset
from ..core.hypers import Hypers
from ..fourier.covariance import FourierCovariance, KronBasis
from .nonlinearity import NonlinearityCFG, cdiag_from_u, safe_sqrt
from .ridge import dual_neglogev


@register_pytree_node_class
class LatentParams:
    """
    Fixed quantities of the latent-field likelihood for one iteration.

    sqrt_k:  sqrt of the prior covariance diagonal of ufreq (L,)
    bp:      offset placed on the zero-frequency coefficient (L,)
    basis:   G, Fourier <-> real operator of the latent field
    cf_half: sqrt of the smoothing covariance diagonal (Lf,)
    basis_f: Gf, Fourier <-> real operator of the smoothing kernel
    x, y:    data
    keep:    0/1 keep weights (p,)
    nsevar:  noise variance (> 0)
    nonlinearity: NonlinearityCFG (static)
    """

    def __init__(self, sqrt_k, bp, basis: KronBasis, cf_half, basis_f: KronBasis,
                 x, y, keep, nsevar, nonlinearity: NonlinearityCFG = NonlinearityCFG()):
        self.sqrt_k = sqrt_k
        self.bp = bp
        self.basis = basis
        self.cf_half = cf_half
        self.basis_f = basis_f
        self.x = x
        self.y = y
        self.keep = keep
        self.nsevar = nsevar
        self.nonlinearity = nonlinearity

    @property
    def n_freq(self) -> int:
        return int(self.sqrt_k.shape[0])

    # ---- pytree protocol ----
    def tree_flatten(self):
        children = (self.sqrt_k, self.bp, self.basis, self.cf_half, self.basis_f,
                    self.x, self.y, self.keep, self.nsevar)
        return children, self.nonlinearity

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(*children, nonlinearity=aux_data)


def offset_coefficients(b, cov: FourierCovariance) -> jnp.ndarray:
    """bp: offset b on the zero-frequency coefficient, scaled by sqrt(#grid points)."""
    n_grid = int(np.prod(cov.support.dims))
    dc = jnp.asarray(cov.dc_mask, dtype=jnp.float64)
    return b * np.sqrt(n_grid) * dc


def make_latent_params(
    cov: FourierCovariance,
    cov_f: FourierCovariance,
    hypers: Hypers,
    dat: Dataset,
    nonlinearity: NonlinearityCFG = NonlinearityCFG(),
) -> LatentParams:
    """Assemble LatentParams from the two covariances and current hypers."""
    return LatentParams(
        sqrt_k=jnp.sqrt(cov.kdiag),
        bp=offset_coefficients(hypers.b, cov),
        basis=cov.basis,
        cf_half=jnp.sqrt(cov_f.kdiag),
        basis_f=cov_f.basis,
        x=dat.x,
        y=dat.y,
        keep=dat.keep_weights,
        nsevar=hypers.nsevar,
        nonlinearity=nonlinearity,
    )


def smoothed_design(x, c_half, cf_half, basis_f: KronBasis) -> jnp.ndarray:
    """Z = (X · sqrt(c)) projected by Gf and reweighted by sqrt(cf), shape (n, Lf)."""
    xc = x * c_half[None, :]
    return basis_f.to_freq(xc.T).T * cf_half[None, :]


def design_nll(z, y, nsevar) -> jnp.ndarray:
    """-log N(y; 0, Z Z' + nsevar I): the dual ridge evidence with X = Z, rho = 1."""
    return dual_neglogev(z @ z.T, y, 1.0, nsevar)


def latent_ufreq(v, params: LatentParams) -> jnp.ndarray:
    return v * params.sqrt_k + params.bp


def latent_ureal(v, params: LatentParams) -> jnp.ndarray:
    """u = G' (v · sqrt(k) + bp)."""
    return params.basis.to_real(latent_ufreq(v, params))


def nll_from_ufreq(ufreq, params: LatentParams) -> jnp.ndarray:
    """Data negative log-likelihood as a function of the Fourier coefficients."""
    u = params.basis.to_real(ufreq)
    c = cdiag_from_u(u, params.keep, params.nonlinearity)
    z = smoothed_design(params.x, safe_sqrt(c), params.cf_half, params.basis_f)
    return design_nll(z, params.y, params.nsevar)


def dual_data_nll(v, params: LatentParams) -> jnp.ndarray:
    """Data negative log-likelihood of the whitened state v (w integrated out)."""
    return nll_from_ufreq(latent_ufreq(v, params), params)


def penalized_nll(v, params: LatentParams) -> jnp.ndarray:
    """Negative log joint of v and y: standard-normal prior on v plus the data term."""
    return 0.5 * v @ v + dual_data_nll(v, params)


def data_hessian(ufreq, params: LatentParams) -> jnp.ndarray:
    """Hessian of the data term w.r.t. the Fourier coefficients, (L, L)."""
    return jax.hessian(nll_from_ufreq)(ufreq, params)


__all__ = [
    "LatentParams",
    "make_latent_params",
    "offset_coefficients",
    "smoothed_design",
    "design_nll",
    "latent_ufreq",
    "latent_ureal",
    "nll_from_ufreq",
    "dual_data_nll",
    "penalized_nll",
    "data_hessian",
]
