# drd_jax/energy/hyper.py
"""
Hyperparameter objectives with the latent field held fixed.

Two objectives are provided, one per update policy:

* `laplace_neglogev` (optimisation policy): Laplace approximation to
  -log p(y | θ) around the latent solution u*,

      nll_data(u*; nsevar, len)
        + 0.5 · Σ (ufreq* - bp(b))^2 / k(rho, delta)
        + 0.5 · logdet(I + K^1/2 H K^1/2)

  with H the data Hessian at u* (held fixed). Truncation of both Fourier
  supports is frozen for the duration of one optimisation, so the
  objective is smooth and jittable in the estimated hyperparameters.
  Non-finite or non-positive-definite values map to INVALID_OBJECTIVE.

* `whitened_neglogli` (sampling policy): data negative log-likelihood of
  the fixed whitened state v under θ. Changing (rho, delta, b) moves
  u = G'(v · sqrt(k) + bp) along with θ.
"""
from __future__ import annotations

from typing import Tuple

import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from ..core.data import Dataset
from ..core.hypers import Hypers
from ..fourier.covariance import FourierSupport, clamped_inverse, cov_on_support, build
from .latent import (
    LatentParams,
    make_latent_params,
    nll_from_ufreq,
    dual_data_nll,
    offset_coefficients,
)
from .nonlinearity import NonlinearityCFG

INVALID_OBJECTIVE = 1e50


@register_pytree_node_class
class LaplaceTerms:
    """
    Quantities held fixed while optimising hyperparameters.

    ufreq:     latent solution in the Fourier domain (L,)
    hess:      data Hessian w.r.t. ufreq at the solution (L, L)
    support:   truncation of the latent covariance
    support_f: truncation of the smoothing covariance
    base:      Hypers supplying the values of non-estimated names
    x, y, keep: data
    names:     estimated hyperparameter names (static)
    nonlinearity: NonlinearityCFG (static)
    """

    def __init__(self, ufreq, hess, support: FourierSupport, support_f: FourierSupport,
                 base: Hypers, x, y, keep, names: Tuple[str, ...],
                 nonlinearity: NonlinearityCFG = NonlinearityCFG()):
        self.ufreq = ufreq
        self.hess = hess
        self.support = support
        self.support_f = support_f
        self.base = base
        self.x = x
        self.y = y
        self.keep = keep
        self.names = tuple(names)
        self.nonlinearity = nonlinearity

    def tree_flatten(self):
        children = (self.ufreq, self.hess, self.support, self.support_f,
                    self.base, self.x, self.y, self.keep)
        return children, (self.names, self.nonlinearity)

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        names, nonlinearity = aux_data
        return cls(*children, names=names, nonlinearity=nonlinearity)


def laplace_neglogev(values, terms: LaplaceTerms) -> jnp.ndarray:
    """
    Laplace-approximate negative log-evidence of the estimated hyperparameters.

    Args:
        values: estimated hyperparameter values, ordered as `terms.names`
        terms: LaplaceTerms

    Returns:
        scalar, or INVALID_OBJECTIVE where the approximation breaks down
    """
    hypers = terms.base.with_values(terms.names, values)

    cov = cov_on_support(hypers.rho, hypers.delta, terms.support)
    k = cov.kdiag
    cov_f = cov_on_support(1.0, hypers.len, terms.support_f)
    params = LatentParams(
        sqrt_k=jnp.sqrt(k),
        bp=offset_coefficients(hypers.b, cov),
        basis=terms.support.basis,
        cf_half=jnp.sqrt(cov_f.kdiag),
        basis_f=terms.support_f.basis,
        x=terms.x,
        y=terms.y,
        keep=terms.keep,
        nsevar=hypers.nsevar,
        nonlinearity=terms.nonlinearity,
    )

    # data term at the fixed latent solution
    nll_data = nll_from_ufreq(terms.ufreq, params)

    # prior term: whitened residual of ufreq under N(bp, K)
    resid = terms.ufreq - params.bp
    quad = 0.5 * jnp.sum(resid ** 2 * clamped_inverse(k))

    # Laplace volume term, K^-1/2 logdet folded in
    sk = jnp.sqrt(k)
    A = jnp.eye(k.shape[0]) + sk[:, None] * terms.hess * sk[None, :]
    sign, logdet = jnp.linalg.slogdet(0.5 * (A + A.T))

    val = nll_data + quad + 0.5 * logdet
    ok = jnp.isfinite(val) & (sign > 0)
    return jnp.where(ok, val, INVALID_OBJECTIVE)


def whitened_neglogli(
    hypers: Hypers,
    v,
    dat: Dataset,
    support: FourierSupport,
    len_frac: float,
    cond_f: float,
    nonlinearity: NonlinearityCFG = NonlinearityCFG(),
    nxcirc=None,
) -> jnp.ndarray:
    """
    Data negative log-likelihood of the whitened state v under `hypers`.

    The latent covariance uses the fixed `support`; the smoothing covariance
    is truncated at len · len_frac, so `hypers.len` must be concrete.
    """
    cov = cov_on_support(hypers.rho, hypers.delta, support)
    cov_f = build(1.0, hypers.len, dat.dims, float(hypers.len) * len_frac, cond_f, nxcirc)
    params = make_latent_params(cov, cov_f, hypers, dat, nonlinearity)
    return dual_data_nll(v, params)


__all__ = ["INVALID_OBJECTIVE", "LaplaceTerms", "laplace_neglogev", "whitened_neglogli"]
