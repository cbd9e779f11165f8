# drd_jax/energy/ridge.py
"""
Negative log-evidence for ridge regression in dual form.

Model:
    y = X w + n,        n ~ N(0, nsevar · I)
    w ~ N(0, rho · I)

Integrating out w gives y ~ N(0, M) with the (n, n) matrix

    M = rho · X X' + nsevar · I

which is preferred over the (p, p) primal form when n << p. The traditional
ridge parameter is nsevar / rho.

The value alone goes through a Cholesky factor of M (`dual_neglogev`), which
is also the data term of the latent-field objective with rho = 1 and
X = Z. Derivatives are computed from one symmetric eigendecomposition of M,
reused for the log-determinant, the trace terms and the linear solves.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import jax.numpy as jnp
import jax.scipy.linalg as jsl

from ..core.data import Dataset


@dataclass(frozen=True)
class RidgeParams:
    """Ridge hyperparameters: marginal prior variance and noise variance."""
    rho: float
    nsevar: float


@dataclass
class RidgeEvidence:
    """
    Evidence and its derivatives, filled up to the requested order.

    neglogev: -log p(y | X, rho, nsevar)
    grad:     (2,) gradient w.r.t. (rho, nsevar)          order >= 2
    hess:     (2, 2) Hessian w.r.t. (rho, nsevar)         order >= 3
    mupost:   (p,) posterior mean of w                    order >= 4
    lpost:    (p, p) posterior covariance of w            order >= 4
    """
    neglogev: jnp.ndarray
    grad: Optional[jnp.ndarray] = None
    hess: Optional[jnp.ndarray] = None
    mupost: Optional[jnp.ndarray] = None
    lpost: Optional[jnp.ndarray] = None


def unvec_sym_from_triu(v) -> jnp.ndarray:
    """
    Symmetric matrix from its upper triangle packed column by column:
    [a11, a12, a22, a13, a23, a33, ...].
    """
    v = jnp.asarray(v)
    m = v.shape[0]
    n = int(round((np.sqrt(8 * m + 1) - 1) / 2))
    if n * (n + 1) // 2 != m:
        raise ValueError(f"Length {m} is not a triangular number")
    rows = np.concatenate([np.arange(j + 1) for j in range(n)])
    cols = np.concatenate([np.full(j + 1, j) for j in range(n)])
    upper = jnp.zeros((n, n), dtype=v.dtype).at[rows, cols].set(v)
    return upper + upper.T - jnp.diag(jnp.diag(upper))


def dual_neglogev(gram, y, rho, nsevar) -> jnp.ndarray:
    """
    -log N(y; 0, rho · gram + nsevar · I) via a Cholesky factor.

    Differentiable everywhere M is positive definite, including when M has
    repeated eigenvalues (e.g. gram = 0).
    """
    n = y.shape[0]
    M = rho * gram + nsevar * jnp.eye(n)
    L = jnp.linalg.cholesky(M)
    alpha = jsl.cho_solve((L, True), y)
    return (
        jnp.sum(jnp.log(jnp.diag(L)))
        + 0.5 * y @ alpha
        + 0.5 * n * jnp.log(2.0 * jnp.pi)
    )


def neglogev_ridge_dual(prs: RidgeParams, dat: Dataset, order: int = 1) -> RidgeEvidence:
    """
    Dual-form ridge evidence.

    Args:
        prs: RidgeParams(rho, nsevar), both > 0
        dat: Dataset (uses x, y, gram = X X'; xx and xy for order 4)
        order: 1 value, 2 + gradient, 3 + Hessian, 4 + posterior moments

    Returns:
        RidgeEvidence. Derivatives are of the *negative* log-evidence.
    """
    if order not in (1, 2, 3, 4):
        raise ValueError(f"order must be 1, 2, 3 or 4, got {order}")
    rho = prs.rho
    nsevar = prs.nsevar

    x, y = dat.x, dat.y
    if order == 1:
        return RidgeEvidence(neglogev=dual_neglogev(dat.gram, y, rho, nsevar))

    n = y.shape[0]
    M = rho * dat.gram + nsevar * jnp.eye(n)
    evals, evecs = jnp.linalg.eigh(M)

    def msolve(b):
        coef = evecs.T @ b
        coef = coef / (evals[:, None] if coef.ndim == 2 else evals)
        return evecs @ coef

    my = msolve(y)
    logdet = jnp.sum(jnp.log(evals))
    neglogev = 0.5 * logdet + 0.5 * y @ my + 0.5 * n * jnp.log(2.0 * jnp.pi)
    out = RidgeEvidence(neglogev=neglogev)

    # --- gradient of the log-evidence ---
    mx = msolve(x)
    dl_drho = -0.5 * jnp.sum(mx * x) + 0.5 * jnp.sum((mx.T @ y) ** 2)
    dl_dnsevar = -0.5 * jnp.sum(1.0 / evals) + 0.5 * my @ my
    out.grad = -jnp.array([dl_drho, dl_dnsevar])
    if order == 2:
        return out

    # --- Hessian of the log-evidence ---
    a = msolve(dat.gram)  # M^{-1} X X'
    l_rr = 0.5 * jnp.trace(a @ a) - y @ (a @ (a @ my))
    l_nn = 0.5 * jnp.sum(1.0 / evals ** 2) - my @ msolve(my)
    l_rn = 0.5 * jnp.trace(msolve(a.T)) - my @ (a @ my)
    out.hess = -unvec_sym_from_triu(jnp.array([l_rr, l_rn, l_nn]))
    if order == 3:
        return out

    # --- posterior moments (primal form, p x p) ---
    p = x.shape[1]
    lpost = jnp.linalg.inv(dat.xx / nsevar + jnp.eye(p) / rho)
    out.lpost = lpost
    out.mupost = lpost @ dat.xy / nsevar
    return out


__all__ = ["RidgeParams", "RidgeEvidence", "dual_neglogev", "neglogev_ridge_dual", "unvec_sym_from_triu"]
