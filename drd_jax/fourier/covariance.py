# drd_jax/fourier/covariance.py
"""
Factored ASD covariance, diagonal in a real Fourier basis.

The automatic smoothness determination (ASD) prior is a squared-exponential
Gaussian process. On a regular grid its covariance is (approximately)
diagonalised by the real DFT, with spectral density per axis

    k(w) = sqrt(2π) · scale · exp(-0.5 · (2π w / N)^2 · scale^2)

and an overall marginal variance rho. The n-D covariance is separable, so
its diagonal is the sum (in log space) of the per-axis densities and the
basis is a Kronecker product of per-axis real DFT bases.

High frequencies whose density at `min_scale` falls below max/cond are
dropped. Truncation depends only on (dims, min_scale, cond) and is held in
a static FourierSupport, so the density itself stays differentiable in
(rho, scale) with a fixed number of coefficients.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from .dft import fourier_frequencies, real_dft_basis


@dataclass(frozen=True)
class FourierCFG:
    """Configuration for the Fourier-domain covariance construction."""
    cond: float = 1e12  # total condition-number threshold, shared across axes
    nxcirc: Optional[Tuple[int, ...]] = None  # circular boundary per axis (None: grid size)

    def axis_cond(self, ndim: int) -> float:
        """Per-axis threshold, so that the product over axes equals `cond`."""
        return float(self.cond) ** (1.0 / ndim)


@register_pytree_node_class
class KronBasis:
    """
    Separable real Fourier basis G = B_1 ⊗ ... ⊗ B_D.

    Each factor B_d has shape (L_d, N_d). The operator is never materialised:
    both directions are applied axis by axis at cost O(sum(dims) · prod(dims)).
    Inputs may be a vector or a matrix whose columns are vectors.
    """

    def __init__(self, factors: Sequence[jnp.ndarray]):
        self.factors = tuple(factors)

    @property
    def real_dims(self) -> Tuple[int, ...]:
        return tuple(int(f.shape[1]) for f in self.factors)

    @property
    def freq_dims(self) -> Tuple[int, ...]:
        return tuple(int(f.shape[0]) for f in self.factors)

    @property
    def n_real(self) -> int:
        return int(np.prod(self.real_dims))

    @property
    def n_freq(self) -> int:
        return int(np.prod(self.freq_dims))

    @staticmethod
    def _apply(mats, x, in_dims):
        x = jnp.asarray(x)
        extra = x.shape[1:]
        t = x.reshape(tuple(in_dims) + extra)
        for d, mat in enumerate(mats):
            t = jnp.moveaxis(jnp.tensordot(mat, t, axes=(1, d)), 0, d)
        return t.reshape((-1,) + extra)

    def to_freq(self, x) -> jnp.ndarray:
        """Real domain -> truncated Fourier domain (forward apply)."""
        return self._apply(self.factors, x, self.real_dims)

    def to_real(self, f) -> jnp.ndarray:
        """Truncated Fourier domain -> real domain (transpose apply)."""
        return self._apply(tuple(m.T for m in self.factors), f, self.freq_dims)

    def dense(self) -> jnp.ndarray:
        """Dense (n_freq, n_real) matrix. For tests and debugging only."""
        return self.to_freq(jnp.eye(self.n_real))

    # ---- pytree protocol ----
    def tree_flatten(self):
        return self.factors, None

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(children)


@register_pytree_node_class
class FourierSupport:
    """
    Retained frequencies of a truncated real DFT on a grid.

    omega: (L, D) effective angular frequencies 2π w_d / N_d per coefficient,
           coefficients in row-major order over the per-axis retained sets
    basis: KronBasis with the retained per-axis basis factors
    freqs: per-axis retained integer frequencies (static)
    """

    def __init__(self, omega, basis: KronBasis, dims, nxcirc, freqs):
        self.omega = omega
        self.basis = basis
        self.dims = tuple(dims)
        self.nxcirc = tuple(nxcirc)
        self.freqs = tuple(tuple(int(w) for w in f) for f in freqs)

    @property
    def n_freq(self) -> int:
        return int(np.prod([len(f) for f in self.freqs]))

    @property
    def int_freqs(self) -> np.ndarray:
        """(L, D) integer frequencies per retained coefficient."""
        grids = np.meshgrid(*[np.asarray(f) for f in self.freqs], indexing="ij")
        return np.stack([g.reshape(-1) for g in grids], axis=1)

    @property
    def dc_mask(self) -> np.ndarray:
        """Boolean mask of the zero-frequency coefficient."""
        return np.all(self.int_freqs == 0, axis=1)

    @property
    def freq_norms(self) -> jnp.ndarray:
        return jnp.abs(self.omega)

    # ---- pytree protocol ----
    def tree_flatten(self):
        children = (self.omega, self.basis)
        aux_data = (self.dims, self.nxcirc, self.freqs)
        return children, aux_data

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        dims, nxcirc, freqs = aux_data
        omega, basis = children
        return cls(omega, basis, dims, nxcirc, freqs)


def fourier_support(
    dims: Sequence[int],
    min_scale: float,
    cond: float,
    nxcirc: Optional[Sequence[int]] = None,
) -> FourierSupport:
    """
    Static truncation of the real DFT for an ASD covariance.

    On each axis a frequency w is kept iff

        0.5 · (2π w / N)^2 · min_scale^2 <= log(cond)

    i.e. the spectral density at length scale `min_scale` is at least
    max/cond. The filtered frequencies keep the low-at-both-ends ordering.

    Args:
        dims: grid size per axis
        min_scale: smallest length scale the truncation must support (> 0)
        cond: per-axis condition-number threshold
        nxcirc: circular boundary per axis (defaults to dims)

    Raises:
        ValueError: if min_scale <= 0 or an axis retains no frequency
    """
    dims = tuple(int(d) for d in np.atleast_1d(dims))
    nxcirc = dims if nxcirc is None else tuple(int(n) for n in np.atleast_1d(nxcirc))
    if len(nxcirc) != len(dims):
        raise ValueError(f"nxcirc {nxcirc} does not match dims {dims}")
    min_scale = float(min_scale)
    if not min_scale > 0:
        raise ValueError(f"min_scale must be positive, got {min_scale}")
    log_cond = np.log(float(cond)) if cond > 0 else -np.inf

    freqs, factors, omegas = [], [], []
    for nx, nc in zip(dims, nxcirc):
        wvec = fourier_frequencies(nc)
        omega = 2.0 * np.pi * wvec / nc
        keep = 0.5 * omega ** 2 * min_scale ** 2 <= log_cond
        if not np.any(keep):
            raise ValueError(
                f"Condition threshold {cond} retains no frequencies "
                f"(axis of size {nx}, min_scale={min_scale})"
            )
        freqs.append(wvec[keep])
        omegas.append(omega[keep])
        factors.append(jnp.asarray(real_dft_basis(nx, nc, wvec[keep])))

    grids = np.meshgrid(*omegas, indexing="ij")
    omega = jnp.asarray(np.stack([g.reshape(-1) for g in grids], axis=1))
    return FourierSupport(omega, KronBasis(factors), dims, nxcirc, freqs)


def log_asd_diag(rho, scale, support: FourierSupport) -> jnp.ndarray:
    """Log of the factored ASD covariance diagonal on a fixed support."""
    ndim = support.omega.shape[1]
    sq = jnp.sum(support.omega ** 2, axis=1)
    return (
        jnp.log(rho)
        + ndim * (0.5 * jnp.log(2.0 * jnp.pi) + jnp.log(scale))
        - 0.5 * sq * scale ** 2
    )


@dataclass(frozen=True, eq=False)
class FourierCovariance:
    """
    Diagonal covariance in a truncated real Fourier basis.

    log_kdiag:  log covariance diagonal (L,)
    freq_norms: |2π w_d / N_d| per coefficient and axis (L, D)
    basis:      operator G between the Fourier and the real domain
    support:    the static truncation it was built on
    """
    log_kdiag: jnp.ndarray
    freq_norms: jnp.ndarray
    basis: KronBasis
    support: FourierSupport

    @property
    def kdiag(self) -> jnp.ndarray:
        return jnp.exp(self.log_kdiag)

    @property
    def dc_mask(self) -> np.ndarray:
        return self.support.dc_mask

    @property
    def n_freq(self) -> int:
        return self.support.n_freq


def build(
    rho,
    scale,
    dims: Sequence[int],
    min_scale: float,
    cond: float,
    nxcirc: Optional[Sequence[int]] = None,
) -> FourierCovariance:
    """
    Build the factored ASD covariance.

    Args:
        rho: marginal variance (> 0)
        scale: length scale (> 0)
        dims: grid size per axis
        min_scale: floor on the scale used for truncation
        cond: per-axis condition-number threshold
        nxcirc: optional circular boundary per axis

    Returns:
        FourierCovariance (logKdiag, freqNorms, G)
    """
    support = fourier_support(dims, min_scale, cond, nxcirc)
    return cov_on_support(rho, scale, support)


def cov_on_support(rho, scale, support: FourierSupport) -> FourierCovariance:
    """ASD covariance on an existing support (no re-truncation)."""
    return FourierCovariance(
        log_kdiag=log_asd_diag(rho, scale, support),
        freq_norms=support.freq_norms,
        basis=support.basis,
        support=support,
    )


def clamped_inverse(kdiag) -> jnp.ndarray:
    """1/kdiag with infinite entries clamped to the largest finite entry."""
    inv = 1.0 / jnp.asarray(kdiag)
    inf = jnp.isinf(inv)
    max_finite = jnp.max(jnp.where(inf, -jnp.inf, inv))
    return jnp.where(inf, max_finite, inv)


__all__ = [
    "FourierCFG",
    "KronBasis",
    "FourierSupport",
    "FourierCovariance",
    "fourier_support",
    "log_asd_diag",
    "build",
    "cov_on_support",
    "clamped_inverse",
]
