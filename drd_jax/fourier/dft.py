# drd_jax/fourier/dft.py
"""
Real-valued discrete Fourier transform.

The transform uses separate cosine and sine terms instead of complex
coefficients. Frequencies are ordered

    [0, 1, ..., ncos, -nsin, ..., -1]

so that low frequencies sit at both ends of a coefficient vector and high
frequencies in the middle. Positive frequencies index cosine terms and
negative frequencies index sine terms.

Note: `real_dft2` applies the 1-D transform once per axis, which mixes the
(wx+wy) and (wx-wy) terms and loses information about off-diagonal
orientation in the Fourier domain. Use it only with separable kernels.
"""
from __future__ import annotations

import warnings
from typing import Optional, Tuple

import numpy as np
import jax.numpy as jnp


def fourier_frequencies(nxcirc: int) -> np.ndarray:
    """Integer frequency vector for an `nxcirc`-point real DFT."""
    nxcirc = int(nxcirc)
    if nxcirc < 1:
        raise ValueError(f"nxcirc must be a positive integer, got {nxcirc}")
    ncos = int(np.ceil((nxcirc - 1) / 2))
    nsin = int(np.floor((nxcirc - 1) / 2))
    return np.concatenate([np.arange(0, ncos + 1), np.arange(-nsin, 0)]).astype(np.int64)


def real_dft_basis(
    nx: int,
    nxcirc: Optional[int] = None,
    freqs: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Real DFT basis matrix B with shape (len(freqs), nx).

    Rows are orthonormal when nx == nxcirc and all frequencies are kept:
        DC:          1/sqrt(N)
        w > 0:       sqrt(2/N) cos(2π w t / N)
        w < 0:       sqrt(2/N) sin(2π |w| t / N)
        Nyquist:     cos(π t) / sqrt(N)   (even N only)

    Args:
        nx: number of real-domain points
        nxcirc: circular boundary (>= nx); defaults to nx
        freqs: subset of frequencies to keep (defaults to all)

    Returns:
        numpy array (L, nx)
    """
    nxcirc = int(nx if nxcirc is None else nxcirc)
    if nxcirc < nx:
        raise ValueError(f"nxcirc ({nxcirc}) must be >= nx ({nx})")
    if freqs is None:
        freqs = fourier_frequencies(nxcirc)
    freqs = np.asarray(freqs, dtype=np.int64)

    t = np.arange(nx)
    phase = 2.0 * np.pi * np.outer(np.abs(freqs), t) / nxcirc
    basis = np.where(freqs[:, None] >= 0, np.cos(phase), np.sin(phase))

    scale = np.full(freqs.shape, np.sqrt(2.0 / nxcirc))
    scale[freqs == 0] = 1.0 / np.sqrt(nxcirc)
    if nxcirc % 2 == 0:
        scale[freqs == nxcirc // 2] = 1.0 / np.sqrt(nxcirc)
    return basis * scale[:, None]


def real_dft(x, nxcirc: Optional[int] = None) -> Tuple[jnp.ndarray, np.ndarray]:
    """
    Real DFT along the first axis (columns of a matrix).

    Returns:
        (xhat, freqs): coefficients (nxcirc, ...) and the frequency vector
    """
    x = jnp.asarray(x)
    nx = x.shape[0]
    nxcirc = nx if nxcirc is None else int(nxcirc)
    freqs = fourier_frequencies(nxcirc)
    basis = jnp.asarray(real_dft_basis(nx, nxcirc, freqs))
    return jnp.tensordot(basis, x, axes=(1, 0)), freqs


def real_dft2(x, *pads):
    """
    2-D real DFT: columns first, then rows.

    Call as real_dft2(x) for the natural size, or real_dft2(x, ncol, nrow)
    for circular padding. Vector input falls back to the 1-D transform.

    Returns:
        (xhat, colfreqs, rowfreqs)
    """
    if len(pads) not in (0, 2):
        raise TypeError("real_dft2 takes 1 or 3 arguments: real_dft2(x, ncol, nrow)")
    x = jnp.asarray(x)

    if x.ndim == 1 or x.shape[0] == 1 or x.shape[1] == 1:
        warnings.warn("Input is a vector: calling real_dft", stacklevel=2)
        is_row = x.ndim == 2 and x.shape[0] == 1
        xhat, freqs = real_dft(x.T if is_row else x)
        zero = np.zeros(1, dtype=np.int64)
        if is_row:
            # row vector: frequencies belong to the row axis
            return xhat.T, zero, freqs
        return xhat, freqs, zero

    ncol, nrow = pads if pads else (None, None)
    xhat0, colfreqs = real_dft(x, ncol)
    xhat, rowfreqs = real_dft(jnp.swapaxes(xhat0, 0, 1), nrow)
    return jnp.swapaxes(xhat, 0, 1), colfreqs, rowfreqs


__all__ = ["fourier_frequencies", "real_dft_basis", "real_dft", "real_dft2"]
