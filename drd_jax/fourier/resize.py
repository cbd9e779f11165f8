# drd_jax/fourier/resize.py
"""
Resizing of Fourier-domain state between iterations.

Coefficient vectors are ordered with low frequencies at both ends and high
frequencies in the middle. When the number of retained frequencies changes,
the vector is resized in the middle:

- growing: first floor(len/2) entries, then zeros, then the remaining entries
- shrinking: first floor(L/2) entries and the last L - floor(L/2) entries

Padding then truncating back to the original length is the identity.

The split is positional, not by frequency. A truncated 1-D support keeps
cosines 0..k and sines -k..-1, so its length 2k + 1 is odd and the leading
half holds k entries, one fewer than the cosine block. On growth the highest
kept cosine therefore lands in a sine slot; on shrinkage to an odd length the
highest kept sine lands in the last cosine slot. The moved coefficient is
then read as a different frequency, which only perturbs the warm start.
"""
from __future__ import annotations

import jax.numpy as jnp


def split_point(length: int) -> int:
    """Size of the leading (low positive frequency) half."""
    return length // 2


def resize_freq_vector(v, length: int) -> jnp.ndarray:
    """
    Pad or truncate a Fourier coefficient vector to `length` entries.

    Args:
        v: coefficient vector (L1,)
        length: target number of coefficients L2 (>= 1)

    Returns:
        coefficient vector (L2,)
    """
    v = jnp.asarray(v).reshape(-1)
    length = int(length)
    if length < 1:
        raise ValueError(f"Target length must be positive, got {length}")
    cur = v.shape[0]
    if cur == length:
        return v
    if cur < length:
        h = split_point(cur)
        return jnp.concatenate([v[:h], jnp.zeros(length - cur, dtype=v.dtype), v[h:]])
    h = split_point(length)
    return jnp.concatenate([v[:h], v[cur - (length - h):]])


__all__ = ["resize_freq_vector", "split_point"]
