# drd_jax/core/data.py
"""
Data view layer.

The Dataset is constructed once, holds the design matrix, the response and
their sufficient statistics, and is shared read-only by every component of
an iteration. It contains no model assumptions and no inference logic.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np
import jax.numpy as jnp


@dataclass(frozen=True, eq=False)
class Dataset:
    """
    Linear-Gaussian regression data on a regular grid of features.

    - x: design matrix (n, p), one regressor per row
    - y: responses (n,)
    - dims: grid shape of the features, prod(dims) == p
    - keep: boolean keep-mask over the p features (default: all kept)

    Sufficient statistics are precomputed at construction:
    - xx:   X'X  (p, p)
    - gram: X X' (n, n), the dual-form Gram matrix
    - xy:   X'y  (p,)
    - yy:   y'y  scalar
    """
    x: jnp.ndarray
    y: jnp.ndarray
    dims: Tuple[int, ...]
    keep: Optional[np.ndarray] = None

    xx: jnp.ndarray = field(init=False, repr=False)
    gram: jnp.ndarray = field(init=False, repr=False)
    xy: jnp.ndarray = field(init=False, repr=False)
    yy: jnp.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        x = jnp.asarray(self.x, dtype=jnp.float64)
        y = jnp.asarray(self.y, dtype=jnp.float64).reshape(-1)
        if x.ndim != 2:
            raise ValueError(f"x must be 2-D (n, p), got shape {x.shape}")
        if x.shape[0] != y.shape[0]:
            raise ValueError(
                f"x has {x.shape[0]} rows but y has {y.shape[0]} entries"
            )
        dims = tuple(int(d) for d in np.atleast_1d(self.dims))
        if int(np.prod(dims)) != x.shape[1]:
            raise ValueError(
                f"prod(dims)={int(np.prod(dims))} does not match p={x.shape[1]}"
            )
        if self.keep is None:
            keep = np.ones(x.shape[1], dtype=bool)
        else:
            keep = np.asarray(self.keep, dtype=bool).reshape(-1)
            if keep.shape[0] != x.shape[1]:
                raise ValueError(
                    f"keep-mask has length {keep.shape[0]}, expected {x.shape[1]}"
                )

        # frozen dataclass: assign through object.__setattr__
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)
        object.__setattr__(self, "dims", dims)
        object.__setattr__(self, "keep", keep)
        object.__setattr__(self, "xx", x.T @ x)
        object.__setattr__(self, "gram", x @ x.T)
        object.__setattr__(self, "xy", x.T @ y)
        object.__setattr__(self, "yy", y @ y)

    @property
    def n(self) -> int:
        """Number of samples."""
        return self.x.shape[0]

    @property
    def p(self) -> int:
        """Number of features (grid points)."""
        return self.x.shape[1]

    @property
    def keep_weights(self) -> jnp.ndarray:
        """Keep-mask as a 0/1 float vector, usable inside jitted code."""
        return jnp.asarray(self.keep, dtype=jnp.float64)

    def with_keep(self, keep: Sequence[bool]) -> Dataset:
        """Return a copy with a different a-priori keep-mask."""
        return Dataset(self.x, self.y, self.dims, np.asarray(keep, dtype=bool))

    def __len__(self) -> int:
        return self.n


__all__ = ["Dataset"]
