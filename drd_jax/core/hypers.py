# drd_jax/core/hypers.py
"""
Hyperparameter record, box bounds and append-only history.

Hypers is the single explicit hyperparameter type used throughout the
package. It is a pytree so it can flow through jitted objectives.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Iterator, List, Sequence, Tuple

import numpy as np
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class


@register_pytree_node_class
@dataclass(frozen=True)
class Hypers:
    """
    sDRD hyperparameters θ.

    rho:        marginal variance of the latent field u (> 0)
    delta:      length scale of the latent field u (> 0)
    b:          offset (mean) of u, placed on the zero-frequency coefficient
    log_nsevar: log of the observation noise variance
    len:        length scale of the smoothing kernel on w (> 0)
    """
    rho: float = 1.0
    delta: float = 1.0
    b: float = -12.0
    log_nsevar: float = 0.0
    len: float = 10.0

    NAMES = ("rho", "delta", "b", "log_nsevar", "len")

    @property
    def nsevar(self):
        return jnp.exp(self.log_nsevar)

    def to_array(self) -> jnp.ndarray:
        return jnp.array([getattr(self, name) for name in self.NAMES], dtype=jnp.float64)

    @classmethod
    def from_array(cls, values) -> Hypers:
        values = np.asarray(values, dtype=np.float64).reshape(-1)
        if values.shape[0] != len(cls.NAMES):
            raise ValueError(f"Expected {len(cls.NAMES)} values, got {values.shape[0]}")
        return cls(**{name: float(v) for name, v in zip(cls.NAMES, values)})

    def replace(self, **kwargs) -> Hypers:
        unknown = set(kwargs) - set(self.NAMES)
        if unknown:
            raise ValueError(f"Unknown hyperparameter(s): {sorted(unknown)}")
        values = {name: getattr(self, name) for name in self.NAMES}
        values.update(kwargs)
        return Hypers(**values)

    def select(self, names: Sequence[str]) -> jnp.ndarray:
        """Values of `names` as a vector, in the given order."""
        check_names(names)
        return jnp.array([getattr(self, name) for name in names], dtype=jnp.float64)

    def with_values(self, names: Sequence[str], values) -> Hypers:
        """Copy with `names` set from the vector `values` (traceable)."""
        check_names(names)
        return self.replace(**{name: values[i] for i, name in enumerate(names)})

    def as_floats(self) -> Hypers:
        """Concrete Python-float copy (leaves pulled off device)."""
        return Hypers(**{name: float(getattr(self, name)) for name in self.NAMES})

    # ---- pytree protocol ----
    def tree_flatten(self):
        children = tuple(getattr(self, name) for name in self.NAMES)
        return children, None

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(*children)


def check_names(names: Sequence[str]) -> None:
    unknown = [name for name in names if name not in Hypers.NAMES]
    if unknown:
        raise ValueError(
            f"Unknown hyperparameter(s) {unknown}. Available: {list(Hypers.NAMES)}"
        )


# Scale parameters are strictly positive; the others live on the real line.
POSITIVE = ("rho", "delta", "len")


@dataclass(frozen=True)
class HyperBounds:
    """Global box constraints lb <= θ <= ub."""
    lb: Hypers
    ub: Hypers

    def validate(self) -> HyperBounds:
        lb = self.lb.to_array()
        ub = self.ub.to_array()
        bad = [name for name, l, u in zip(Hypers.NAMES, lb, ub) if not l <= u]
        if bad:
            raise ValueError(f"Lower bound exceeds upper bound for {bad}")
        for name in POSITIVE:
            if not getattr(self.lb, name) > 0:
                raise ValueError(f"Lower bound of '{name}' must be positive")
        # nsevar = exp(log_nsevar) must stay strictly positive
        if not np.isfinite(self.lb.log_nsevar) or not np.exp(self.lb.log_nsevar) > 0:
            raise ValueError(
                "Lower bound of 'log_nsevar' gives a non-positive noise variance"
            )
        return self

    def lower(self, names: Sequence[str]) -> jnp.ndarray:
        return self.lb.select(names)

    def upper(self, names: Sequence[str]) -> jnp.ndarray:
        return self.ub.select(names)

    def clip(self, hypers: Hypers) -> Hypers:
        values = jnp.clip(hypers.to_array(), self.lb.to_array(), self.ub.to_array())
        return Hypers.from_array(values)

    def contains(self, hypers: Hypers) -> bool:
        values = hypers.to_array()
        return bool(jnp.all(values >= self.lb.to_array()) and jnp.all(values <= self.ub.to_array()))

    @classmethod
    def default(cls, dims: Sequence[int]) -> HyperBounds:
        """Ranges used by the reference sDRD experiments."""
        nmax = float(max(dims))
        return cls(
            lb=Hypers(rho=1e-3, delta=1.0, b=-30.0, log_nsevar=-10.0, len=1.0),
            ub=Hypers(rho=1e3, delta=nmax, b=5.0, log_nsevar=5.0, len=nmax),
        )


class HyperHistory:
    """
    Append-only hyperparameter history, one row per iteration.

    Rows are never mutated after being appended.
    """

    def __init__(self, first: Hypers):
        self._rows: List[Hypers] = [first.as_floats()]

    def append(self, hypers: Hypers) -> None:
        self._rows.append(hypers.as_floats())

    def __getitem__(self, idx: int) -> Hypers:
        return self._rows[idx]

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Hypers]:
        return iter(self._rows)

    @property
    def last(self) -> Hypers:
        return self._rows[-1]

    def as_array(self) -> np.ndarray:
        """History as an (iters, 5) array, columns in Hypers.NAMES order."""
        return np.array([[getattr(h, name) for name in Hypers.NAMES] for h in self._rows])

    def column(self, name: str) -> np.ndarray:
        check_names([name])
        return np.array([getattr(h, name) for h in self._rows])


__all__ = ["Hypers", "HyperBounds", "HyperHistory", "POSITIVE", "check_names"]
