# drd_jax/energy/nonlinearity.py
"""
Nonlinearities mapping the latent field u to prior variances c = |f(u)|.
"""
from __future__ import annotations

from dataclasses import dataclass

import jax
import jax.numpy as jnp

_NONLINEARITY_REGISTRY = {}


def register(name: str, obj):
    if name in _NONLINEARITY_REGISTRY:
        raise KeyError(f"Nonlinearity '{name}' already registered.")
    _NONLINEARITY_REGISTRY[name] = obj


def get(name: str):
    try:
        return _NONLINEARITY_REGISTRY[name]
    except KeyError:
        raise KeyError(
            f"Unknown nonlinearity '{name}'. "
            f"Available: {list(_NONLINEARITY_REGISTRY.keys())}"
        )


def soft_rectify(u):
    """log(1 + exp(u)), computed stably."""
    return jax.nn.softplus(u)


def exponential(u):
    return jnp.exp(u)


def square(u):
    return u ** 2


def relu(u):
    return jnp.maximum(u, 0.0)


register("rec", soft_rectify)
register("exp", exponential)
register("square", square)
register("relu", relu)


@dataclass(frozen=True)
class NonlinearityCFG:
    """How latent values become prior variances."""
    name: str = "rec"
    sv_min: float = 1e-6  # values below this are cut to zero when thresholding
    threshold: bool = True


def cdiag_from_u(u, keep, cfg: NonlinearityCFG) -> jnp.ndarray:
    """
    Prior variances c = |f(u)| on kept features, zero elsewhere.

    Args:
        u: latent field in the real domain (p,)
        keep: 0/1 keep weights (p,)
        cfg: NonlinearityCFG

    Returns:
        (p,) nonnegative vector
    """
    c = jnp.abs(get(cfg.name)(u))
    if cfg.threshold:
        c = jnp.where(c < cfg.sv_min, 0.0, c)
    return c * keep


def safe_sqrt(c) -> jnp.ndarray:
    """Square root with a zero (not NaN) gradient at c == 0."""
    pos = c > 0
    return jnp.where(pos, jnp.sqrt(jnp.where(pos, c, 1.0)), 0.0)


__all__ = [
    "NonlinearityCFG",
    "cdiag_from_u",
    "safe_sqrt",
    "register",
    "get",
    "soft_rectify",
    "exponential",
    "square",
    "relu",
]
