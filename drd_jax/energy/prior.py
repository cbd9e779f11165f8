# drd_jax/energy/prior.py
"""
Truncated prior densities on hyperparameters.

Hyperpriors are NOT energy terms of the latent field: they are log-density
terms on θ that the hyperparameter sampler adds to the (negated) evidence.
Each density is truncated to [lb, ub] and returns -inf outside.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict

import jax.numpy as jnp
from jax.scipy import stats
from jax.scipy.special import gammainc

from ..core.hypers import Hypers, HyperBounds, check_names


def _gamma_cdf(v, shape, scale):
    v = jnp.asarray(v, dtype=jnp.float64)
    finite = jnp.isfinite(v)
    cdf = gammainc(shape, jnp.maximum(jnp.where(finite, v, 0.0), 0.0) / scale)
    return jnp.where(finite, cdf, jnp.where(v > 0, 1.0, 0.0))


def gamma_prior(x, mean, std, lb=0.0, ub=jnp.inf) -> jnp.ndarray:
    """
    Log density of a gamma distribution parameterised by its mean and
    standard deviation, truncated to [lb, ub].
    """
    shape = mean ** 2 / std ** 2
    scale = std ** 2 / mean
    x = jnp.asarray(x, dtype=jnp.float64)
    mass = _gamma_cdf(ub, shape, scale) - _gamma_cdf(lb, shape, scale)
    inside = (x >= lb) & (x <= ub) & (x > 0)
    safe_x = jnp.where(inside, x, mean)
    logp = stats.gamma.logpdf(safe_x, shape, scale=scale) - jnp.log(mass)
    return jnp.where(inside, logp, -jnp.inf)


def gaussian_prior(x, mean, std, lb=-jnp.inf, ub=jnp.inf) -> jnp.ndarray:
    """Log density of N(mean, std^2) truncated to [lb, ub]."""
    x = jnp.asarray(x, dtype=jnp.float64)
    mass = stats.norm.cdf((ub - mean) / std) - stats.norm.cdf((lb - mean) / std)
    inside = (x >= lb) & (x <= ub)
    logp = stats.norm.logpdf(x, mean, std) - jnp.log(mass)
    return jnp.where(inside, logp, -jnp.inf)


@dataclass(frozen=True)
class HyperPrior:
    """
    Independent log-priors on named hyperparameters.

    priors: name -> callable(x) -> log density. Names without an entry
    get a flat prior (contribute 0).
    """
    priors: Dict[str, Callable] = field(default_factory=dict)

    def __post_init__(self):
        check_names(list(self.priors))

    def log_prob(self, hypers: Hypers) -> jnp.ndarray:
        total = jnp.array(0.0)
        for name, fn in self.priors.items():
            total = total + fn(getattr(hypers, name))
        return total

    def log_prob_one(self, name: str, value) -> jnp.ndarray:
        fn = self.priors.get(name)
        return jnp.array(0.0) if fn is None else fn(value)

    @classmethod
    def default(cls, bounds: HyperBounds) -> HyperPrior:
        """Priors of the reference sDRD sampler, truncated to `bounds`."""
        lb, ub = bounds.lb, bounds.ub
        return cls(priors={
            "rho": partial(gamma_prior, mean=20.0, std=10.0, lb=lb.rho, ub=ub.rho),
            "delta": partial(gamma_prior, mean=100.0, std=50.0, lb=lb.delta, ub=ub.delta),
            "b": partial(gaussian_prior, mean=-10.0, std=8.0, lb=lb.b, ub=ub.b),
            "log_nsevar": partial(gaussian_prior, mean=-2.0, std=5.0, lb=lb.log_nsevar, ub=ub.log_nsevar),
            "len": partial(gamma_prior, mean=100.0, std=50.0, lb=lb.len, ub=ub.len),
        })


__all__ = ["gamma_prior", "gaussian_prior", "HyperPrior"]
