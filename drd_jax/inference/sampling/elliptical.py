# drd_jax/inference/sampling/elliptical.py
"""
Elliptical slice sampling (Murray, Adams & MacKay, 2010).

Samples from N(0, I) · L(v) without a step size: the proposal moves on the
ellipse through the current state v and an auxiliary draw nu ~ N(0, I), and
the angle bracket shrinks towards the current state on every rejection.
Each call returns exactly one state.

The shrinkage loop runs inside `lax.while_loop`, so the negative
log-likelihood must be a pure, traceable function `nll(v, *args)`.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

import jax
import jax.numpy as jnp
from jax import lax, random

from ..base import InferenceMethod


@dataclass(frozen=True)
class EllipticalCFG:
    """Configuration for elliptical slice sampling."""
    max_shrink: int = 200  # proposals before returning the current state


@dataclass
class EllipticalStep:
    """One elliptical-slice transition."""
    v: jnp.ndarray
    nll: float
    n_evals: int
    accepted: bool


@partial(jax.jit, static_argnums=0)
def _evaluate(nll, v, args):
    return nll(v, *args)


@partial(jax.jit, static_argnums=(0, 1))
def _ess_step(nll, max_shrink, v, nu, key, nll_v, args):
    k_height, k_angle, key = random.split(key, 3)
    log_height = jnp.log(random.uniform(k_height)) - nll_v
    phi = random.uniform(k_angle, minval=0.0, maxval=2.0 * jnp.pi)

    def cond(carry):
        i, _, _, _, _, _, _, accepted = carry
        return (i < max_shrink) & jnp.logical_not(accepted)

    def body(carry):
        i, key, phi, phi_min, phi_max, cur_v, cur_nll, _ = carry
        proposal = v * jnp.cos(phi) + nu * jnp.sin(phi)
        value = nll(proposal, *args)
        ok = jnp.isfinite(value) & (-value > log_height)
        # shrink the bracket towards phi = 0 (the current state)
        phi_min = jnp.where(phi > 0, phi_min, phi)
        phi_max = jnp.where(phi > 0, phi, phi_max)
        key, sub = random.split(key)
        new_phi = random.uniform(sub, minval=phi_min, maxval=phi_max)
        return (
            i + 1,
            key,
            jnp.where(ok, phi, new_phi),
            phi_min,
            phi_max,
            jnp.where(ok, proposal, cur_v),
            jnp.where(ok, value, cur_nll),
            ok,
        )

    init = (
        jnp.asarray(0, dtype=jnp.int32),
        key,
        phi,
        phi - 2.0 * jnp.pi,
        phi,
        v,
        nll_v,
        jnp.asarray(False),
    )
    n, _, _, _, _, v_out, nll_out, accepted = lax.while_loop(cond, body, init)
    return v_out, nll_out, n, accepted


class EllipticalSlice(InferenceMethod):
    """Elliptical slice sampler on a negative log-likelihood nll(v, *args)."""

    def __init__(self, cfg: EllipticalCFG = EllipticalCFG()):
        self.cfg = cfg

    def run(
        self,
        nll: Callable[..., jnp.ndarray],
        v,
        nu,
        *args,
        key,
        nll_v: Optional[float] = None,
    ) -> EllipticalStep:
        """
        Args:
            nll: negative log-likelihood nll(v, *args) (the N(0, I) prior
                 excluded); a stable callable so the compiled step is reused
            v: current state
            nu: auxiliary draw from the prior, same shape as v
            *args: extra arguments of nll (pytrees)
            key: PRNG key
            nll_v: nll(v, *args) if already known

        Returns:
            EllipticalStep
        """
        v = jnp.asarray(v, dtype=jnp.float64)
        nu = jnp.asarray(nu, dtype=jnp.float64)
        if v.shape != nu.shape:
            raise ValueError(f"v {v.shape} and nu {nu.shape} must have the same shape")
        args = tuple(args)
        n_evals = 0
        if nll_v is None:
            nll_v = _evaluate(nll, v, args)
            n_evals += 1
        nll_v = jnp.asarray(nll_v, dtype=jnp.float64)

        v_out, nll_out, n, accepted = _ess_step(nll, int(self.cfg.max_shrink), v, nu, key, nll_v, args)
        return EllipticalStep(
            v=v_out,
            nll=float(nll_out),
            n_evals=n_evals + int(n),
            accepted=bool(accepted),
        )


def elliptical_slice(v, nu, nll, key, cfg: EllipticalCFG = EllipticalCFG(), nll_v=None, args=()) -> EllipticalStep:
    """Functional shortcut for EllipticalSlice(cfg).run(...)."""
    return EllipticalSlice(cfg).run(nll, v, nu, *args, key=key, nll_v=nll_v)


__all__ = ["EllipticalCFG", "EllipticalStep", "EllipticalSlice", "elliptical_slice"]
