# drd_jax/inference/latent.py
"""
Latent-field update for one iteration.

The latent relevance field is parameterised by its whitened Fourier state v,
with prior v ~ N(0, I). Conditioned on the current hyperparameters the
solver either

- optimises v (MAP of `penalized_nll`, L-BFGS), or
- draws one new v by elliptical slice sampling on `dual_data_nll`.

The previous state is carried between iterations as a warm start and is
resized when the number of retained frequencies changes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal, Optional

import jax.numpy as jnp
from jax import random

from ..energy.latent import LatentParams, dual_data_nll, latent_ufreq, penalized_nll
from ..fourier.resize import resize_freq_vector
from .optimisation.lbfgs import LBFGS, LBFGSCFG
from .sampling.elliptical import EllipticalCFG, EllipticalSlice

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LatentCFG:
    """Configuration for the latent-field update."""
    mode: Literal["optimize", "sample"] = "optimize"
    init_value: float = 1e-4  # constant initial state for the first optimisation
    lbfgs: LBFGSCFG = field(default_factory=LBFGSCFG)
    max_shrink: int = 200  # elliptical slice proposals per draw


@dataclass
class LatentState:
    """
    Latent field after one update.

    v:      whitened Fourier state (L,)
    ufreq:  v · sqrt(k) + bp
    ureal:  G' ufreq, the field on the grid (p,)
    value:  objective at v (penalized NLL when optimising, data NLL when sampling)
    n_evals: optimiser iterations or sampler likelihood evaluations
    converged: optimiser convergence, or sampler acceptance
    """
    v: jnp.ndarray
    ufreq: jnp.ndarray
    ureal: jnp.ndarray
    value: float
    n_evals: int
    converged: bool


class LatentFieldSolver:
    """Optimise or sample the whitened latent state v given LatentParams."""

    def __init__(self, cfg: LatentCFG = LatentCFG()):
        if cfg.mode not in ("optimize", "sample"):
            raise ValueError(f"Unknown latent mode: {cfg.mode}")
        self.cfg = cfg
        self._lbfgs = LBFGS(cfg.lbfgs)
        self._ess = EllipticalSlice(EllipticalCFG(max_shrink=cfg.max_shrink))

    def _state(self, v, params: LatentParams, value, n_evals, converged) -> LatentState:
        ufreq = latent_ufreq(v, params)
        return LatentState(
            v=v,
            ufreq=ufreq,
            ureal=params.basis.to_real(ufreq),
            value=float(value),
            n_evals=int(n_evals),
            converged=bool(converged),
        )

    def optimize(self, v_prev: Optional[jnp.ndarray], params: LatentParams) -> LatentState:
        """
        MAP estimate of v, warm-started from the previous state.

        Args:
            v_prev: previous whitened state (any length), or None
            params: LatentParams for this iteration

        Returns:
            LatentState
        """
        n_freq = params.n_freq
        if v_prev is None:
            v0 = self.cfg.init_value * jnp.ones(n_freq)
        else:
            v0 = resize_freq_vector(v_prev, n_freq)

        out = self._lbfgs.run(penalized_nll, v0, params)
        if not out.converged:
            logger.debug("Latent optimisation stopped after %d iterations (value %.6g)",
                         out.n_iter, out.value)
        return self._state(out.x, params, out.value, out.n_iter, out.converged)

    def sample(self, v_prev: Optional[jnp.ndarray], params: LatentParams, key) -> LatentState:
        """
        One elliptical slice step on v.

        Args:
            v_prev: previous whitened state (any length), or None to draw
                    a fresh state from the prior
            params: LatentParams for this iteration
            key: PRNG key

        Returns:
            LatentState
        """
        n_freq = params.n_freq
        k_init, k_nu, k_step = random.split(key, 3)
        if v_prev is None:
            v_prev = random.normal(k_init, (params.x.shape[1],))
        v = resize_freq_vector(v_prev, n_freq)
        nu = random.normal(k_nu, (n_freq,))

        step = self._ess.run(dual_data_nll, v, nu, params, key=k_step)
        if not step.accepted:
            logger.debug("Elliptical slice kept the current state after %d evaluations",
                         step.n_evals)
        return self._state(step.v, params, step.nll, step.n_evals, step.accepted)

    def update(self, v_prev, params: LatentParams, *, key=None) -> LatentState:
        """Dispatch on the configured mode."""
        if self.cfg.mode == "optimize":
            return self.optimize(v_prev, params)
        if key is None:
            raise ValueError("Sampling the latent field requires a PRNG key")
        return self.sample(v_prev, params, key)


__all__ = ["LatentCFG", "LatentState", "LatentFieldSolver"]
