# drd_jax/inference/optimisation/lbfgs.py
"""
Quasi-Newton minimisation with optax L-BFGS.

Two entry points share one JIT-compiled step:

- `LBFGS.run`      unconstrained minimisation (latent field)
- `LBFGS.run_box`  minimisation under box constraints lb <= x <= ub
                   (hyperparameters), through the reparameterisation
                   x = lb + (ub - lb) · sigmoid(z)

Budgets are hard caps. Running out of iterations is not an error: the best
finite iterate seen is returned with `converged=False`. A non-finite value
or gradient stops the run at the last finite iterate.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache, partial
from typing import Any, Callable, Tuple

import numpy as np
import jax
import jax.numpy as jnp
import optax

from ..base import InferenceMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LBFGSCFG:
    """Configuration for L-BFGS."""
    max_iter: int = 100
    tol: float = 1e-5  # gradient-norm tolerance
    max_linesearch_steps: int = 20
    memory_size: int = 10


@dataclass
class LBFGSRun:
    """L-BFGS run results."""
    x: jnp.ndarray
    value: float
    n_iter: int
    converged: bool
    energy_trace: np.ndarray  # objective value per accepted iterate


@lru_cache(maxsize=None)
def _optimizer(memory_size: int, max_linesearch_steps: int) -> optax.GradientTransformation:
    # cached so the jitted step sees the same (hashable) optimizer object
    return optax.lbfgs(
        memory_size=memory_size,
        linesearch=optax.scale_by_zoom_linesearch(max_linesearch_steps=max_linesearch_steps),
    )


@partial(jax.jit, static_argnums=(0, 1))
def _lbfgs_step(fun, opt, x, state, args):
    def value_fn(z):
        return fun(z, *args)

    value_and_grad = optax.value_and_grad_from_state(value_fn)
    value, grad = value_and_grad(x, state=state)
    updates, state = opt.update(grad, state, x, value=value, grad=grad, value_fn=value_fn)
    return optax.apply_updates(x, updates), state, value, grad


@dataclass(frozen=True)
class _Boxed:
    """fun(lb + (ub - lb) · sigmoid(z), *args), hashable for jit caching."""
    fun: Callable

    def __call__(self, z, lb, ub, *args):
        return self.fun(to_box(z, lb, ub), *args)


def to_box(z, lb, ub):
    return lb + (ub - lb) * jax.nn.sigmoid(z)


def from_box(x, lb, ub, eps: float = 1e-6):
    width = ub - lb
    frac = jnp.where(width > 0, (x - lb) / jnp.where(width > 0, width, 1.0), 0.5)
    frac = jnp.clip(frac, eps, 1.0 - eps)
    return jnp.log(frac) - jnp.log1p(-frac)


class LBFGS(InferenceMethod):
    """
    L-BFGS minimiser (optax) for pure objectives `fun(x, *args) -> scalar`.

    `fun` should be a module-level function (or otherwise stable, hashable
    callable) so the compiled step is reused across calls with the same
    array shapes.
    """

    def __init__(self, cfg: LBFGSCFG = LBFGSCFG()):
        self.cfg = cfg

    def run(self, fun: Callable[..., Any], x0, *args) -> LBFGSRun:
        """
        Minimise fun(x, *args) starting from x0.

        Returns:
            LBFGSRun with the best finite iterate
        """
        cfg = self.cfg
        opt = _optimizer(cfg.memory_size, cfg.max_linesearch_steps)
        x = jnp.asarray(x0, dtype=jnp.float64)
        state = opt.init(x)

        best_x, best_val = x, np.inf
        trace = []
        converged = False
        n_iter = 0
        for n_iter in range(1, cfg.max_iter + 1):
            x_new, state, value, grad = _lbfgs_step(fun, opt, x, state, tuple(args))
            value = float(value)
            gnorm = float(jnp.linalg.norm(grad))
            if not (np.isfinite(value) and np.isfinite(gnorm)):
                logger.debug("L-BFGS stopped on a non-finite value at iteration %d", n_iter)
                break
            trace.append(value)
            if value < best_val:
                best_x, best_val = x, value
            if gnorm < cfg.tol:
                converged = True
                break
            x = x_new
        else:
            # the last update has not been evaluated yet
            value = float(fun(x, *args))
            if np.isfinite(value) and value < best_val:
                best_x, best_val = x, value
                trace.append(value)

        if not converged:
            logger.debug("L-BFGS reached its budget (%d iterations) without converging", cfg.max_iter)
        return LBFGSRun(
            x=best_x,
            value=best_val,
            n_iter=n_iter,
            converged=converged,
            energy_trace=np.asarray(trace),
        )

    def run_box(self, fun: Callable[..., Any], x0, lb, ub, *args) -> LBFGSRun:
        """
        Minimise fun(x, *args) subject to lb <= x <= ub.

        Returns:
            LBFGSRun with `x` in the original (bounded) coordinates
        """
        lb = jnp.asarray(lb, dtype=jnp.float64)
        ub = jnp.asarray(ub, dtype=jnp.float64)
        z0 = from_box(jnp.asarray(x0, dtype=jnp.float64), lb, ub)
        out = self.run(_Boxed(fun), z0, lb, ub, *args)
        out.x = jnp.clip(to_box(out.x, lb, ub), lb, ub)
        return out


__all__ = ["LBFGSCFG", "LBFGSRun", "LBFGS", "to_box", "from_box"]
