# drd_jax/inference/hypers.py
"""
Hyperparameter updates with the latent field held fixed.

Two policies:

- HyperOptimizer ("optimize"): box-constrained L-BFGS on the Laplace
  evidence, inside a trust region around the previous values.
- HyperSampler ("sample"): one univariate slice-sampling step per estimated
  hyperparameter on log prior - data NLL of the fixed whitened state.

Both return values inside the global bounds.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Literal, Optional, Sequence, Tuple

import numpy as np
import jax
import jax.numpy as jnp
from jax import random

from ..core.data import Dataset
from ..core.hypers import Hypers, HyperBounds, POSITIVE, check_names
from ..energy.hyper import INVALID_OBJECTIVE, LaplaceTerms, laplace_neglogev, whitened_neglogli
from ..energy.latent import LatentParams, data_hessian
from ..energy.nonlinearity import NonlinearityCFG
from ..energy.prior import HyperPrior
from ..fourier.covariance import FourierCFG, FourierSupport
from .optimisation.lbfgs import LBFGS, LBFGSCFG
from .sampling.slice import SliceCFG, SliceSampler

logger = logging.getLogger(__name__)

_data_hessian = jax.jit(data_hessian)


@partial(jax.jit, static_argnums=0)
def _evaluate(objective, values, terms):
    return objective(values, terms)


@dataclass(frozen=True)
class HyperCFG:
    """Configuration for the hyperparameter update."""
    policy: Literal["optimize", "sample"] = "optimize"
    estimate: Tuple[str, ...] = ("rho", "delta", "log_nsevar", "len")
    frac: float = 0.8  # trust region / truncation fraction for scale parameters
    log_step: float = float(np.log(2.0))  # trust region half-width for b and log_nsevar
    lbfgs: LBFGSCFG = field(default_factory=LBFGSCFG)
    slice: SliceCFG = field(default_factory=SliceCFG)

    def __post_init__(self):
        if self.policy not in ("optimize", "sample"):
            raise ValueError(f"Unknown hyperparameter policy: {self.policy}")
        check_names(self.estimate)
        if not 0.0 < self.frac <= 1.0:
            raise ValueError(f"frac must lie in (0, 1], got {self.frac}")


@dataclass
class HyperUpdate:
    """Result of one hyperparameter update."""
    hypers: Hypers
    value: float  # objective (optimise) or log target of the last name (sample)
    n_evals: int
    converged: bool
    restarted: bool = False  # random start was invalid, search began at the previous values


def trust_bounds(
    prev: Hypers,
    names: Sequence[str],
    bounds: HyperBounds,
    frac: float,
    log_step: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Local box around `prev` intersected with the global bounds.

    Scale parameters move by a factor: [θ · frac, θ / frac].
    Additive parameters move by a step: [θ - log_step, θ + log_step].
    """
    lo, hi = [], []
    for name in names:
        theta = float(getattr(prev, name))
        if name in POSITIVE:
            a, b = theta * frac, theta / frac
        else:
            a, b = theta - log_step, theta + log_step
        a = max(a, float(getattr(bounds.lb, name)))
        b = min(b, float(getattr(bounds.ub, name)))
        # prev may sit on a global bound: collapse to a point
        if a > b:
            a = b = float(np.clip(theta, getattr(bounds.lb, name), getattr(bounds.ub, name)))
        lo.append(a)
        hi.append(b)
    return np.asarray(lo), np.asarray(hi)


class HyperOptimizer:
    """
    Maximise the Laplace evidence over the estimated hyperparameters.

    The search starts from a uniform draw inside the trust region; if the
    objective is invalid there it restarts once from the previous values.
    Non-convergence is not an error: the best iterate found is kept.

    `objective(values, terms)` defaults to the Laplace evidence and must be a
    stable, traceable callable returning INVALID_OBJECTIVE where undefined.
    """

    def __init__(
        self,
        cfg: HyperCFG,
        bounds: HyperBounds,
        objective: Callable[..., jnp.ndarray] = laplace_neglogev,
    ):
        self.cfg = cfg
        self.bounds = bounds
        self.names = tuple(cfg.estimate)
        self.objective = objective
        self._lbfgs = LBFGS(cfg.lbfgs)

    def laplace_terms(
        self,
        prev: Hypers,
        ufreq,
        params: LatentParams,
        support: FourierSupport,
        support_f: FourierSupport,
    ) -> LaplaceTerms:
        """Fixed quantities of the Laplace evidence at the latent solution."""
        return LaplaceTerms(
            ufreq=ufreq,
            hess=_data_hessian(ufreq, params),
            support=support,
            support_f=support_f,
            base=prev,
            x=params.x,
            y=params.y,
            keep=params.keep,
            names=self.names,
            nonlinearity=params.nonlinearity,
        )

    def update(self, prev: Hypers, terms: LaplaceTerms, *, key) -> HyperUpdate:
        """
        Args:
            prev: previous hyperparameters (inside the global bounds)
            terms: LaplaceTerms at the current latent solution
            key: PRNG key for the random start

        Returns:
            HyperUpdate with hypers clipped to the global bounds
        """
        lo, hi = trust_bounds(prev, self.names, self.bounds, self.cfg.frac, self.cfg.log_step)
        x0 = np.asarray(random.uniform(key, (len(self.names),), minval=lo, maxval=hi))

        restarted = False
        if float(_evaluate(self.objective, jnp.asarray(x0), terms)) >= INVALID_OBJECTIVE:
            logger.info("Invalid evidence at the random start, restarting from previous values")
            x0 = np.clip(np.asarray(prev.select(self.names)), lo, hi)
            restarted = True

        out = self._lbfgs.run_box(self.objective, x0, lo, hi, terms)
        if not out.value < INVALID_OBJECTIVE:
            logger.info("No valid evidence found, keeping previous hyperparameters")
            return HyperUpdate(hypers=prev, value=float(out.value), n_evals=out.n_iter,
                               converged=False, restarted=restarted)
        if not out.converged:
            logger.debug("Hyperparameter optimisation did not converge, accepting best iterate")

        hypers = self.bounds.clip(prev.with_values(self.names, out.x))
        return HyperUpdate(hypers=hypers, value=float(out.value), n_evals=out.n_iter,
                           converged=out.converged, restarted=restarted)


class HyperSampler:
    """
    Gibbs sweep of univariate slice-sampling steps over the estimated names.

    Target for each name: log prior(θ) - whitened_neglogli(θ; v), zero
    outside the global bounds. The latent support stays fixed; the smoothing
    support follows len.
    """

    def __init__(
        self,
        cfg: HyperCFG,
        bounds: HyperBounds,
        prior: Optional[HyperPrior] = None,
        fourier: FourierCFG = FourierCFG(),
        nonlinearity: NonlinearityCFG = NonlinearityCFG(),
    ):
        self.cfg = cfg
        self.bounds = bounds
        self.prior = HyperPrior.default(bounds) if prior is None else prior
        self.fourier = fourier
        self.nonlinearity = nonlinearity
        self.names = tuple(name for name in Hypers.NAMES if name in cfg.estimate)
        self._slice = SliceSampler(cfg.slice)

    def log_target(self, hypers: Hypers, v, dat: Dataset, support: FourierSupport) -> float:
        if not self.bounds.contains(hypers):
            return -np.inf
        logp = float(self.prior.log_prob(hypers))
        if not np.isfinite(logp):
            return -np.inf
        nll = float(whitened_neglogli(
            hypers, v, dat, support,
            len_frac=self.cfg.frac,
            cond_f=self.fourier.axis_cond(len(dat.dims)),
            nonlinearity=self.nonlinearity,
            nxcirc=self.fourier.nxcirc,
        ))
        return logp - nll if np.isfinite(nll) else -np.inf

    def update(self, prev: Hypers, v, dat: Dataset, support: FourierSupport, *, key) -> HyperUpdate:
        """
        Args:
            prev: previous hyperparameters
            v: whitened latent state, held fixed
            dat: Dataset
            support: latent Fourier support, held fixed
            key: PRNG key

        Returns:
            HyperUpdate; names not estimated are carried over
        """
        hypers = prev.as_floats()
        logp = None
        n_evals = 0
        for name, sub in zip(self.names, random.split(key, len(self.names))):
            def log_density(x, name=name, base=hypers):
                return self.log_target(base.replace(**{name: float(x)}), v, dat, support)

            step = self._slice.run(log_density, getattr(hypers, name), key=sub, logp0=logp)
            hypers = hypers.replace(**{name: step.x})
            logp = step.logp
            n_evals += step.n_evals

        hypers = self.bounds.clip(hypers)
        return HyperUpdate(hypers=hypers, value=float(logp) if logp is not None else float("nan"),
                           n_evals=n_evals, converged=True)


__all__ = ["HyperCFG", "HyperUpdate", "HyperOptimizer", "HyperSampler", "trust_bounds"]
