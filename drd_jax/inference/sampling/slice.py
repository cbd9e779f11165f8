# drd_jax/inference/sampling/slice.py
"""
Univariate slice sampler.

Gradient-free: the sampler draws uniformly from a horizontal slice under the
density, so the effective step size adapts on its own.

This is the stepping-out / shrinkage procedure of Neal (2003) for a single
scalar, used to update one hyperparameter at a time. The log density is a
black box that may return -inf outside its support.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from jax import random

from ..base import InferenceMethod


@dataclass(frozen=True)
class SliceCFG:
    """Configuration for the univariate slice sampler."""
    width: float = 10.0  # initial slice width
    max_steps: int = 50  # maximum stepping-out expansions (both sides together)
    max_shrink: int = 100  # maximum shrinkage proposals before keeping x0


@dataclass
class SliceStep:
    """One slice-sampling transition."""
    x: float
    logp: float
    n_evals: int
    accepted: bool


class SliceSampler(InferenceMethod):
    """
    Slice Sampler.

    Slice sampling works by:
    1. Sample a height y uniformly from [0, p(x_current)]
    2. Step out an interval of width `width` until both ends leave the slice
    3. Propose uniformly inside the interval, shrinking it towards x_current
       on every rejection
    """

    def __init__(self, cfg: SliceCFG = SliceCFG()):
        self.cfg = cfg

    def run(
        self,
        log_density: Callable[[float], float],
        x0: float,
        *,
        key,
        logp0: Optional[float] = None,
    ) -> SliceStep:
        """
        Draw one new value from a univariate density.

        Args:
            log_density: x -> log p(x) (unnormalised; -inf outside support)
            x0: current value
            key: PRNG key
            logp0: log p(x0) if already known

        Returns:
            SliceStep with the new value (x0 itself if shrinkage ran out)
        """
        cfg = self.cfg
        n_evals = 0

        def f(x):
            nonlocal n_evals
            n_evals += 1
            return float(log_density(x))

        x0 = float(x0)
        if logp0 is None:
            logp0 = f(x0)

        k_height, k_pos, k_split, key = random.split(key, 4)

        # log of a uniform height under the density
        log_height = logp0 - float(random.exponential(k_height))

        # randomly positioned initial interval
        width = cfg.width
        left = x0 - float(random.uniform(k_pos)) * width
        right = left + width

        # stepping out, expansions split at random between the two sides
        j = int(np.floor(float(random.uniform(k_split)) * cfg.max_steps))
        k = cfg.max_steps - 1 - j
        while j > 0 and f(left) > log_height:
            left -= width
            j -= 1
        while k > 0 and f(right) > log_height:
            right += width
            k -= 1

        # shrinkage
        for _ in range(cfg.max_shrink):
            key, sub = random.split(key)
            x1 = left + float(random.uniform(sub)) * (right - left)
            logp1 = f(x1)
            if logp1 > log_height:
                return SliceStep(x=x1, logp=logp1, n_evals=n_evals, accepted=True)
            if x1 < x0:
                left = x1
            else:
                right = x1

        return SliceStep(x=x0, logp=logp0, n_evals=n_evals, accepted=False)


def slice_sample_1d(log_density, x0, key, cfg: SliceCFG = SliceCFG(), logp0=None) -> SliceStep:
    """Functional shortcut for SliceSampler(cfg).run(...)."""
    return SliceSampler(cfg).run(log_density, x0, key=key, logp0=logp0)


__all__ = ["SliceCFG", "SliceStep", "SliceSampler", "slice_sample_1d"]
