import logging

import numpy as np
import jax
import jax.numpy as jnp

from drd_jax.core import Dataset, Hypers, HyperBounds
from drd_jax.energy import INVALID_OBJECTIVE, NonlinearityCFG, laplace_neglogev, make_latent_params
from drd_jax.fourier import build
from drd_jax.inference import (
    HyperCFG,
    HyperOptimizer,
    HyperSampler,
    LBFGSCFG,
    LatentCFG,
    LatentFieldSolver,
    SliceCFG,
    trust_bounds,
)


def _make_problem(n=10, p=16, seed=0, nonlinearity=NonlinearityCFG(threshold=False)):
    kx, ky = jax.random.split(jax.random.PRNGKey(seed))
    x = jax.random.normal(kx, (n, p))
    y = jax.random.normal(ky, (n,))
    dat = Dataset(x, y, (p,))
    hypers = Hypers(rho=2.0, delta=3.0, b=-1.0, log_nsevar=-1.0, len=2.0)
    cov = build(hypers.rho, hypers.delta, dat.dims, hypers.delta, 1e6)
    cov_f = build(1.0, hypers.len, dat.dims, hypers.len, 1e6)
    params = make_latent_params(cov, cov_f, hypers, dat, nonlinearity)
    return dat, hypers, cov, cov_f, params


def test_trust_bounds():
    bounds = HyperBounds.default((16,))
    prev = Hypers(rho=2.0, delta=3.0, b=-1.0, log_nsevar=-1.0, len=1.1)
    lo, hi = trust_bounds(prev, ("rho", "log_nsevar", "len"), bounds, 0.8, np.log(2.0))
    np.testing.assert_allclose(lo, [1.6, -1.0 - np.log(2.0), 1.0])  # len floor from lb
    np.testing.assert_allclose(hi, [2.5, -1.0 + np.log(2.0), 1.1 / 0.8])


def test_laplace_objective_finite_at_solution():
    dat, hypers, cov, cov_f, params = _make_problem()
    state = LatentFieldSolver(LatentCFG(lbfgs=LBFGSCFG(max_iter=30))).optimize(None, params)
    bounds = HyperBounds.default(dat.dims)
    opt = HyperOptimizer(HyperCFG(), bounds)
    terms = opt.laplace_terms(hypers, state.ufreq, params, cov.support, cov_f.support)
    value = laplace_neglogev(hypers.select(opt.names), terms)
    assert jnp.isfinite(value) and value < INVALID_OBJECTIVE


def test_optimizer_stays_in_bounds_and_keeps_fixed_names():
    dat, hypers, cov, cov_f, params = _make_problem()
    state = LatentFieldSolver(LatentCFG(lbfgs=LBFGSCFG(max_iter=30))).optimize(None, params)
    bounds = HyperBounds.default(dat.dims)
    opt = HyperOptimizer(HyperCFG(lbfgs=LBFGSCFG(max_iter=20)), bounds)
    terms = opt.laplace_terms(hypers, state.ufreq, params, cov.support, cov_f.support)
    upd = opt.update(hypers, terms, key=jax.random.PRNGKey(0))
    assert bounds.contains(upd.hypers)
    assert upd.hypers.b == hypers.b
    # inside the trust region
    assert 0.8 * hypers.rho - 1e-9 <= upd.hypers.rho <= hypers.rho / 0.8 + 1e-9


def test_sampler_stays_in_bounds():
    dat, hypers, cov, cov_f, params = _make_problem()
    bounds = HyperBounds.default(dat.dims)
    cfg = HyperCFG(policy="sample", estimate=("rho", "b", "len"), slice=SliceCFG(max_steps=10))
    sampler = HyperSampler(cfg, bounds, nonlinearity=NonlinearityCFG(threshold=False))
    v = 0.1 * jnp.ones(params.n_freq)
    key = jax.random.PRNGKey(5)
    h = hypers
    for _ in range(3):
        key, sub = jax.random.split(key)
        h = sampler.update(h, v, dat, cov.support, key=sub).hypers
        assert bounds.contains(h)
        assert h.delta == hypers.delta and h.log_nsevar == hypers.log_nsevar


def _valid_near_base(values, terms):
    offset = values - terms.base.select(terms.names)
    inside = jnp.max(jnp.abs(offset)) < 1e-2
    return jnp.where(inside, jnp.sum((offset - 1e-3) ** 2), INVALID_OBJECTIVE)


def _always_invalid(values, terms):
    return INVALID_OBJECTIVE + 0.0 * jnp.sum(values)


def test_optimizer_restarts_from_previous_values(caplog):
    dat, hypers, cov, cov_f, params = _make_problem()
    bounds = HyperBounds.default(dat.dims)
    cfg = HyperCFG(lbfgs=LBFGSCFG(max_iter=20))
    opt = HyperOptimizer(cfg, bounds, objective=_valid_near_base)
    terms = opt.laplace_terms(hypers, params.bp, params, cov.support, cov_f.support)
    with caplog.at_level(logging.INFO, logger="drd_jax.inference.hypers"):
        upd = opt.update(hypers, terms, key=jax.random.PRNGKey(0))
    assert upd.restarted
    assert "restarting from previous values" in caplog.text
    assert upd.value < INVALID_OBJECTIVE
    assert bounds.contains(upd.hypers)
    lo, hi = trust_bounds(hypers, opt.names, bounds, cfg.frac, cfg.log_step)
    values = np.asarray(upd.hypers.select(opt.names))
    assert np.all(values >= lo - 1e-12) and np.all(values <= hi + 1e-12)


def test_optimizer_keeps_previous_values_without_valid_evidence(caplog):
    dat, hypers, cov, cov_f, params = _make_problem()
    bounds = HyperBounds.default(dat.dims)
    opt = HyperOptimizer(HyperCFG(lbfgs=LBFGSCFG(max_iter=5)), bounds, objective=_always_invalid)
    terms = opt.laplace_terms(hypers, params.bp, params, cov.support, cov_f.support)
    with caplog.at_level(logging.INFO, logger="drd_jax.inference.hypers"):
        upd = opt.update(hypers, terms, key=jax.random.PRNGKey(1))
    assert upd.restarted
    assert not upd.converged
    assert upd.hypers is hypers
    assert "keeping previous hyperparameters" in caplog.text
