import numpy as np
import jax
import jax.numpy as jnp
from jax.scipy.stats import multivariate_normal

from drd_jax.core import Dataset, Hypers
from drd_jax.energy import (
    NonlinearityCFG,
    cdiag_from_u,
    data_hessian,
    design_nll,
    dual_data_nll,
    latent_ureal,
    make_latent_params,
    penalized_nll,
)
from drd_jax.energy.nonlinearity import safe_sqrt
from drd_jax.fourier import build
from drd_jax.inference import LatentCFG, LatentFieldSolver, LBFGSCFG


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


def test_design_nll_matches_gaussian_density():
    z = jax.random.normal(jax.random.PRNGKey(3), (6, 4))
    y = jnp.linspace(-1.0, 1.0, 6)
    S = z @ z.T + 0.3 * jnp.eye(6)
    expected = -multivariate_normal.logpdf(y, jnp.zeros(6), S)
    np.testing.assert_allclose(float(design_nll(z, y, 0.3)), float(expected), rtol=1e-10)


def test_offset_sits_on_dc_only():
    dat, hypers, cov, cov_f, params = _make_problem()
    bp = np.asarray(params.bp)
    assert bp[0] == hypers.b * np.sqrt(dat.p)
    assert np.all(bp[1:] == 0.0)
    # v = 0 gives the constant field b
    np.testing.assert_allclose(np.asarray(latent_ureal(jnp.zeros(params.n_freq), params)), hypers.b)


def test_objective_finite_with_finite_gradient():
    dat, hypers, cov, cov_f, params = _make_problem()
    v = 1e-4 * jnp.ones(params.n_freq)
    value, grad = jax.value_and_grad(penalized_nll)(v, params)
    assert jnp.isfinite(value)
    assert jnp.all(jnp.isfinite(grad))
    np.testing.assert_allclose(float(value), 0.5 * float(v @ v) + float(dual_data_nll(v, params)))


def test_gradient_finite_with_zero_variances():
    # relu puts exact zeros into c
    dat, hypers, cov, cov_f, params = _make_problem(nonlinearity=NonlinearityCFG(name="relu", threshold=False))
    grad = jax.grad(dual_data_nll)(jnp.zeros(params.n_freq), params)
    assert jnp.all(jnp.isfinite(grad))


def test_threshold_and_keep_mask():
    u = jnp.array([-30.0, 0.0, 2.0, 3.0])
    keep = jnp.array([1.0, 1.0, 0.0, 1.0])
    c = cdiag_from_u(u, keep, NonlinearityCFG(sv_min=1e-6, threshold=True))
    assert c[0] == 0.0 and c[2] == 0.0
    np.testing.assert_allclose(float(c[3]), np.log1p(np.exp(3.0)))
    assert float(jax.grad(lambda s: safe_sqrt(s))(0.0)) == 0.0


def test_data_hessian_is_symmetric():
    dat, hypers, cov, cov_f, params = _make_problem()
    ufreq = 0.1 * jnp.ones(params.n_freq) + params.bp
    H = np.asarray(data_hessian(ufreq, params))
    assert H.shape == (params.n_freq, params.n_freq)
    np.testing.assert_allclose(H, H.T, atol=1e-8)


def test_optimize_decreases_objective():
    dat, hypers, cov, cov_f, params = _make_problem()
    solver = LatentFieldSolver(LatentCFG(mode="optimize", lbfgs=LBFGSCFG(max_iter=50)))
    state = solver.optimize(None, params)
    v0 = 1e-4 * jnp.ones(params.n_freq)
    assert state.value <= float(penalized_nll(v0, params))
    assert state.v.shape == (params.n_freq,)
    assert state.ureal.shape == (dat.p,)


def test_optimize_resizes_warm_start():
    dat, hypers, cov, cov_f, params = _make_problem()
    solver = LatentFieldSolver(LatentCFG(lbfgs=LBFGSCFG(max_iter=5)))
    state = solver.optimize(jnp.ones(params.n_freq + 3), params)
    assert state.v.shape == (params.n_freq,)


def test_sample_returns_one_state():
    dat, hypers, cov, cov_f, params = _make_problem()
    solver = LatentFieldSolver(LatentCFG(mode="sample"))
    state = solver.sample(None, params, jax.random.PRNGKey(1))
    assert state.v.shape == (params.n_freq,)
    assert np.isfinite(state.value)
    assert state.ureal.shape == (dat.p,)
