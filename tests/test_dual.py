import numpy as np
import jax
import jax.numpy as jnp

from drd_jax.core import Dataset, Hypers
from drd_jax.energy import NonlinearityCFG, make_latent_params
from drd_jax.fourier import build
from drd_jax.models import DualWeightEstimator


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


def test_matches_primal_posterior_mean():
    dat, hypers, cov, cov_f, params = _make_problem()
    ureal = jnp.linspace(-2.0, 2.0, dat.p)
    est = DualWeightEstimator(NonlinearityCFG(threshold=False)).estimate(
        ureal, hypers, dat, params.cf_half, cov_f.basis
    )

    c_half = np.sqrt(np.asarray(est.cdiag))
    Gf = np.asarray(cov_f.basis.dense())
    Kf = Gf.T @ np.diag(np.asarray(cov_f.kdiag)) @ Gf
    prior = c_half[:, None] * Kf * c_half[None, :]
    X, y = np.asarray(dat.x), np.asarray(dat.y)
    S = X @ prior @ X.T + float(hypers.nsevar) * np.eye(dat.n)
    expected = prior @ X.T @ np.linalg.solve(S, y)
    np.testing.assert_allclose(np.asarray(est.w_hat), expected, rtol=1e-8, atol=1e-10)


def test_deterministic_and_zero_outside_keep():
    dat, hypers, cov, cov_f, params = _make_problem()
    keep = np.ones(dat.p, dtype=bool)
    keep[3:7] = False
    dat = dat.with_keep(keep)
    ureal = jnp.linspace(-1.0, 1.0, dat.p)
    estimator = DualWeightEstimator()
    a = estimator.estimate(ureal, hypers, dat, params.cf_half, cov_f.basis)
    b = estimator.estimate(ureal, hypers, dat, params.cf_half, cov_f.basis)
    assert a.w_hat.shape == (dat.p,)
    np.testing.assert_array_equal(np.asarray(a.w_hat), np.asarray(b.w_hat))
    assert np.all(np.asarray(a.w_hat)[3:7] == 0.0)
    assert np.all(np.asarray(a.cdiag)[3:7] == 0.0)
    assert np.any(np.asarray(a.w_hat) != 0.0)
