import numpy as np
import jax.numpy as jnp

from drd_jax.inference import LBFGS, LBFGSCFG, from_box, to_box


def _quadratic(x, target):
    return jnp.sum((x - target) ** 2)


def test_unconstrained_minimum():
    target = jnp.array([1.0, -2.0, 0.5])
    out = LBFGS(LBFGSCFG(max_iter=50, tol=1e-8)).run(_quadratic, jnp.zeros(3), target)
    np.testing.assert_allclose(np.asarray(out.x), np.asarray(target), atol=1e-5)
    assert out.converged
    assert out.energy_trace[0] >= out.value


def test_box_minimum_on_the_boundary():
    target = jnp.array([3.0, 0.5])
    lb = jnp.array([0.0, 0.0])
    ub = jnp.array([1.0, 1.0])
    out = LBFGS(LBFGSCFG(max_iter=100)).run_box(_quadratic, jnp.array([0.2, 0.2]), lb, ub, target)
    x = np.asarray(out.x)
    assert np.all(x >= 0.0) and np.all(x <= 1.0)
    assert x[0] > 0.95
    np.testing.assert_allclose(x[1], 0.5, atol=1e-3)


def test_budget_is_not_an_error():
    out = LBFGS(LBFGSCFG(max_iter=1)).run(_quadratic, jnp.zeros(2), jnp.array([4.0, 4.0]))
    assert np.isfinite(out.value)
    assert out.n_iter == 1


def test_box_transform_round_trip():
    lb = jnp.array([-1.0, 2.0])
    ub = jnp.array([1.0, 10.0])
    x = jnp.array([0.3, 7.0])
    np.testing.assert_allclose(np.asarray(to_box(from_box(x, lb, ub), lb, ub)), np.asarray(x), rtol=1e-10)
