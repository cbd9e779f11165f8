import numpy as np
import jax
import jax.numpy as jnp
import pytest

from drd_jax.core import Dataset, Hypers, HyperBounds, HyperHistory


def test_dataset_statistics():
    x = jnp.arange(12.0).reshape(3, 4)
    y = jnp.array([1.0, 0.0, -1.0])
    dat = Dataset(x, y, (2, 2))
    assert dat.n == 3 and dat.p == 4 and len(dat) == 3
    np.testing.assert_allclose(np.asarray(dat.gram), np.asarray(x @ x.T))
    np.testing.assert_allclose(np.asarray(dat.xy), np.asarray(x.T @ y))
    assert dat.keep.all()
    assert dat.with_keep([True, False, True, True]).keep_weights[1] == 0.0


def test_dataset_shape_errors():
    with pytest.raises(ValueError):
        Dataset(jnp.ones((3, 4)), jnp.ones(2), (4,))
    with pytest.raises(ValueError):
        Dataset(jnp.ones((3, 4)), jnp.ones(3), (5,))
    with pytest.raises(ValueError):
        Dataset(jnp.ones((3, 4)), jnp.ones(3), (4,), keep=[True, False])


def test_hypers_pytree_and_values():
    h = Hypers(rho=2.0, delta=3.0, b=-1.0, log_nsevar=0.5, len=4.0)
    leaves, treedef = jax.tree_util.tree_flatten(h)
    assert leaves == [2.0, 3.0, -1.0, 0.5, 4.0]
    assert jax.tree_util.tree_unflatten(treedef, leaves) == h

    h2 = h.with_values(("len", "rho"), jnp.array([7.0, 8.0]))
    assert float(h2.len) == 7.0 and float(h2.rho) == 8.0
    np.testing.assert_allclose(float(h.nsevar), np.exp(0.5))
    assert Hypers.from_array(h.to_array()) == h

    with pytest.raises(ValueError):
        h.replace(sigma=1.0)


def test_bounds_validate_and_clip():
    bounds = HyperBounds.default((64,)).validate()
    clipped = bounds.clip(Hypers(rho=1e6, delta=0.1, b=0.0, log_nsevar=0.0, len=500.0))
    assert bounds.contains(clipped)
    assert clipped.rho == 1e3 and clipped.delta == 1.0 and clipped.len == 64.0


def test_bounds_fatal_errors():
    lb = Hypers(rho=1e-3, delta=1.0, b=-30.0, log_nsevar=-np.inf, len=1.0)
    ub = Hypers(rho=1e3, delta=64.0, b=5.0, log_nsevar=5.0, len=64.0)
    with pytest.raises(ValueError):
        HyperBounds(lb, ub).validate()
    with pytest.raises(ValueError):
        HyperBounds(lb.replace(log_nsevar=0.0, rho=2e3), ub).validate()
    with pytest.raises(ValueError):
        HyperBounds(lb.replace(log_nsevar=0.0, delta=0.0), ub).validate()


def test_history_is_append_only():
    hist = HyperHistory(Hypers())
    hist.append(Hypers(rho=2.0))
    assert len(hist) == 2
    assert hist.last.rho == 2.0
    assert hist.as_array().shape == (2, 5)
    np.testing.assert_array_equal(hist.column("rho"), [1.0, 2.0])
