def test_imports():
    import drd_jax

    from drd_jax import DRD, DRDCFG, Dataset, Hypers, HyperBounds
    from drd_jax.fourier import build, real_dft2, resize_freq_vector
    from drd_jax.energy import neglogev_ridge_dual, dual_data_nll, laplace_neglogev
    from drd_jax.inference import LBFGS, SliceSampler, EllipticalSlice, LatentFieldSolver
    from drd_jax.models import DualWeightEstimator
    from drd_jax.data import make_synthetic

    # nonlinearities
    from drd_jax.energy.nonlinearity import get as get_nonlinearity
    get_nonlinearity("rec")
    get_nonlinearity("exp")


def test_unknown_nonlinearity():
    import pytest
    from drd_jax.energy.nonlinearity import get

    with pytest.raises(KeyError):
        get("tanh")


def test_x64_enabled():
    import jax.numpy as jnp
    import drd_jax  # noqa: F401

    assert jnp.zeros(1).dtype == jnp.float64
