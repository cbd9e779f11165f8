import numpy as np
import jax.numpy as jnp
import pytest

from drd_jax.fourier import (
    build,
    clamped_inverse,
    fourier_frequencies,
    fourier_support,
    log_asd_diag,
    real_dft,
    real_dft2,
    real_dft_basis,
)


def test_frequency_ordering():
    np.testing.assert_array_equal(fourier_frequencies(8), [0, 1, 2, 3, 4, -3, -2, -1])
    np.testing.assert_array_equal(fourier_frequencies(7), [0, 1, 2, 3, -3, -2, -1])


@pytest.mark.parametrize("nx", [7, 8, 16])
def test_basis_orthonormal(nx):
    B = real_dft_basis(nx)
    np.testing.assert_allclose(B @ B.T, np.eye(nx), atol=1e-12)
    np.testing.assert_allclose(B.T @ B, np.eye(nx), atol=1e-12)


def test_real_dft_inverts():
    x = jnp.linspace(-1.0, 2.0, 10)
    xhat, freqs = real_dft(x)
    B = real_dft_basis(10)
    np.testing.assert_allclose(B.T @ np.asarray(xhat), np.asarray(x), atol=1e-12)
    assert freqs.shape == (10,)


def test_real_dft2_matrix_matches_kron():
    x = jnp.arange(12.0).reshape(3, 4)
    xhat, colfreqs, rowfreqs = real_dft2(x)
    expected = real_dft_basis(3) @ np.asarray(x) @ real_dft_basis(4).T
    np.testing.assert_allclose(np.asarray(xhat), expected, atol=1e-12)
    assert colfreqs.shape == (3,) and rowfreqs.shape == (4,)


def test_real_dft2_wrong_argument_count():
    with pytest.raises(TypeError):
        real_dft2(jnp.ones((3, 4)), 5)


def test_real_dft2_vector_warns():
    with pytest.warns(UserWarning):
        xhat, f1, f2 = real_dft2(jnp.ones((1, 6)))
    assert xhat.shape == (1, 6)
    np.testing.assert_array_equal(f1, [0])


def test_untruncated_support_is_full_basis():
    # max 0.5 * pi^2 = 4.93 < log(1e3)
    sup = fourier_support((16,), min_scale=1.0, cond=1e3)
    assert sup.n_freq == 16
    np.testing.assert_array_equal(np.asarray(sup.basis.factors[0]), real_dft_basis(16))
    np.testing.assert_allclose(np.asarray(sup.basis.dense()), real_dft_basis(16), rtol=0, atol=1e-15)

    rho, scale = 1.5, 2.0
    omega = 2.0 * np.pi * fourier_frequencies(16) / 16
    expected = np.log(rho) + 0.5 * np.log(2.0 * np.pi) + np.log(scale) - 0.5 * omega ** 2 * scale ** 2
    np.testing.assert_allclose(np.asarray(log_asd_diag(rho, scale, sup)), expected, rtol=1e-12)
    cov = build(rho, scale, (16,), 1.0, 1e3)
    np.testing.assert_allclose(np.asarray(cov.log_kdiag), expected, rtol=1e-12)


def test_truncation_monotone_in_cond():
    counts = [fourier_support((32,), 4.0, c).n_freq for c in (1.5, 10.0, 1e3, 1e6, 1e12)]
    assert all(a <= b for a, b in zip(counts, counts[1:]))
    assert counts[0] < counts[-1]


def test_truncation_retains_nothing():
    with pytest.raises(ValueError):
        fourier_support((16,), 2.0, 0.5)
    with pytest.raises(ValueError):
        build(1.0, 2.0, (16,), 2.0, 0.5)


def test_nonpositive_min_scale():
    with pytest.raises(ValueError):
        fourier_support((16,), 0.0, 1e6)


def test_build_is_idempotent_and_dc_first():
    a = build(2.0, 3.0, (20,), 3.0, 1e6)
    b = build(2.0, 3.0, (20,), 3.0, 1e6)
    np.testing.assert_array_equal(np.asarray(a.log_kdiag), np.asarray(b.log_kdiag))
    assert a.n_freq == b.n_freq
    f = jnp.linspace(-1.0, 1.0, a.n_freq)
    np.testing.assert_array_equal(np.asarray(a.basis.to_real(f)), np.asarray(b.basis.to_real(f)))
    assert a.dc_mask.sum() == 1 and a.dc_mask[0]
    # DC density: rho * sqrt(2 pi) * scale
    np.testing.assert_allclose(float(a.kdiag[0]), 2.0 * np.sqrt(2 * np.pi) * 3.0)
    # density decreases away from DC on the positive half
    k = np.asarray(a.kdiag)
    assert k[1] < k[0]


def test_kron_basis_matches_dense_kron():
    cov = build(1.0, 2.0, (4, 5), 1.0, 1e3)
    f1, f2 = cov.basis.factors
    G = np.asarray(cov.basis.dense())
    np.testing.assert_allclose(G, np.kron(np.asarray(f1), np.asarray(f2)), atol=1e-12)

    f = jnp.linspace(0.0, 1.0, cov.n_freq)
    np.testing.assert_allclose(np.asarray(cov.basis.to_real(f)), G.T @ np.asarray(f), atol=1e-12)
    assert cov.dc_mask.sum() == 1


def test_clamped_inverse():
    inv = clamped_inverse(jnp.array([1.0, 0.5, 0.0]))
    np.testing.assert_allclose(np.asarray(inv), [1.0, 2.0, 2.0])
