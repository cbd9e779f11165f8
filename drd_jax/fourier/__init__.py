# drd_jax/fourier/__init__.py
"""
Fourier-domain building blocks: real DFT, factored ASD covariance and
resizing of frequency-domain state.
"""
from .dft import fourier_frequencies, real_dft_basis, real_dft, real_dft2
from .covariance import (
    FourierCFG,
    KronBasis,
    FourierSupport,
    FourierCovariance,
    fourier_support,
    log_asd_diag,
    build,
    cov_on_support,
    clamped_inverse,
)
from .resize import resize_freq_vector

__all__ = [
    "fourier_frequencies",
    "real_dft_basis",
    "real_dft",
    "real_dft2",
    "FourierCFG",
    "KronBasis",
    "FourierSupport",
    "FourierCovariance",
    "fourier_support",
    "log_asd_diag",
    "build",
    "cov_on_support",
    "clamped_inverse",
    "resize_freq_vector",
]
