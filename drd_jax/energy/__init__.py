# drd_jax/energy/__init__.py
"""
Objectives of the sDRD model.

  - ridge:        dual-form ridge evidence with gradient and Hessian
  - latent:       dual-form likelihood of the latent relevance field
  - hyper:        hyperparameter objectives with the latent field fixed
  - prior:        truncated hyperprior densities
  - nonlinearity: latent field -> prior variance maps
"""
from .ridge import RidgeParams, RidgeEvidence, dual_neglogev, neglogev_ridge_dual, unvec_sym_from_triu
from .nonlinearity import NonlinearityCFG, cdiag_from_u, safe_sqrt
from .latent import (
    LatentParams,
    make_latent_params,
    smoothed_design,
    design_nll,
    latent_ureal,
    dual_data_nll,
    penalized_nll,
    data_hessian,
)
from .hyper import INVALID_OBJECTIVE, LaplaceTerms, laplace_neglogev, whitened_neglogli
from .prior import gamma_prior, gaussian_prior, HyperPrior

__all__ = [
    "RidgeParams",
    "RidgeEvidence",
    "dual_neglogev",
    "neglogev_ridge_dual",
    "unvec_sym_from_triu",
    "NonlinearityCFG",
    "cdiag_from_u",
    "safe_sqrt",
    "LatentParams",
    "make_latent_params",
    "smoothed_design",
    "design_nll",
    "latent_ureal",
    "dual_data_nll",
    "penalized_nll",
    "data_hessian",
    "INVALID_OBJECTIVE",
    "LaplaceTerms",
    "laplace_neglogev",
    "whitened_neglogli",
    "gamma_prior",
    "gaussian_prior",
    "HyperPrior",
]
