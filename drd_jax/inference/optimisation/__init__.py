# drd_jax/inference/optimisation/__init__.py
"""
Optimisers.

L-BFGS (optax) for the latent field and, through a box
reparameterisation, for the hyperparameters.
"""
from .lbfgs import LBFGS, LBFGSCFG, LBFGSRun, to_box, from_box

__all__ = ["LBFGS", "LBFGSCFG", "LBFGSRun", "to_box", "from_box"]
