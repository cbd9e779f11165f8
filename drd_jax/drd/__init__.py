# drd_jax/drd/__init__.py
"""
sDRD inference driver.

    out = DRD(DRDCFG.optimize()).run(dat, bounds, key=key)
"""
from .runner import DRD, DRDCFG, DRDRun, IterationInfo

__all__ = ["DRD", "DRDCFG", "DRDRun", "IterationInfo"]
