# drd_jax/inference/base.py
from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable


@runtime_checkable
class InferenceMethod(Protocol):
    """
    Protocol for optimisers and samplers.

    Design principles
    -----------------
    - A method consumes a scalar objective (negative log density / energy)
      and treats it as a black box.
    - The objective is a pure function `objective(x, *args)`; everything it
      depends on is passed explicitly through `args`.
    - Methods return a small result record (point, value, diagnostics).

    Optimisers return the minimiser; samplers return exactly one new state
    per call and take an explicit PRNG key.
    """

    def run(self, objective: Callable[..., Any], x0: Any, *args, **kwargs) -> Any:
        ...
