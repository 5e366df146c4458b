"""Finite-difference (FDTD) field solver.

Exports the stencil algorithms of :mod:`picfield.fdtd.algorithms` and the
Maxwell update of :mod:`picfield.fdtd.solver`.
"""

from picfield.fdtd.algorithms import (
    CKCAlgorithm,
    FiniteDifferenceAlgorithm,
    NodalAlgorithm,
    YeeAlgorithm,
    make_stencil_algorithm,
)
from picfield.fdtd.solver import FiniteDifferenceSolver

__all__ = [
    "CKCAlgorithm",
    "FiniteDifferenceAlgorithm",
    "FiniteDifferenceSolver",
    "NodalAlgorithm",
    "YeeAlgorithm",
    "make_stencil_algorithm",
]
