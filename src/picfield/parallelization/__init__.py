"""Guard-cell sizing and inter-level density restriction."""

from picfield.parallelization.guard_cells import (
    GhostWidthSpec,
    field_solver_stencil_width,
    init_guard_cells,
)
from picfield.parallelization.restriction import InterpolateDensityFineToCoarse

__all__ = [
    "GhostWidthSpec",
    "InterpolateDensityFineToCoarse",
    "field_solver_stencil_width",
    "init_guard_cells",
]
