"""Guard-cell bookkeeping for the field arrays of the PIC loop.

Computes, once at setup, how many guard cells each field category must
allocate and how many must be exchanged before each part of a step:

Allocation categories:
    alloc_EB   E and B
    alloc_J    current density
    alloc_Rho  charge density
    alloc_F    divergence-cleaning scalar

Exchange use-cases:
    field_solver    before the Maxwell update (E, B)
    field_solver_F  before the Maxwell update (F)
    field_gather    before gathering fields to particles
    update_aux      before filling the auxiliary (gather) grid
    moving_window   before shifting the domain
    extra           staggered-solver / nodal-aux interpolation cell

Every width is a 3-tuple (x, y, z). Planar geometries (xz, rz) carry a
zero y entry. The computation is pure: the same configuration always
yields the same ``GhostWidthSpec``.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

import numpy as np

from picfield.config import FieldSolverConfig

logger = logging.getLogger(__name__)

# Guard cells needed by the field gather, indexed by particle shape order
_FIELD_GATHER_CELLS = (0, 1, 1, 2)

IntVect = tuple[int, int, int]


def _round_up_even(n: int) -> int:
    return n + 1 if n % 2 else n


def _as_intvect(v: np.ndarray) -> IntVect:
    return tuple(int(max(x, 0)) for x in v)


@dataclass(frozen=True)
class GhostWidthSpec:
    """Guard-cell widths for every field category and use-case.

    Attributes:
        alloc_EB: Allocated guard cells for E and B.
        alloc_J: Allocated guard cells for J.
        alloc_Rho: Allocated guard cells for rho.
        alloc_F: Allocated guard cells for F.
        field_solver: Exchanged for E, B before the field solve.
        field_solver_F: Exchanged for F before the field solve.
        field_gather: Exchanged for E, B before the field gather.
        update_aux: Exchanged for E, B before updating the aux grid.
        moving_window: Exchanged for all fields before a window shift.
        extra: One cell where a nodal aux grid sits on a staggered solver.
    """

    alloc_EB: IntVect = (0, 0, 0)
    alloc_J: IntVect = (0, 0, 0)
    alloc_Rho: IntVect = (0, 0, 0)
    alloc_F: IntVect = (0, 0, 0)
    field_solver: IntVect = (0, 0, 0)
    field_solver_F: IntVect = (0, 0, 0)
    field_gather: IntVect = (0, 0, 0)
    update_aux: IntVect = (0, 0, 0)
    moving_window: IntVect = (0, 0, 0)
    extra: IntVect = (0, 0, 0)

    def __getitem__(self, name: str) -> IntVect:
        if name not in self.__dataclass_fields__:
            raise KeyError(name)
        return getattr(self, name)

    def as_dict(self) -> dict[str, IntVect]:
        """Return all widths keyed by category / use-case name."""
        return asdict(self)

    @classmethod
    def from_config(cls, config: FieldSolverConfig) -> GhostWidthSpec:
        """Compute guard-cell widths from a validated configuration."""
        return init_guard_cells(config)


def field_solver_stencil_width(config: FieldSolverConfig) -> np.ndarray:
    """Guard cells covered by the Maxwell solver's stencil along (x, y, z).

    For PSATD the width is the spectral order on a nodal grid and half of
    it on a staggered grid; in rz only z needs guard cells. For finite
    differences it is half the stencil order (CKC: one cell).
    """
    if config.maxwell_solver == "psatd":
        order = np.array(config.psatd.order, dtype=int)
        width = order if config.do_nodal else order // 2
        if config.geometry == "rz":
            width[0] = 0
        return width
    if config.maxwell_solver == "ckc":
        return np.ones(3, dtype=int)
    return np.full(3, (config.stencil_order + 1) // 2, dtype=int)


def init_guard_cells(config: FieldSolverConfig) -> GhostWidthSpec:
    """Initialize the number of guard cells depending on the options used.

    Args:
        config: Validated field-solver configuration.

    Returns:
        Immutable ``GhostWidthSpec``.
    """
    nox = config.particle_shape
    max_level = config.amr.max_level
    psatd = config.maxwell_solver == "psatd"
    z_axis = 2

    # With subcycling the fine-level particles push twice before they are
    # redistributed, so they may travel one extra cell
    nox_eff = nox + 1 if (max_level > 0 and config.amr.do_subcycling) else nox

    ng_EB = np.full(3, _round_up_even(nox_eff), dtype=int)
    if config.nci.enabled:
        ng_EB[z_axis] = _round_up_even(nox_eff + config.nci.stencil_width)
    ng_J = np.full(3, nox_eff, dtype=int)

    galilean = np.array([v != 0.0 for v in config.v_galilean], dtype=int)
    ng_EB += galilean
    ng_J += galilean
    ng_Rho = ng_J + 1

    ngF = 2 if config.moving_window.enabled else 0
    if config.maxwell_solver == "ckc":
        ngF = max(ngF, 1)
    ng_F = np.full(3, ngF, dtype=int)

    ng_extra = np.full(3, int(config.aux_is_nodal and not config.do_nodal), dtype=int)
    ng_solver = field_solver_stencil_width(config) + ng_extra

    ng_EB = np.maximum(ng_EB, ng_solver)
    if psatd:
        # All spectral arrays share one guard region so the transforms see
        # identically padded boxes
        ng_all = np.maximum.reduce([ng_EB, ng_J, ng_Rho, ng_F])
        ng_EB = ng_J = ng_Rho = ng_F = ng_all

    ng_moving_window = np.zeros(3, dtype=int)

    if config.safe_guard_cells:
        ng_field_solver = ng_EB.copy()
        ng_field_solver_F = ng_F.copy()
        ng_field_gather = ng_EB.copy()
        ng_update_aux = ng_EB.copy()
        if config.moving_window.enabled:
            ng_moving_window = ng_EB.copy()
    else:
        ng_field_solver = np.minimum(ng_solver, ng_EB)

        ng_gather_no_nci = np.full(3, _FIELD_GATHER_CELLS[nox], dtype=int) + ng_extra
        if max_level >= 1:
            # Interpolation between levels reaches one more cell on the fine grid
            ng_gather_no_nci += ng_extra
        ng_gather_no_nci = np.minimum(ng_gather_no_nci, ng_EB)

        ng_nci = np.zeros(3, dtype=int)
        if config.nci.enabled:
            ng_nci[z_axis] = config.nci.stencil_width

        ng_field_gather = np.minimum(ng_gather_no_nci + ng_nci, ng_EB)
        ng_update_aux = np.minimum(2 * ng_gather_no_nci + ng_nci, ng_EB)
        ng_field_solver_F = np.minimum(ng_field_solver, ng_F)
        # Only the gather exchange runs between consecutive field solves
        ng_field_gather = np.maximum(ng_field_gather, ng_field_solver)

        if config.moving_window.enabled:
            ng_moving_window[config.moving_window.direction] = 1

    widths = {
        "alloc_EB": ng_EB,
        "alloc_J": ng_J,
        "alloc_Rho": ng_Rho,
        "alloc_F": ng_F,
        "field_solver": ng_field_solver,
        "field_solver_F": ng_field_solver_F,
        "field_gather": ng_field_gather,
        "update_aux": ng_update_aux,
        "moving_window": ng_moving_window,
        "extra": ng_extra,
    }
    if config.is_planar:
        for v in widths.values():
            v[1] = 0

    spec = GhostWidthSpec(**{name: _as_intvect(v) for name, v in widths.items()})
    logger.info(
        "Guard cells (%s, %s): alloc E/B=%s J=%s rho=%s F=%s, solver=%s gather=%s",
        config.maxwell_solver,
        "safe" if config.safe_guard_cells else "minimal",
        spec.alloc_EB,
        spec.alloc_J,
        spec.alloc_Rho,
        spec.alloc_F,
        spec.field_solver,
        spec.field_gather,
    )
    return spec
