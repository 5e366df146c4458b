"""Fine-to-coarse restriction of deposited charge/current density.

After deposition on a refined level, the coarse level underneath must see
the same density. Each coarse cell ``(i, j, k)`` receives the weighted
average of the fine cells around ``(2i, 2j, 2k)``, with per-axis weights
``(1/4, 1/2, 1/4)`` combined as a tensor product:

    3-D:  coincident 1/8, face 1/16, edge 1/32, corner 1/64
    2-D:  coincident 1/4, face 1/8, corner 1/16

Fine cells outside the fine array's ghost-inclusive box contribute zero.
Near the edge of a fine patch that lowers the average; callers that need
the full average must exchange at least one fine guard cell first.
Only a refinement ratio of 2 is supported.
"""

from __future__ import annotations

import logging

import numpy as np
from numba import njit

from picfield.core.errors import ConfigurationError, PreconditionError
from picfield.core.field_mesh import FieldMesh

logger = logging.getLogger(__name__)

SUPPORTED_REFINEMENT_RATIO = 2

# Per-axis restriction weights for offsets -1, 0, +1
_WEIGHTS = np.array([0.25, 0.5, 0.25])


@njit(cache=True)
def _fine_or_zero(fine, fi, fj, fk, m):
    if 0 <= fi < fine.shape[0] and 0 <= fj < fine.shape[1] and 0 <= fk < fine.shape[2]:
        return fine[fi, fj, fk, m]
    return 0.0


@njit(cache=True)
def _restrict_box_kernel(
    fine: np.ndarray,
    fine_offset: np.ndarray,
    coarse: np.ndarray,
    coarse_offset: np.ndarray,
    box_lo: np.ndarray,
    box_hi: np.ndarray,
    active: np.ndarray,
    weights: np.ndarray,
    ncomp: int,
) -> None:
    """Overwrite coarse cells ``box_lo..box_hi`` (global, inclusive).

    ``active[d]`` is 1 for refined axes (fine index 2*i, three-point
    average) and 0 for the inactive planar axis (fine index = coarse
    index, single point with weight 1).
    """
    rx = 2 if active[0] else 1
    ry = 2 if active[1] else 1
    rz = 2 if active[2] else 1
    sx = 1 if active[0] else 0
    sy = 1 if active[1] else 0
    sz = 1 if active[2] else 0
    for i in range(box_lo[0], box_hi[0] + 1):
        for j in range(box_lo[1], box_hi[1] + 1):
            for k in range(box_lo[2], box_hi[2] + 1):
                ii = rx * i - fine_offset[0]
                jj = ry * j - fine_offset[1]
                kk = rz * k - fine_offset[2]
                ci = i - coarse_offset[0]
                cj = j - coarse_offset[1]
                ck = k - coarse_offset[2]
                for m in range(ncomp):
                    acc = 0.0
                    for di in range(-sx, sx + 1):
                        wx = weights[di + 1] if sx else 1.0
                        for dj in range(-sy, sy + 1):
                            wy = weights[dj + 1] if sy else 1.0
                            for dk in range(-sz, sz + 1):
                                wz = weights[dk + 1] if sz else 1.0
                                acc += wx * wy * wz * _fine_or_zero(
                                    fine, ii + di, jj + dj, kk + dk, m
                                )
                    coarse[ci, cj, ck, m] = acc


class InterpolateDensityFineToCoarse:
    """Restriction operator for one (fine, coarse) block pair.

    Args:
        fine: Fine-level density block (read only).
        coarse: Coarse-level density block (overwritten).
        refinement_ratio: Index ratio between the levels; must be 2.
        number_of_components: Components restricted per cell.
        planar: Treat axis 1 as inactive (xz / rz). Passed by the caller;
            a one-cell-thick y extent does not imply a planar run.

    Raises:
        ConfigurationError: ``refinement_ratio`` is not 2.
    """

    def __init__(
        self,
        fine: FieldMesh,
        coarse: FieldMesh,
        refinement_ratio: int,
        number_of_components: int,
        planar: bool = False,
    ) -> None:
        if refinement_ratio != SUPPORTED_REFINEMENT_RATIO:
            raise ConfigurationError(
                f"density restriction supports refinement_ratio="
                f"{SUPPORTED_REFINEMENT_RATIO} only, got {refinement_ratio}"
            )
        if number_of_components > min(fine.ncomp, coarse.ncomp):
            raise PreconditionError(
                f"{number_of_components} components requested; fine has "
                f"{fine.ncomp}, coarse has {coarse.ncomp}"
            )
        self.fine = fine
        self.coarse = coarse
        self.refinement_ratio = refinement_ratio
        self.number_of_components = number_of_components
        self.planar = planar
        self._active = np.array([1, 0 if planar else 1, 1], dtype=np.int64)
        self._fine_offset = np.array(fine.offset, dtype=np.int64)
        self._coarse_offset = np.array(coarse.offset, dtype=np.int64)
        self._cell = np.zeros(3, dtype=np.int64)

    def _run(self, lo: np.ndarray, hi: np.ndarray) -> None:
        _restrict_box_kernel(
            self.fine.data,
            self._fine_offset,
            self.coarse.data,
            self._coarse_offset,
            lo,
            hi,
            self._active,
            _WEIGHTS,
            self.number_of_components,
        )

    def __call__(self, i: int, j: int, k: int) -> None:
        """Overwrite every component of coarse cell ``(i, j, k)``."""
        if __debug__ and not self.coarse.contains(i, j, k):
            raise IndexError(f"coarse index ({i}, {j}, {k}) outside the coarse block")
        self._cell[0] = i
        self._cell[1] = j
        self._cell[2] = k
        self._run(self._cell, self._cell)

    def covered_box(self) -> tuple[tuple[int, int, int], tuple[int, int, int]] | None:
        """Coarse valid cells whose centre fine cell lies in the fine valid box.

        Returns:
            ``(lo, hi)`` inclusive, or None when nothing overlaps.
        """
        lo = []
        hi = []
        for axis in range(3):
            if self._active[axis]:
                r = self.refinement_ratio
                c_lo = -((-self.fine.lo[axis]) // r)
                c_hi = self.fine.hi[axis] // r
            else:
                c_lo = self.fine.lo[axis]
                c_hi = self.fine.hi[axis]
            lo.append(max(c_lo, self.coarse.lo[axis]))
            hi.append(min(c_hi, self.coarse.hi[axis]))
        if any(a > b for a, b in zip(lo, hi)):
            return None
        return tuple(lo), tuple(hi)

    def restrict_box(self) -> int:
        """Restrict over every coarse cell covered by the fine block.

        Returns:
            Number of coarse cells written.
        """
        box = self.covered_box()
        if box is None:
            logger.debug("fine block %s..%s does not cover any coarse cell",
                         self.fine.lo, self.fine.hi)
            return 0
        lo, hi = box
        self._run(np.array(lo, dtype=np.int64), np.array(hi, dtype=np.int64))
        n_cells = int(np.prod([b - a + 1 for a, b in zip(lo, hi)]))
        logger.debug("restricted %d coarse cells over %s..%s", n_cells, lo, hi)
        return n_cells
