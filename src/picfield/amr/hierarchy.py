"""Block-structured refinement hierarchy holding field blocks per level.

Level 0 covers the whole domain with one block. Each finer level refines
its parent by a factor of 2 along every active axis (the y axis of planar
xz / rz runs is never refined) and holds any number of rectangular
patches in its own index space. Every patch carries named ``FieldMesh``
blocks allocated with the guard widths chosen at setup.

After deposition, ``sync_density`` walks from the finest level down and
restricts each fine patch onto the coarse patches beneath it, so every
level sees the density of the finest data available.

Reference:
    Berger & Colella, "Local adaptive mesh refinement for shock
    hydrodynamics", JCP 82, 64-84 (1989).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np

from picfield.config import AMRConfig, FieldSolverConfig
from picfield.core.errors import ConfigurationError
from picfield.core.field_mesh import CELL, FieldMesh
from picfield.parallelization.restriction import (
    SUPPORTED_REFINEMENT_RATIO,
    InterpolateDensityFineToCoarse,
)

logger = logging.getLogger(__name__)

IntVect = tuple[int, int, int]


# ============================================================
# Patch
# ============================================================


@dataclass
class AMRPatch:
    """A rectangular block at a single refinement level.

    Attributes:
        level: Refinement level (0 = coarsest).
        lo: First valid cell in the level's index space.
        shape: Valid cells along (x, y, z).
        cell_size: Grid spacing at this level [m].
        data: Field blocks by name.
    """

    level: int
    lo: IntVect
    shape: IntVect
    cell_size: tuple[float, float, float]
    data: dict[str, FieldMesh] = field(default_factory=dict)

    @property
    def hi(self) -> IntVect:
        return tuple(lo + n - 1 for lo, n in zip(self.lo, self.shape))

    @property
    def n_cells(self) -> int:
        return int(np.prod(self.shape))

    def allocate(
        self,
        name: str,
        ngrow: IntVect,
        ncomp: int = 1,
        centering: IntVect = (CELL, CELL, CELL),
    ) -> FieldMesh:
        """Allocate (or replace) the field ``name`` on this patch."""
        mesh = FieldMesh(self.lo, self.shape, ngrow, centering, ncomp)
        self.data[name] = mesh
        return mesh


# ============================================================
# Hierarchy
# ============================================================


class GridHierarchy:
    """Refinement levels of field blocks.

    Args:
        base_shape: Cells of the level-0 domain along (x, y, z).
        cell_size: Level-0 spacing (dx, dy, dz) [m].
        config: Mesh refinement parameters.
        planar: Do not refine axis 1 (xz / rz runs).

    Raises:
        ConfigurationError: Refinement requested with a ratio other than 2.
    """

    def __init__(
        self,
        base_shape: IntVect,
        cell_size: tuple[float, float, float],
        config: AMRConfig,
        planar: bool = False,
    ) -> None:
        if config.max_level > 0 and config.refinement_ratio != SUPPORTED_REFINEMENT_RATIO:
            raise ConfigurationError(
                f"mesh refinement requires refinement_ratio={SUPPORTED_REFINEMENT_RATIO}, "
                f"got {config.refinement_ratio}"
            )
        self.base_shape = tuple(int(n) for n in base_shape)
        self.base_cell_size = tuple(float(d) for d in cell_size)
        self.config = config
        self.planar = planar
        ratio = config.refinement_ratio
        self._axis_ratio = (ratio, 1 if planar else ratio, ratio)

        self.patches: list[list[AMRPatch]] = [
            [AMRPatch(0, (0, 0, 0), self.base_shape, self.base_cell_size)]
        ]
        for _ in range(config.max_level):
            self.patches.append([])

        logger.info(
            "GridHierarchy initialized: base %s, dx=%s, max_level=%d, ratio=%d",
            self.base_shape,
            self.base_cell_size,
            config.max_level,
            ratio,
        )

    @classmethod
    def from_config(cls, config: FieldSolverConfig) -> GridHierarchy:
        return cls(
            tuple(config.grid_shape),
            tuple(config.cell_size),
            config.amr,
            planar=config.is_planar,
        )

    # ----------------------------------------------------------
    # Geometry
    # ----------------------------------------------------------

    @property
    def finest_level(self) -> int:
        """Highest level that currently holds at least one patch."""
        return max(lev for lev, lp in enumerate(self.patches) if lp)

    def level_shape(self, level: int) -> IntVect:
        """Cells of the full domain in the index space of ``level``."""
        return tuple(n * r**level for n, r in zip(self.base_shape, self._axis_ratio))

    def level_cell_size(self, level: int) -> tuple[float, float, float]:
        return tuple(d / r**level for d, r in zip(self.base_cell_size, self._axis_ratio))

    def add_patch(self, level: int, lo: IntVect, shape: IntVect) -> AMRPatch:
        """Add a refined patch; ``lo`` and ``shape`` are in level indices.

        Fields already allocated on the parent level are allocated on the
        new patch with the same guard widths, components and centering.

        Raises:
            IndexError: ``level`` outside 1..max_level, or the patch
                leaves the level's domain.
        """
        if not 1 <= level <= self.config.max_level:
            raise IndexError(f"level {level} out of range [1, {self.config.max_level}]")
        domain = self.level_shape(level)
        lo = tuple(int(v) for v in lo)
        shape = tuple(int(v) for v in shape)
        if any(l0 < 0 or l0 + n > d for l0, n, d in zip(lo, shape, domain)):
            raise IndexError(f"patch {lo} + {shape} outside level-{level} domain {domain}")

        patch = AMRPatch(level, lo, shape, self.level_cell_size(level))
        for parent in self.patches[level - 1][:1]:
            for name, mesh in parent.data.items():
                patch.allocate(name, mesh.ngrow, mesh.ncomp, mesh.centering)
        self.patches[level].append(patch)
        logger.debug("Added level-%d patch lo=%s shape=%s", level, lo, shape)
        return patch

    def allocate(
        self,
        name: str,
        ngrow: IntVect,
        ncomp: int = 1,
        centering: IntVect = (CELL, CELL, CELL),
    ) -> None:
        """Allocate ``name`` on every patch of every level."""
        if self.planar:
            ngrow = (ngrow[0], 0, ngrow[2])
        for lev_patches in self.patches:
            for p in lev_patches:
                p.allocate(name, ngrow, ncomp, centering)

    # ----------------------------------------------------------
    # Restriction (fine -> coarse)
    # ----------------------------------------------------------

    def sync_density(self, name: str, ncomp: int | None = None) -> int:
        """Restrict ``name`` from the finest level down to level 0.

        Fine data should have had its guard cells filled; fine cells
        outside a patch's guard region count as zero.

        Args:
            name: Density field (rho or a current component set).
            ncomp: Components to restrict (default: all).

        Returns:
            Number of coarse cells overwritten, summed over all levels.
        """
        ratio = self.config.refinement_ratio
        n_written = 0
        for lev in range(len(self.patches) - 1, 0, -1):
            for fine_patch in self.patches[lev]:
                fine = fine_patch.data.get(name)
                if fine is None:
                    continue
                for coarse_patch in self.patches[lev - 1]:
                    coarse = coarse_patch.data.get(name)
                    if coarse is None:
                        continue
                    op = InterpolateDensityFineToCoarse(
                        fine,
                        coarse,
                        ratio,
                        fine.ncomp if ncomp is None else ncomp,
                        planar=self.planar,
                    )
                    n_written += op.restrict_box()
        logger.debug("sync_density('%s'): %d coarse cells updated", name, n_written)
        return n_written

    # ----------------------------------------------------------
    # Utility methods
    # ----------------------------------------------------------

    def total_cells(self) -> int:
        """Return total number of valid cells across all levels and patches."""
        return sum(p.n_cells for lev_patches in self.patches for p in lev_patches)

    def get_level_data(self, level: int, name: str, comp: int = 0) -> np.ndarray:
        """Assemble one component of ``name`` over the full domain of ``level``.

        Regions not covered by a patch are filled with zeros.

        Raises:
            IndexError: If level is out of range.
        """
        if level < 0 or level >= len(self.patches):
            msg = f"Level {level} out of range [0, {len(self.patches) - 1}]"
            raise IndexError(msg)

        result = np.zeros(self.level_shape(level))
        for p in self.patches[level]:
            mesh = p.data.get(name)
            if mesh is None:
                continue
            (i0, j0, k0), (i1, j1, k1) = p.lo, p.hi
            result[i0:i1 + 1, j0:j1 + 1, k0:k1 + 1] = mesh.valid(comp)
        return result
