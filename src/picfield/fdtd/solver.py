"""Real-space Maxwell update built on a finite-difference stencil algorithm.

Faraday:  dB/dt = -curl(E)                 (upward derivatives of E)
Ampere:   dE/dt = c^2 curl(B) - J / eps0   (downward derivatives of B)

The caller exchanges guard cells of E (before ``evolve_b``) and B (before
``evolve_e``); only valid cells are written. E, B and J are 3-component
``FieldMesh`` blocks with identical valid boxes.
"""

from __future__ import annotations

import logging

from picfield.config import FieldSolverConfig
from picfield.constants import c2, inv_epsilon_0
from picfield.core.errors import PreconditionError
from picfield.core.field_mesh import FieldMesh
from picfield.fdtd.algorithms import FiniteDifferenceAlgorithm, make_stencil_algorithm

logger = logging.getLogger(__name__)


class FiniteDifferenceSolver:
    """Advance E and B with the selected stencil algorithm.

    Args:
        algorithm: Stencil variant (Nodal, Yee or CKC).
        cell_size: (dx, dy, dz) [m].
    """

    def __init__(
        self,
        algorithm: FiniteDifferenceAlgorithm,
        cell_size: tuple[float, float, float],
    ) -> None:
        self.algorithm = algorithm
        self.cell_size = tuple(float(d) for d in cell_size)
        self.algorithm.initialize_stencil_coefficients(self.cell_size)

    @classmethod
    def from_config(cls, config: FieldSolverConfig) -> FiniteDifferenceSolver:
        algo = make_stencil_algorithm(
            config.maxwell_solver,
            do_nodal=config.do_nodal,
            planar=config.is_planar,
            order=config.stencil_order,
        )
        return cls(algo, tuple(config.cell_size))

    def max_dt(self) -> float:
        """CFL-limited timestep of the underlying stencil [s]."""
        return self.algorithm.compute_max_dt(self.cell_size)

    def _check_fields(self, *fields: FieldMesh) -> None:
        nodal = self.algorithm.nodal
        for f in fields:
            if f.ncomp != 3:
                raise PreconditionError(f"vector field needs 3 components, got {f.ncomp}")
            if f.shape != fields[0].shape or f.lo != fields[0].lo:
                raise PreconditionError("E, B and J must share one valid box")
            if f.is_nodal != nodal:
                raise PreconditionError(
                    f"field centering {f.centering} does not match the "
                    f"{self.algorithm.name} algorithm"
                )

    def evolve_b(self, E: FieldMesh, B: FieldMesh, dt: float) -> None:
        """Advance B by ``dt`` in place (Faraday's law)."""
        self._check_fields(E, B)
        d = self.algorithm.derivative
        dEx_dy = d(E, 1, True, comp=0)
        dEx_dz = d(E, 2, True, comp=0)
        dEy_dx = d(E, 0, True, comp=1)
        dEy_dz = d(E, 2, True, comp=1)
        dEz_dx = d(E, 0, True, comp=2)
        dEz_dy = d(E, 1, True, comp=2)

        Bv = B.valid()
        Bv[..., 0] -= dt * (dEz_dy - dEy_dz)
        Bv[..., 1] -= dt * (dEx_dz - dEz_dx)
        Bv[..., 2] -= dt * (dEy_dx - dEx_dy)

    def evolve_e(self, E: FieldMesh, B: FieldMesh, J: FieldMesh | None, dt: float) -> None:
        """Advance E by ``dt`` in place (Ampere's law with current source)."""
        if J is None:
            self._check_fields(E, B)
        else:
            self._check_fields(E, B, J)
        d = self.algorithm.derivative
        dBx_dy = d(B, 1, False, comp=0)
        dBx_dz = d(B, 2, False, comp=0)
        dBy_dx = d(B, 0, False, comp=1)
        dBy_dz = d(B, 2, False, comp=1)
        dBz_dx = d(B, 0, False, comp=2)
        dBz_dy = d(B, 1, False, comp=2)

        Ev = E.valid()
        Ev[..., 0] += c2 * dt * (dBz_dy - dBy_dz)
        Ev[..., 1] += c2 * dt * (dBx_dz - dBz_dx)
        Ev[..., 2] += c2 * dt * (dBy_dx - dBx_dy)
        if J is not None:
            Ev -= dt * inv_epsilon_0 * J.valid()
        logger.debug("E advanced by dt=%.3e with %s stencil", dt, self.algorithm.name)
