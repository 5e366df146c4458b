"""Finite-difference stencil algorithms for the real-space Maxwell update.

Three variants share one interface:

- ``NodalAlgorithm``: all components collocated; centred derivative of
  arbitrary even order. Upward and downward derivatives coincide.
- ``YeeAlgorithm``: staggered grid; the upward derivative lives half a
  cell above the cell index, the downward one half a cell below.
- ``CKCAlgorithm``: Cole-Karkkainen-Cowan extended stencil. The upward
  derivative (used on E in Faraday's law) averages over transverse
  neighbours to remove numerical dispersion along the grid diagonals; the
  downward derivative is plain Yee.

Each directional derivative is a Numba ``@njit`` kernel evaluated at one
cell of a ghost-inclusive array in storage indices. Kernels read the input
array and the precomputed coefficient vector only, so any set of distinct
cells may be evaluated concurrently. The kernels do not check bounds: the
stencil footprint must fit in the exchanged guard region (see
``picfield.parallelization.guard_cells``).

Kernel selection (3-D / planar, variant) happens once when an algorithm is
constructed. Planar geometries (xz, rz) store y as a single plane; every
y derivative is identically zero there.

Reference:
    Cowan et al., "Generalized algorithm for control of numerical
    dispersion in explicit time-domain electromagnetic simulations",
    PRST-AB 16, 041303 (2013).
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod

import numpy as np
from numba import njit

from picfield.constants import c
from picfield.core.errors import PreconditionError
from picfield.core.field_mesh import FieldMesh
from picfield.core.fornberg import fornberg_stencil_coefficients

logger = logging.getLogger(__name__)

CellSize = tuple[float, float, float]


# ============================================================
# Per-cell kernels
# ============================================================


@njit(cache=True)
def _zero_derivative(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    return 0.0


@njit(cache=True)
def _nodal_dx(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    result = 0.0
    for n in range(coefs.shape[0]):
        result += coefs[n] * (F[i + n + 1, j, k] - F[i - n - 1, j, k])
    return result


@njit(cache=True)
def _nodal_dy(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    result = 0.0
    for n in range(coefs.shape[0]):
        result += coefs[n] * (F[i, j + n + 1, k] - F[i, j - n - 1, k])
    return result


@njit(cache=True)
def _nodal_dz(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    result = 0.0
    for n in range(coefs.shape[0]):
        result += coefs[n] * (F[i, j, k + n + 1] - F[i, j, k - n - 1])
    return result


@njit(cache=True)
def _yee_upward_dx(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    result = 0.0
    for n in range(coefs.shape[0]):
        result += coefs[n] * (F[i + n + 1, j, k] - F[i - n, j, k])
    return result


@njit(cache=True)
def _yee_downward_dx(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    result = 0.0
    for n in range(coefs.shape[0]):
        result += coefs[n] * (F[i + n, j, k] - F[i - n - 1, j, k])
    return result


@njit(cache=True)
def _yee_upward_dy(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    result = 0.0
    for n in range(coefs.shape[0]):
        result += coefs[n] * (F[i, j + n + 1, k] - F[i, j - n, k])
    return result


@njit(cache=True)
def _yee_downward_dy(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    result = 0.0
    for n in range(coefs.shape[0]):
        result += coefs[n] * (F[i, j + n, k] - F[i, j - n - 1, k])
    return result


@njit(cache=True)
def _yee_upward_dz(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    result = 0.0
    for n in range(coefs.shape[0]):
        result += coefs[n] * (F[i, j, k + n + 1] - F[i, j, k - n])
    return result


@njit(cache=True)
def _yee_downward_dz(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    result = 0.0
    for n in range(coefs.shape[0]):
        result += coefs[n] * (F[i, j, k + n] - F[i, j, k - n - 1])
    return result


# CKC coefficient layout per axis: [inv_d, alpha, beta_1, beta_2, gamma]
# where beta_1 / beta_2 weight the neighbours along the two transverse axes
# in (x, y, z) order.


@njit(cache=True)
def _ckc_upward_dx(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    alpha = coefs[1]
    beta_xy = coefs[2]
    beta_xz = coefs[3]
    gamma = coefs[4]
    return (
        alpha * (F[i + 1, j, k] - F[i, j, k])
        + beta_xy * (F[i + 1, j + 1, k] - F[i, j + 1, k]
                     + F[i + 1, j - 1, k] - F[i, j - 1, k])
        + beta_xz * (F[i + 1, j, k + 1] - F[i, j, k + 1]
                     + F[i + 1, j, k - 1] - F[i, j, k - 1])
        + gamma * (F[i + 1, j + 1, k + 1] - F[i, j + 1, k + 1]
                   + F[i + 1, j - 1, k + 1] - F[i, j - 1, k + 1]
                   + F[i + 1, j + 1, k - 1] - F[i, j + 1, k - 1]
                   + F[i + 1, j - 1, k - 1] - F[i, j - 1, k - 1])
    )


@njit(cache=True)
def _ckc_upward_dy(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    alpha = coefs[1]
    beta_yx = coefs[2]
    beta_yz = coefs[3]
    gamma = coefs[4]
    return (
        alpha * (F[i, j + 1, k] - F[i, j, k])
        + beta_yx * (F[i + 1, j + 1, k] - F[i + 1, j, k]
                     + F[i - 1, j + 1, k] - F[i - 1, j, k])
        + beta_yz * (F[i, j + 1, k + 1] - F[i, j, k + 1]
                     + F[i, j + 1, k - 1] - F[i, j, k - 1])
        + gamma * (F[i + 1, j + 1, k + 1] - F[i + 1, j, k + 1]
                   + F[i - 1, j + 1, k + 1] - F[i - 1, j, k + 1]
                   + F[i + 1, j + 1, k - 1] - F[i + 1, j, k - 1]
                   + F[i - 1, j + 1, k - 1] - F[i - 1, j, k - 1])
    )


@njit(cache=True)
def _ckc_upward_dz(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    alpha = coefs[1]
    beta_zx = coefs[2]
    beta_zy = coefs[3]
    gamma = coefs[4]
    return (
        alpha * (F[i, j, k + 1] - F[i, j, k])
        + beta_zx * (F[i + 1, j, k + 1] - F[i + 1, j, k]
                     + F[i - 1, j, k + 1] - F[i - 1, j, k])
        + beta_zy * (F[i, j + 1, k + 1] - F[i, j + 1, k]
                     + F[i, j - 1, k + 1] - F[i, j - 1, k])
        + gamma * (F[i + 1, j + 1, k + 1] - F[i + 1, j + 1, k]
                   + F[i - 1, j + 1, k + 1] - F[i - 1, j + 1, k]
                   + F[i + 1, j - 1, k + 1] - F[i + 1, j - 1, k]
                   + F[i - 1, j - 1, k + 1] - F[i - 1, j - 1, k])
    )


@njit(cache=True)
def _ckc_upward_dx_planar(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    alpha = coefs[1]
    beta_xz = coefs[3]
    return (
        alpha * (F[i + 1, j, k] - F[i, j, k])
        + beta_xz * (F[i + 1, j, k + 1] - F[i, j, k + 1]
                     + F[i + 1, j, k - 1] - F[i, j, k - 1])
    )


@njit(cache=True)
def _ckc_upward_dz_planar(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    alpha = coefs[1]
    beta_zx = coefs[2]
    return (
        alpha * (F[i, j, k + 1] - F[i, j, k])
        + beta_zx * (F[i + 1, j, k + 1] - F[i + 1, j, k]
                     + F[i - 1, j, k + 1] - F[i - 1, j, k])
    )


@njit(cache=True)
def _ckc_downward_dx(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    return coefs[0] * (F[i, j, k] - F[i - 1, j, k])


@njit(cache=True)
def _ckc_downward_dy(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    return coefs[0] * (F[i, j, k] - F[i, j - 1, k])


@njit(cache=True)
def _ckc_downward_dz(F: np.ndarray, coefs: np.ndarray, i: int, j: int, k: int) -> float:
    return coefs[0] * (F[i, j, k] - F[i, j, k - 1])


# ============================================================
# Box kernel
# ============================================================


@njit
def _apply_over_box(
    kernel,
    F: np.ndarray,
    coefs: np.ndarray,
    out: np.ndarray,
    ilo: int,
    jlo: int,
    klo: int,
) -> None:
    """Evaluate ``kernel`` at every cell of ``out``.

    ``(ilo, jlo, klo)`` is the storage index in ``F`` of ``out[0, 0, 0]``.
    """
    ni, nj, nk = out.shape
    for i in range(ni):
        for j in range(nj):
            for k in range(nk):
                out[i, j, k] = kernel(F, coefs, ilo + i, jlo + j, klo + k)


# ============================================================
# Algorithms
# ============================================================


class FiniteDifferenceAlgorithm(ABC):
    """Common interface of the finite-difference stencil variants.

    Args:
        planar: Two-dimensional (xz / rz) execution; y derivatives vanish.
        order: Stencil order (even).
    """

    name = "base"
    nodal = False

    def __init__(self, planar: bool = False, order: int = 2) -> None:
        if order <= 0 or order % 2:
            raise ValueError(f"stencil order must be positive and even, got {order}")
        self.planar = planar
        self.order = order
        self._coefs: tuple[np.ndarray, np.ndarray, np.ndarray] | None = None
        self._upward = self._select_upward_kernels()
        self._downward = self._select_downward_kernels()

    @abstractmethod
    def _select_upward_kernels(self) -> tuple:
        """Return the (x, y, z) upward kernels for this geometry."""

    @abstractmethod
    def _select_downward_kernels(self) -> tuple:
        """Return the (x, y, z) downward kernels for this geometry."""

    @abstractmethod
    def _axis_coefficients(self, cell_size: CellSize, axis: int) -> np.ndarray:
        """Return the coefficient vector along ``axis``."""

    @property
    @abstractmethod
    def stencil_footprint(self) -> tuple[int, int, int]:
        """Cells reached on either side of the evaluation cell, per axis."""

    @abstractmethod
    def compute_max_dt(self, cell_size: CellSize) -> float:
        """Largest stable timestep for this stencil [s]."""

    # ----------------------------------------------------------
    # Coefficients
    # ----------------------------------------------------------

    def initialize_stencil_coefficients(
        self, cell_size: CellSize,
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Compute and cache the per-axis coefficient vectors.

        Args:
            cell_size: (dx, dy, dz) [m].

        Returns:
            Tuple ``(coefs_x, coefs_y, coefs_z)`` of float64 arrays.
        """
        if any(d <= 0.0 for d in cell_size):
            raise ValueError(f"cell sizes must be positive, got {cell_size}")
        coefs = tuple(
            np.ascontiguousarray(self._axis_coefficients(cell_size, axis), dtype=np.float64)
            for axis in range(3)
        )
        self._coefs = coefs
        logger.debug("%s stencil coefficients for cell size %s: %s", self.name, cell_size, coefs)
        return coefs

    @property
    def stencil_coefficients(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        if self._coefs is None:
            raise PreconditionError(
                f"{self.name}: initialize_stencil_coefficients() must run before derivatives"
            )
        return self._coefs

    # ----------------------------------------------------------
    # Derivatives
    # ----------------------------------------------------------

    def _at(self, kernel, axis: int, F: FieldMesh, i: int, j: int, k: int, comp: int) -> float:
        coefs = self.stencil_coefficients[axis]
        off = F.offset
        if __debug__:
            reach = self.stencil_footprint
            if not (F.contains(i - reach[0], j - reach[1], k - reach[2])
                    and F.contains(i + reach[0], j + reach[1], k + reach[2])):
                raise IndexError(
                    f"{self.name} stencil at ({i}, {j}, {k}) leaves the guard region of the field"
                )
        return float(kernel(F.array(comp), coefs, i - off[0], j - off[1], k - off[2]))

    def upward_dx(self, F: FieldMesh, i: int, j: int, k: int, comp: int = 0) -> float:
        return self._at(self._upward[0], 0, F, i, j, k, comp)

    def downward_dx(self, F: FieldMesh, i: int, j: int, k: int, comp: int = 0) -> float:
        return self._at(self._downward[0], 0, F, i, j, k, comp)

    def upward_dy(self, F: FieldMesh, i: int, j: int, k: int, comp: int = 0) -> float:
        return self._at(self._upward[1], 1, F, i, j, k, comp)

    def downward_dy(self, F: FieldMesh, i: int, j: int, k: int, comp: int = 0) -> float:
        return self._at(self._downward[1], 1, F, i, j, k, comp)

    def upward_dz(self, F: FieldMesh, i: int, j: int, k: int, comp: int = 0) -> float:
        return self._at(self._upward[2], 2, F, i, j, k, comp)

    def downward_dz(self, F: FieldMesh, i: int, j: int, k: int, comp: int = 0) -> float:
        return self._at(self._downward[2], 2, F, i, j, k, comp)

    def derivative(
        self,
        F: FieldMesh,
        axis: int,
        upward: bool,
        comp: int = 0,
        out: np.ndarray | None = None,
    ) -> np.ndarray:
        """Evaluate one directional derivative over the valid box of ``F``.

        Args:
            F: Field with guard cells already exchanged.
            axis: 0, 1 or 2.
            upward: Upward (True) or downward (False) derivative.
            comp: Component of ``F``.
            out: Optional preallocated output, shape ``F.shape``.

        Returns:
            Array of shape ``F.shape``.
        """
        coefs = self.stencil_coefficients[axis]
        if out is None:
            out = np.empty(F.shape, dtype=np.float64)
        if __debug__:
            reach = self.stencil_footprint
            if any(g < r for g, r in zip(F.ngrow, reach)):
                raise IndexError(
                    f"{self.name} stencil footprint {reach} exceeds guard cells {F.ngrow}"
                )
        kernel = (self._upward if upward else self._downward)[axis]
        gx, gy, gz = F.ngrow
        _apply_over_box(kernel, np.ascontiguousarray(F.array(comp)), coefs, out, gx, gy, gz)
        return out


class NodalAlgorithm(FiniteDifferenceAlgorithm):
    """Centred stencils on a nodal grid; upward and downward coincide."""

    name = "nodal"
    nodal = True

    def _select_upward_kernels(self) -> tuple:
        dy = _zero_derivative if self.planar else _nodal_dy
        return (_nodal_dx, dy, _nodal_dz)

    def _select_downward_kernels(self) -> tuple:
        return self._select_upward_kernels()

    def _axis_coefficients(self, cell_size: CellSize, axis: int) -> np.ndarray:
        weights = fornberg_stencil_coefficients(self.order, nodal=True)
        n = np.arange(1, weights.size + 1)
        return weights / (2.0 * n * cell_size[axis])

    @property
    def stencil_footprint(self) -> tuple[int, int, int]:
        m = self.order // 2
        return (m, 0 if self.planar else m, m)

    def compute_max_dt(self, cell_size: CellSize) -> float:
        axes = (0, 2) if self.planar else (0, 1, 2)
        return 1.0 / (c * math.sqrt(sum(1.0 / cell_size[a] ** 2 for a in axes)))


class YeeAlgorithm(FiniteDifferenceAlgorithm):
    """Staggered (Yee) stencils of arbitrary even order."""

    name = "yee"

    def _select_upward_kernels(self) -> tuple:
        dy = _zero_derivative if self.planar else _yee_upward_dy
        return (_yee_upward_dx, dy, _yee_upward_dz)

    def _select_downward_kernels(self) -> tuple:
        dy = _zero_derivative if self.planar else _yee_downward_dy
        return (_yee_downward_dx, dy, _yee_downward_dz)

    def _axis_coefficients(self, cell_size: CellSize, axis: int) -> np.ndarray:
        weights = fornberg_stencil_coefficients(self.order, nodal=False)
        n = np.arange(1, weights.size + 1)
        return weights / ((2.0 * n - 1.0) * cell_size[axis])

    @property
    def stencil_footprint(self) -> tuple[int, int, int]:
        m = self.order // 2
        return (m, 0 if self.planar else m, m)

    def compute_max_dt(self, cell_size: CellSize) -> float:
        axes = (0, 2) if self.planar else (0, 1, 2)
        return 1.0 / (c * math.sqrt(sum(1.0 / cell_size[a] ** 2 for a in axes)))


class CKCAlgorithm(FiniteDifferenceAlgorithm):
    """Cole-Karkkainen-Cowan stencil (second order, staggered)."""

    name = "ckc"

    def __init__(self, planar: bool = False, order: int = 2) -> None:
        if order != 2:
            raise ValueError(f"the CKC stencil is second order only, got order={order}")
        super().__init__(planar=planar, order=order)

    def _select_upward_kernels(self) -> tuple:
        if self.planar:
            return (_ckc_upward_dx_planar, _zero_derivative, _ckc_upward_dz_planar)
        return (_ckc_upward_dx, _ckc_upward_dy, _ckc_upward_dz)

    def _select_downward_kernels(self) -> tuple:
        dy = _zero_derivative if self.planar else _ckc_downward_dy
        return (_ckc_downward_dx, dy, _ckc_downward_dz)

    def _axis_coefficients(self, cell_size: CellSize, axis: int) -> np.ndarray:
        inv = [1.0 / d for d in cell_size]
        beta = 0.125
        if self.planar:
            # Only x and z are active; the y slot stays at the Yee weight
            delta = max(inv[0], inv[2])
            r = [(inv[a] / delta) ** 2 for a in range(3)]
            r[1] = 0.0
        else:
            delta = max(inv)
            r = [(v / delta) ** 2 for v in inv]
        others = [a for a in range(3) if a != axis]
        r1, r2 = r[others[0]], r[others[1]]
        if self.planar or r1 + r2 == 0.0:
            gamma = 0.0
        else:
            gamma = r1 * r2 * (1.0 / 16.0 - 0.125 * r1 * r2 / (r1 + r2))
        alpha = 1.0 - 2.0 * beta * (r1 + r2) - 4.0 * gamma
        d_inv = inv[axis]
        return np.array([
            d_inv,
            alpha * d_inv,
            beta * r1 * d_inv,
            beta * r2 * d_inv,
            gamma * d_inv,
        ])

    @property
    def stencil_footprint(self) -> tuple[int, int, int]:
        return (1, 0 if self.planar else 1, 1)

    def compute_max_dt(self, cell_size: CellSize) -> float:
        axes = (0, 2) if self.planar else (0, 1, 2)
        return min(cell_size[a] for a in axes) / c


_ALGORITHMS = {
    "nodal": NodalAlgorithm,
    "yee": YeeAlgorithm,
    "ckc": CKCAlgorithm,
}


def make_stencil_algorithm(
    maxwell_solver: str,
    do_nodal: bool = False,
    planar: bool = False,
    order: int = 2,
) -> FiniteDifferenceAlgorithm:
    """Select the stencil variant for a finite-difference solver.

    Args:
        maxwell_solver: 'yee' or 'ckc'.
        do_nodal: Collocated grid (only with 'yee').
        planar: Two-dimensional (xz / rz) execution.
        order: Stencil order.

    Returns:
        A ``FiniteDifferenceAlgorithm`` instance (coefficients not yet set).
    """
    if maxwell_solver == "yee" and do_nodal:
        key = "nodal"
    elif maxwell_solver in ("yee", "ckc") and not do_nodal:
        key = maxwell_solver
    else:
        raise ValueError(
            f"no finite-difference algorithm for solver '{maxwell_solver}' with do_nodal={do_nodal}"
        )
    algo = _ALGORITHMS[key](planar=planar, order=order)
    logger.info("Finite-difference algorithm: %s (order %d, planar=%s)", key, order, planar)
    return algo
