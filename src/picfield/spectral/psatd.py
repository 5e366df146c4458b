"""Pseudo-spectral analytic time-domain (PSATD) Maxwell updates.

In spectral space the sourced Maxwell system is linear with constant
coefficients, so one timestep is advanced with its closed-form solution
(current constant over the step, charge density linear in time):

    E' = C E + S_ck (c^2 i k x B - J / eps0) - i k (X2 rho_new - X3 rho_old)
    B' = C B - S_ck i k x E + X1 i k x J

with, for k = |k*| built from the modified wavenumbers,

    C    = cos(c k dt)
    S_ck = sin(c k dt) / (c k)
    X1   = (1 - C) / (eps0 c^2 k^2)
    X2   = (1 - S_ck / dt) / (eps0 k^2)
    X3   = (C - S_ck / dt) / (eps0 k^2)

Without sources this reproduces the exact vacuum dispersion relation. With
J and rho satisfying discrete continuity, Gauss's law is preserved.
At k = 0 the coefficients take their analytic limits (C = 1, S_ck = dt).

Two variants are provided:

- ``PsatdAlgorithmRZ``: azimuthal-mode decomposition in cylindrical
  geometry. Transverse components use the (+, -) basis
  ``F_+ = (F_r - i F_theta) / 2``, ``F_- = (F_r + i F_theta) / 2``; every
  mode evolves independently.
- ``PsatdAlgorithmCartesian``: real-to-complex Cartesian transform.

Coefficients are computed by ``initialize_spectral_coefficients`` (state
``UNINITIALIZED`` -> ``READY``) and reused for every push at the same
timestep. ``set_timestep`` with a new dt returns the algorithm to
``UNINITIALIZED``. Forward and inverse transforms are the caller's job.

References:
    Haber et al., Proc. 6th Conf. Num. Sim. Plasmas (1973).
    Lehe et al., "A spectral, quasi-cylindrical and dispersion-free
    Particle-In-Cell algorithm", CPC 203, 66-82 (2016).
    Vay et al., "Detailed analysis of the effects of stencil spatial
    variations with arbitrary high-order finite-difference Maxwell
    solver", JCP 243, 260-268 (2013).
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import numpy as np

from picfield.config import FieldSolverConfig
from picfield.constants import c, c2, epsilon_0, inv_epsilon_0
from picfield.core.errors import PreconditionError
from picfield.spectral.kspace import SpectralKSpaceCartesian, SpectralKSpaceRZ

logger = logging.getLogger(__name__)


# ============================================================
# Field layout
# ============================================================


class RZField(enum.IntEnum):
    """Slots of the RZ spectral field array."""

    EP = 0
    EM = 1
    EZ = 2
    BP = 3
    BM = 4
    BZ = 5
    JP = 6
    JM = 7
    JZ = 8
    RHO_OLD = 9
    RHO_NEW = 10
    DIV_E = 11


class CartesianField(enum.IntEnum):
    """Slots of the Cartesian spectral field array."""

    EX = 0
    EY = 1
    EZ = 2
    BX = 3
    BY = 4
    BZ = 5
    JX = 6
    JY = 7
    JZ = 8
    RHO_OLD = 9
    RHO_NEW = 10
    DIV_E = 11


@dataclass
class SpectralFieldData:
    """Complex spectral fields, shape ``(n_fields, *grid_shape)``."""

    fields: np.ndarray

    @classmethod
    def zeros(cls, n_fields: int, grid_shape: tuple[int, ...]) -> SpectralFieldData:
        return cls(np.zeros((n_fields, *grid_shape), dtype=np.complex128))

    @property
    def n_fields(self) -> int:
        return self.fields.shape[0]

    @property
    def grid_shape(self) -> tuple[int, ...]:
        return self.fields.shape[1:]

    def __getitem__(self, index: int) -> np.ndarray:
        return self.fields[index]

    def __setitem__(self, index: int, value) -> None:
        self.fields[index] = value

    def copy(self) -> SpectralFieldData:
        return SpectralFieldData(self.fields.copy())


# ============================================================
# Coefficients
# ============================================================


@dataclass(frozen=True)
class SpectralCoefficientSet:
    """Read-only PSATD propagator coefficients for one timestep.

    Attributes:
        dt: Timestep the coefficients were computed for [s].
        C: cos(c k dt).
        S_ck: sin(c k dt) / (c k) [s].
        X1: (1 - C) / (eps0 c^2 k^2).
        X2: (1 - S_ck / dt) / (eps0 k^2).
        X3: (C - S_ck / dt) / (eps0 k^2).
    """

    dt: float
    C: np.ndarray
    S_ck: np.ndarray
    X1: np.ndarray
    X2: np.ndarray
    X3: np.ndarray


def compute_psatd_coefficients(k_norm: np.ndarray, dt: float) -> SpectralCoefficientSet:
    """Compute the PSATD coefficients on a grid of wavenumber norms.

    Args:
        k_norm: |k| at every spectral point [1/m] (modified wavenumbers).
        dt: Timestep [s].

    Returns:
        Frozen ``SpectralCoefficientSet`` with arrays shaped like ``k_norm``.
    """
    if dt <= 0.0:
        raise ValueError(f"dt must be positive, got {dt}")
    k = np.asarray(k_norm, dtype=np.float64)
    dc = k == 0.0
    k_safe = np.where(dc, 1.0, k)

    C = np.cos(c * k_safe * dt)
    S_ck = np.sin(c * k_safe * dt) / (c * k_safe)
    inv_ep0_k2 = inv_epsilon_0 / (k_safe * k_safe)
    X1 = (1.0 - C) * inv_ep0_k2 / c2
    X2 = (1.0 - S_ck / dt) * inv_ep0_k2
    X3 = (C - S_ck / dt) * inv_ep0_k2

    # Limits of the expressions above as k -> 0
    C[dc] = 1.0
    S_ck[dc] = dt
    X1[dc] = 0.5 * dt * dt / epsilon_0
    X2[dc] = c2 * dt * dt / (6.0 * epsilon_0)
    X3[dc] = -c2 * dt * dt / (3.0 * epsilon_0)

    for arr in (C, S_ck, X1, X2, X3):
        arr.setflags(write=False)
    return SpectralCoefficientSet(dt=dt, C=C, S_ck=S_ck, X1=X1, X2=X2, X3=X3)


# ============================================================
# Algorithms
# ============================================================


class AlgorithmState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class SpectralBaseAlgorithm(ABC):
    """Spectral field update with cached propagator coefficients.

    Subclasses define the field layout, the wave vectors and the update
    equations. Instances are not safe to initialize and push concurrently;
    the owner must finish ``initialize_spectral_coefficients`` first.

    Args:
        dt: Timestep [s].
    """

    def __init__(self, dt: float) -> None:
        if dt <= 0.0:
            raise ValueError(f"dt must be positive, got {dt}")
        self._dt = float(dt)
        self._coefficients: SpectralCoefficientSet | None = None

    @abstractmethod
    def get_required_number_of_fields(self) -> int:
        """Number of field slots the push reads and writes."""

    @property
    @abstractmethod
    def grid_shape(self) -> tuple[int, ...]:
        """Spectral grid shape, without the field axis."""

    @abstractmethod
    def wavenumber_norm(self) -> np.ndarray:
        """|k| on the spectral grid, built from modified wavenumbers."""

    @abstractmethod
    def _push(self, f: np.ndarray, coefs: SpectralCoefficientSet) -> None:
        """Apply the update equations to the raw field array in place."""

    @abstractmethod
    def compute_spectral_div_e(self, field_data: SpectralFieldData) -> None:
        """Store the spectral divergence of E in the DIV_E slot."""

    # ----------------------------------------------------------
    # State
    # ----------------------------------------------------------

    @property
    def dt(self) -> float:
        return self._dt

    @property
    def state(self) -> AlgorithmState:
        if self._coefficients is None:
            return AlgorithmState.UNINITIALIZED
        return AlgorithmState.READY

    @property
    def coefficients(self) -> SpectralCoefficientSet:
        if self._coefficients is None:
            raise PreconditionError(
                f"{type(self).__name__}: spectral coefficients are not initialized"
            )
        return self._coefficients

    def initialize_spectral_coefficients(self) -> SpectralCoefficientSet:
        """Compute the coefficients for the current timestep (-> READY)."""
        self._coefficients = compute_psatd_coefficients(self.wavenumber_norm(), self._dt)
        logger.debug(
            "%s coefficients initialized: dt=%.3e, grid %s",
            type(self).__name__,
            self._dt,
            self.grid_shape,
        )
        return self._coefficients

    def set_timestep(self, dt: float) -> None:
        """Change the timestep; cached coefficients become stale."""
        if dt <= 0.0:
            raise ValueError(f"dt must be positive, got {dt}")
        if dt != self._dt:
            self._dt = float(dt)
            self._coefficients = None
            logger.debug("%s timestep changed to %.3e; coefficients invalidated",
                         type(self).__name__, dt)

    # ----------------------------------------------------------
    # Push
    # ----------------------------------------------------------

    def _check_field_data(self, field_data: SpectralFieldData) -> None:
        n_required = self.get_required_number_of_fields()
        if field_data.n_fields != n_required:
            raise PreconditionError(
                f"{type(self).__name__} needs {n_required} fields, got {field_data.n_fields}"
            )
        if field_data.grid_shape != self.grid_shape:
            raise PreconditionError(
                f"spectral grid {field_data.grid_shape} does not match {self.grid_shape}"
            )
        if not np.iscomplexobj(field_data.fields):
            raise PreconditionError("spectral fields must be complex")

    def push_spectral_fields(self, field_data: SpectralFieldData) -> None:
        """Advance the spectral fields by one timestep in place.

        Raises:
            PreconditionError: Coefficients not initialized, or the field
                array has the wrong count / shape / dtype.
        """
        coefs = self.coefficients
        self._check_field_data(field_data)
        self._push(field_data.fields, coefs)


class PsatdAlgorithmRZ(SpectralBaseAlgorithm):
    """PSATD update for the azimuthal modes of a cylindrical grid.

    Args:
        kspace: RZ wave vectors.
        dt: Timestep [s].
        norder_z: Order of the z derivative (-1 = infinite).
        nodal: Nodal (True) or staggered (False) along z.
    """

    def __init__(
        self,
        kspace: SpectralKSpaceRZ,
        dt: float,
        norder_z: int = 16,
        nodal: bool = False,
    ) -> None:
        super().__init__(dt)
        self.kspace = kspace
        self.n_modes = kspace.n_modes
        self.kr = kspace.kr[:, :, np.newaxis]
        self.kz = kspace.get_modified_kz(norder_z, nodal)[np.newaxis, np.newaxis, :]

    def get_required_number_of_fields(self) -> int:
        return len(RZField)

    @property
    def grid_shape(self) -> tuple[int, int, int]:
        return self.kspace.shape

    def wavenumber_norm(self) -> np.ndarray:
        return np.sqrt(self.kr**2 + self.kz**2)

    def _push(self, f: np.ndarray, coefs: SpectralCoefficientSet) -> None:
        kr = self.kr
        kz = self.kz
        C, S_ck, X1, X2, X3 = coefs.C, coefs.S_ck, coefs.X1, coefs.X2, coefs.X3
        I = 1j  # noqa: E741

        Ep_old = f[RZField.EP].copy()
        Em_old = f[RZField.EM].copy()
        Ez_old = f[RZField.EZ].copy()
        Bp_old = f[RZField.BP].copy()
        Bm_old = f[RZField.BM].copy()
        Bz_old = f[RZField.BZ].copy()
        Jp = f[RZField.JP]
        Jm = f[RZField.JM]
        Jz = f[RZField.JZ]
        rho_diff = X2 * f[RZField.RHO_NEW] - X3 * f[RZField.RHO_OLD]

        f[RZField.EP] = (
            C * Ep_old
            + S_ck * (-c2 * I * kr / 2.0 * Bz_old + c2 * kz * Bp_old - inv_epsilon_0 * Jp)
            + 0.5 * kr * rho_diff
        )
        f[RZField.EM] = (
            C * Em_old
            + S_ck * (-c2 * I * kr / 2.0 * Bz_old - c2 * kz * Bm_old - inv_epsilon_0 * Jm)
            - 0.5 * kr * rho_diff
        )
        f[RZField.EZ] = (
            C * Ez_old
            + S_ck * (c2 * I * kr * Bp_old + c2 * I * kr * Bm_old - inv_epsilon_0 * Jz)
            - I * kz * rho_diff
        )
        f[RZField.BP] = (
            C * Bp_old
            - S_ck * (-I * kr / 2.0 * Ez_old + kz * Ep_old)
            + X1 * (-I * kr / 2.0 * Jz + kz * Jp)
        )
        f[RZField.BM] = (
            C * Bm_old
            - S_ck * (-I * kr / 2.0 * Ez_old - kz * Em_old)
            + X1 * (-I * kr / 2.0 * Jz - kz * Jm)
        )
        f[RZField.BZ] = (
            C * Bz_old
            - S_ck * (I * kr * Ep_old + I * kr * Em_old)
            + X1 * (I * kr * Jp + I * kr * Jm)
        )

    def compute_spectral_div_e(self, field_data: SpectralFieldData) -> None:
        self._check_field_data(field_data)
        f = field_data.fields
        f[RZField.DIV_E] = self.kr * (f[RZField.EP] - f[RZField.EM]) + 1j * self.kz * f[RZField.EZ]


class PsatdAlgorithmCartesian(SpectralBaseAlgorithm):
    """PSATD update on a Cartesian real-to-complex spectral grid.

    Args:
        kspace: Cartesian wave vectors.
        dt: Timestep [s].
        norder: Derivative order along (x, y, z) (-1 = infinite).
        nodal: Nodal (True) or staggered (False) grid.
    """

    def __init__(
        self,
        kspace: SpectralKSpaceCartesian,
        dt: float,
        norder: tuple[int, int, int] = (16, 16, 16),
        nodal: bool = False,
    ) -> None:
        super().__init__(dt)
        self.kspace = kspace
        self.kx = kspace.get_modified_k(0, norder[0], nodal)[:, np.newaxis, np.newaxis]
        self.ky = kspace.get_modified_k(1, norder[1], nodal)[np.newaxis, :, np.newaxis]
        self.kz = kspace.get_modified_k(2, norder[2], nodal)[np.newaxis, np.newaxis, :]

    def get_required_number_of_fields(self) -> int:
        return len(CartesianField)

    @property
    def grid_shape(self) -> tuple[int, int, int]:
        return self.kspace.shape

    def wavenumber_norm(self) -> np.ndarray:
        return np.sqrt(self.kx**2 + self.ky**2 + self.kz**2)

    def _push(self, f: np.ndarray, coefs: SpectralCoefficientSet) -> None:
        kx, ky, kz = self.kx, self.ky, self.kz
        C, S_ck, X1, X2, X3 = coefs.C, coefs.S_ck, coefs.X1, coefs.X2, coefs.X3
        I = 1j  # noqa: E741

        Ex_old = f[CartesianField.EX].copy()
        Ey_old = f[CartesianField.EY].copy()
        Ez_old = f[CartesianField.EZ].copy()
        Bx_old = f[CartesianField.BX].copy()
        By_old = f[CartesianField.BY].copy()
        Bz_old = f[CartesianField.BZ].copy()
        Jx = f[CartesianField.JX]
        Jy = f[CartesianField.JY]
        Jz = f[CartesianField.JZ]
        rho_diff = X2 * f[CartesianField.RHO_NEW] - X3 * f[CartesianField.RHO_OLD]

        f[CartesianField.EX] = (
            C * Ex_old
            + S_ck * (c2 * I * (ky * Bz_old - kz * By_old) - inv_epsilon_0 * Jx)
            - I * kx * rho_diff
        )
        f[CartesianField.EY] = (
            C * Ey_old
            + S_ck * (c2 * I * (kz * Bx_old - kx * Bz_old) - inv_epsilon_0 * Jy)
            - I * ky * rho_diff
        )
        f[CartesianField.EZ] = (
            C * Ez_old
            + S_ck * (c2 * I * (kx * By_old - ky * Bx_old) - inv_epsilon_0 * Jz)
            - I * kz * rho_diff
        )
        f[CartesianField.BX] = (
            C * Bx_old
            - S_ck * I * (ky * Ez_old - kz * Ey_old)
            + X1 * I * (ky * Jz - kz * Jy)
        )
        f[CartesianField.BY] = (
            C * By_old
            - S_ck * I * (kz * Ex_old - kx * Ez_old)
            + X1 * I * (kz * Jx - kx * Jz)
        )
        f[CartesianField.BZ] = (
            C * Bz_old
            - S_ck * I * (kx * Ey_old - ky * Ex_old)
            + X1 * I * (kx * Jy - ky * Jx)
        )

    def compute_spectral_div_e(self, field_data: SpectralFieldData) -> None:
        self._check_field_data(field_data)
        f = field_data.fields
        f[CartesianField.DIV_E] = 1j * (
            self.kx * f[CartesianField.EX]
            + self.ky * f[CartesianField.EY]
            + self.kz * f[CartesianField.EZ]
        )


# ============================================================
# Owning solver
# ============================================================


class SpectralSolver:
    """Owns a spectral algorithm and sequences initialization before pushes.

    The first ``push`` (or the first after ``set_timestep`` changes dt)
    computes the coefficients; every later push reuses them.

    Args:
        algorithm: A concrete ``SpectralBaseAlgorithm``.
    """

    def __init__(self, algorithm: SpectralBaseAlgorithm) -> None:
        self.algorithm = algorithm

    @classmethod
    def from_config(cls, config: FieldSolverConfig) -> SpectralSolver:
        """Build the RZ or Cartesian PSATD solver described by ``config``."""
        if config.maxwell_solver != "psatd":
            raise ValueError(f"SpectralSolver needs maxwell_solver='psatd', got '{config.maxwell_solver}'")
        nx, ny, nz = config.grid_shape
        dx, dy, dz = config.cell_size
        dt = config.dt
        if dt is None:
            dt = (min(dx, dz) if config.is_planar else min(dx, dy, dz)) / c
        if config.geometry == "rz":
            kspace = SpectralKSpaceRZ(nx, nz, dx, dz, config.psatd.n_rz_azimuthal_modes)
            algo: SpectralBaseAlgorithm = PsatdAlgorithmRZ(
                kspace, dt, norder_z=config.psatd.order[2], nodal=config.do_nodal,
            )
        else:
            kspace = SpectralKSpaceCartesian((nx, ny, nz), (dx, dy, dz))
            algo = PsatdAlgorithmCartesian(
                kspace, dt, norder=tuple(config.psatd.order), nodal=config.do_nodal,
            )
        logger.info(
            "PSATD solver: %s geometry, spectral grid %s, dt=%.3e",
            config.geometry,
            algo.grid_shape,
            dt,
        )
        return cls(algo)

    def allocate_field_data(self) -> SpectralFieldData:
        """Zeroed spectral field array with the layout the algorithm needs."""
        return SpectralFieldData.zeros(
            self.algorithm.get_required_number_of_fields(),
            self.algorithm.grid_shape,
        )

    def set_timestep(self, dt: float) -> None:
        self.algorithm.set_timestep(dt)

    def push(self, field_data: SpectralFieldData) -> None:
        """Advance ``field_data`` by one timestep in place."""
        if self.algorithm.state is AlgorithmState.UNINITIALIZED:
            self.algorithm.initialize_spectral_coefficients()
        self.algorithm.push_spectral_fields(field_data)
