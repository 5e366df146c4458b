"""Spectral-space wave vectors and finite-order modified wavenumbers.

A pseudo-spectral solver that uses the exact wavenumber ``k`` is not
charge-conserving when the current is deposited with a finite-order
real-space scheme. Replacing ``k`` by the symbol of the matching
finite-difference stencil,

    nodal:      k* = sum_n c_n sin(n k dx) / (n dx)
    staggered:  k* = sum_n c_n sin((n - 1/2) k dx) / ((n - 1/2) dx)

with the Fornberg weights ``c_n``, restores exact discrete continuity.
Order ``-1`` denotes infinite order (``k* = k``).

Layouts:
    RZ:         kr has shape (n_modes, nr) (Bessel zeros per mode),
                kz has shape (nz,) (FFT order).
    Cartesian:  kx has shape (nx // 2 + 1,) (real-to-complex along x),
                ky (ny,), kz (nz,) in FFT order.
"""

from __future__ import annotations

import numpy as np
from scipy.special import jn_zeros

from picfield.constants import pi
from picfield.core.fornberg import fornberg_stencil_coefficients

INFINITE_ORDER = -1


def modified_wavenumber(k: np.ndarray, order: int, nodal: bool, dx: float) -> np.ndarray:
    """Finite-order modified wavenumber matching a real-space stencil.

    Args:
        k: Exact wavenumbers [1/m].
        order: Even stencil order, or ``-1`` for infinite order.
        nodal: Collocated (True) or staggered (False) stencil.
        dx: Grid spacing along this axis [m].

    Returns:
        Array of the same shape as ``k``; zero where ``k`` is zero and, on a
        nodal grid, at the Nyquist frequency ``|k| dx = pi``.
    """
    k = np.asarray(k, dtype=np.float64)
    if order == INFINITE_ORDER:
        return k.copy()
    coefs = fornberg_stencil_coefficients(order, nodal)
    modified = np.zeros_like(k)
    for n, cn in enumerate(coefs, start=1):
        span = n if nodal else n - 0.5
        modified += cn * np.sin(span * k * dx) / (span * dx)
    modified[k == 0.0] = 0.0
    if nodal:
        # sin(n pi) rounds to a small non-zero value
        modified[np.isclose(np.abs(k) * dx, pi, rtol=1e-12, atol=0.0)] = 0.0
    return modified


def fft_wavenumbers(n: int, dx: float) -> np.ndarray:
    """Angular wavenumbers of a length-``n`` complex FFT, in FFT order."""
    if n == 1:
        return np.zeros(1)
    return 2.0 * pi * np.fft.fftfreq(n, d=dx)


class SpectralKSpaceRZ:
    """Wave vectors of the Hankel-Fourier (r, z) representation.

    Args:
        nr: Radial cells.
        nz: Axial cells.
        dr: Radial spacing [m].
        dz: Axial spacing [m].
        n_modes: Azimuthal modes kept.
    """

    def __init__(self, nr: int, nz: int, dr: float, dz: float, n_modes: int = 1) -> None:
        if nr < 1 or nz < 1 or n_modes < 1:
            raise ValueError(f"nr, nz and n_modes must be >= 1, got {nr}, {nz}, {n_modes}")
        self.nr = nr
        self.nz = nz
        self.dr = dr
        self.dz = dz
        self.n_modes = n_modes
        rmax = nr * dr
        self.kr = np.stack([jn_zeros(m, nr) / rmax for m in range(n_modes)])
        self.kz = fft_wavenumbers(nz, dz)

    @property
    def shape(self) -> tuple[int, int, int]:
        """Spectral grid shape (n_modes, nr, nz)."""
        return (self.n_modes, self.nr, self.nz)

    def get_modified_kz(self, order: int, nodal: bool) -> np.ndarray:
        return modified_wavenumber(self.kz, order, nodal, self.dz)


class SpectralKSpaceCartesian:
    """Wave vectors of a real-to-complex Cartesian FFT.

    Args:
        shape: Real-space cells (nx, ny, nz); ny = 1 for planar runs.
        cell_size: (dx, dy, dz) [m].
    """

    def __init__(self, shape: tuple[int, int, int], cell_size: tuple[float, float, float]) -> None:
        nx, ny, nz = shape
        dx, dy, dz = cell_size
        self.real_shape = (nx, ny, nz)
        self.cell_size = (dx, dy, dz)
        self.kx = 2.0 * pi * np.fft.rfftfreq(nx, d=dx) if nx > 1 else np.zeros(1)
        self.ky = fft_wavenumbers(ny, dy)
        self.kz = fft_wavenumbers(nz, dz)

    @property
    def shape(self) -> tuple[int, int, int]:
        """Spectral grid shape (nx // 2 + 1, ny, nz)."""
        return (self.kx.size, self.ky.size, self.kz.size)

    def get_modified_k(self, axis: int, order: int, nodal: bool) -> np.ndarray:
        k = (self.kx, self.ky, self.kz)[axis]
        return modified_wavenumber(k, order, nodal, self.cell_size[axis])
