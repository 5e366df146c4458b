"""Binomial (bilinear) smoothing of deposited currents.

One pass convolves a field with ``(1/4, 1/2, 1/4)`` along an axis; the
filter applies ``npass`` passes per axis at once through the combined
stencil (the ``npass``-th binomial convolution power). The smoothing
preserves a constant field exactly and removes the Nyquist mode
``(-1)**i`` in a single pass.

Stencils are stored as half-stencils, centre weight first:

    npass = 1:  [1/2, 1/4]
    npass = 2:  [3/8, 1/4, 1/16]

The combined stencil reaches ``npass`` cells, so the filtered block must
carry at least ``npass`` filled guard cells along each filtered axis.
"""

from __future__ import annotations

import logging

import numpy as np
from numba import njit

from picfield.config import FieldSolverConfig
from picfield.core.errors import PreconditionError
from picfield.core.field_mesh import FieldMesh

logger = logging.getLogger(__name__)

_ONE_PASS = np.array([0.25, 0.5, 0.25])


@njit(cache=True)
def _filter_box(src, dst, sx, sy, sz, g0, g1, g2, n0, n1, n2, ncomp):
    wx = sx.size - 1
    wy = sy.size - 1
    wz = sz.size - 1
    for m in range(ncomp):
        for i in range(g0, g0 + n0):
            for j in range(g1, g1 + n1):
                for k in range(g2, g2 + n2):
                    acc = 0.0
                    for a in range(-wx, wx + 1):
                        cx = sx[abs(a)]
                        for b in range(-wy, wy + 1):
                            cxy = cx * sy[abs(b)]
                            for d in range(-wz, wz + 1):
                                acc += cxy * sz[abs(d)] * src[i + a, j + b, k + d, m]
                    dst[i, j, k, m] = acc


def binomial_half_stencil(npass: int) -> np.ndarray:
    """Half-stencil (centre first) of ``npass`` binomial passes."""
    if npass < 0:
        raise ValueError(f"npass must be non-negative, got {npass}")
    full = np.ones(1)
    for _ in range(npass):
        full = np.convolve(full, _ONE_PASS)
    return full[npass:].copy()


class BilinearFilter:
    """Separable binomial filter applied to ``FieldMesh`` blocks in place.

    Args:
        npass: Passes along (x, y, z).
        planar: Never filter along axis 1 (xz / rz runs).
    """

    def __init__(self, npass: tuple[int, int, int] = (1, 1, 1), planar: bool = False) -> None:
        npass = tuple(int(n) for n in npass)
        if len(npass) != 3 or any(n < 0 for n in npass):
            raise ValueError(f"npass must be three non-negative ints, got {npass}")
        if planar:
            npass = (npass[0], 0, npass[2])
        self.npass = npass
        self.planar = planar
        self.stencil_x, self.stencil_y, self.stencil_z = self.compute_stencils()

    @classmethod
    def from_config(cls, config: FieldSolverConfig) -> BilinearFilter:
        return cls(tuple(config.filter.npass), planar=config.is_planar)

    def compute_stencils(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Half-stencils along (x, y, z), centre weight first."""
        return tuple(binomial_half_stencil(n) for n in self.npass)

    @property
    def stencil_width(self) -> tuple[int, int, int]:
        """Guard cells the filter reads on each side, per axis."""
        return self.npass

    def apply(self, field: FieldMesh) -> None:
        """Filter every component of the valid region of ``field`` in place.

        Raises:
            PreconditionError: ``field`` has fewer guard cells than the
                stencil reaches.
        """
        if any(g < w for g, w in zip(field.ngrow, self.stencil_width)):
            raise PreconditionError(
                f"filter needs {self.stencil_width} guard cells, field has {field.ngrow}"
            )
        src = field.data.copy()
        _filter_box(
            src,
            field.data,
            self.stencil_x,
            self.stencil_y,
            self.stencil_z,
            field.ngrow[0],
            field.ngrow[1],
            field.ngrow[2],
            field.shape[0],
            field.shape[1],
            field.shape[2],
            field.ncomp,
        )
        logger.debug("bilinear filter (npass=%s) applied to %s cells", self.npass, field.shape)
