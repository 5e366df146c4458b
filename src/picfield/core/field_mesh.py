"""Ghost-inclusive field storage for a single grid block.

A ``FieldMesh`` owns a numpy array covering its valid box plus a fixed
number of guard cells on each side. Indices passed to the accessor are in
the level's global index space; storage indices are obtained by
subtracting ``offset``. Accessor bounds checks run only when Python runs
with assertions enabled (they disappear under ``python -O``).

Storage layout: ``data.shape == (nx + 2*gx, ny + 2*gy, nz + 2*gz, ncomp)``.
Planar (xz / rz) blocks use ``ny == 1`` with no guard cells along y, so
the same three-index kernels serve every geometry.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

CELL = 0
NODE = 1

IntVect = tuple[int, int, int]


@dataclass
class FieldMesh:
    """A field sampled on one block of a refinement level.

    Attributes:
        lo: Global index of the first valid cell along (x, y, z).
        shape: Number of valid cells along (x, y, z).
        ngrow: Guard cells on each side along (x, y, z).
        centering: Per-axis staggering, ``CELL`` (0) or ``NODE`` (1).
        ncomp: Number of components.
        dtype: Storage dtype (float64 for real fields, complex128 allowed).
        data: Ghost-inclusive storage, allocated on construction.
    """

    lo: IntVect
    shape: IntVect
    ngrow: IntVect
    centering: IntVect = (CELL, CELL, CELL)
    ncomp: int = 1
    dtype: type = np.float64
    data: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.lo = tuple(int(v) for v in self.lo)
        self.shape = tuple(int(v) for v in self.shape)
        self.ngrow = tuple(int(v) for v in self.ngrow)
        self.centering = tuple(int(v) for v in self.centering)
        if len(self.lo) != 3 or len(self.shape) != 3 or len(self.ngrow) != 3:
            raise ValueError("lo, shape and ngrow must have three entries")
        if any(n <= 0 for n in self.shape):
            raise ValueError(f"shape must be positive, got {self.shape}")
        if any(g < 0 for g in self.ngrow):
            raise ValueError(f"ngrow must be non-negative, got {self.ngrow}")
        if any(c not in (CELL, NODE) for c in self.centering):
            raise ValueError(f"centering entries must be 0 or 1, got {self.centering}")
        if self.ncomp < 1:
            raise ValueError(f"ncomp must be >= 1, got {self.ncomp}")
        full = tuple(n + 2 * g for n, g in zip(self.shape, self.ngrow))
        self.data = np.zeros((*full, self.ncomp), dtype=self.dtype)

    # ----------------------------------------------------------
    # Index space
    # ----------------------------------------------------------

    @property
    def hi(self) -> IntVect:
        """Global index of the last valid cell (inclusive)."""
        return tuple(lo + n - 1 for lo, n in zip(self.lo, self.shape))

    @property
    def offset(self) -> IntVect:
        """Global index of storage element ``[0, 0, 0]``."""
        return tuple(lo - g for lo, g in zip(self.lo, self.ngrow))

    @property
    def grown_lo(self) -> IntVect:
        return self.offset

    @property
    def grown_hi(self) -> IntVect:
        return tuple(h + g for h, g in zip(self.hi, self.ngrow))

    @property
    def is_nodal(self) -> bool:
        """True when every axis is node-centred."""
        return all(c == NODE for c in self.centering)

    def contains(self, i: int, j: int, k: int) -> bool:
        """True if (i, j, k) lies inside the ghost-inclusive box."""
        glo = self.grown_lo
        ghi = self.grown_hi
        return (
            glo[0] <= i <= ghi[0]
            and glo[1] <= j <= ghi[1]
            and glo[2] <= k <= ghi[2]
        )

    def _storage_index(self, i: int, j: int, k: int, m: int) -> tuple[int, int, int, int]:
        if __debug__:
            if not self.contains(i, j, k):
                msg = (
                    f"index ({i}, {j}, {k}) outside ghost-inclusive box "
                    f"{self.grown_lo}..{self.grown_hi}"
                )
                raise IndexError(msg)
            if not 0 <= m < self.ncomp:
                raise IndexError(f"component {m} out of range [0, {self.ncomp - 1}]")
        off = self.offset
        return (i - off[0], j - off[1], k - off[2], m)

    def __getitem__(self, key: tuple[int, ...]):
        i, j, k, *rest = key
        m = rest[0] if rest else 0
        return self.data[self._storage_index(i, j, k, m)]

    def __setitem__(self, key: tuple[int, ...], value) -> None:
        i, j, k, *rest = key
        m = rest[0] if rest else 0
        self.data[self._storage_index(i, j, k, m)] = value

    # ----------------------------------------------------------
    # Views
    # ----------------------------------------------------------

    def array(self, comp: int = 0) -> np.ndarray:
        """Ghost-inclusive 3-D view of one component."""
        return self.data[..., comp]

    def valid(self, comp: int | None = None) -> np.ndarray:
        """View of the valid region (all components if ``comp`` is None)."""
        gx, gy, gz = self.ngrow
        nx, ny, nz = self.shape
        view = self.data[gx:gx + nx, gy:gy + ny, gz:gz + nz, :]
        if comp is None:
            return view
        return view[..., comp]

    def cell_indices(self, axis: int) -> np.ndarray:
        """Global indices of the ghost-inclusive box along ``axis``."""
        return np.arange(self.grown_lo[axis], self.grown_hi[axis] + 1)

    def set_from_function(self, func, comp: int = 0) -> None:
        """Fill every cell (ghosts included) with ``func(i, j, k)``.

        ``func`` receives broadcastable integer index arrays in global
        index space.
        """
        i = self.cell_indices(0)[:, None, None]
        j = self.cell_indices(1)[None, :, None]
        k = self.cell_indices(2)[None, None, :]
        self.data[..., comp] = np.broadcast_to(func(i, j, k), self.data.shape[:3])

    # ----------------------------------------------------------
    # Single-block guard fill
    # ----------------------------------------------------------

    def fill_periodic_ghosts(self) -> None:
        """Fill guard cells by periodic wrap of this block's valid data.

        Only meaningful when the block spans the whole periodic domain;
        multi-block exchange belongs to the communication layer.
        """
        for comp in range(self.ncomp):
            valid = self.valid(comp).copy()
            self.data[..., comp] = np.pad(
                valid,
                [(g, g) for g in self.ngrow],
                mode="wrap",
            )

    def copy(self) -> FieldMesh:
        """Deep copy with the same geometry."""
        out = FieldMesh(self.lo, self.shape, self.ngrow, self.centering, self.ncomp, self.dtype)
        out.data[...] = self.data
        return out
