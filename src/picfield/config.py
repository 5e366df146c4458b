"""Pydantic v2 configuration for the field-solver core.

Provides validated, typed configuration with submodels for each optional
component (moving window, PSATD, NCI corrector, mesh refinement, current
filter). Unsupported combinations are rejected here, once, at setup; the
solver modules assume a configuration that has passed these checks.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, model_validator

MAXWELL_SOLVERS = ("yee", "ckc", "psatd")
GEOMETRIES = ("3d", "xz", "rz")


def _is_positive_even(n: int) -> bool:
    return n > 0 and n % 2 == 0


class MovingWindowConfig(BaseModel):
    """Moving-window parameters."""

    enabled: bool = Field(False, description="Shift the domain along `direction` during the run")
    direction: int = Field(2, ge=0, le=2, description="Axis of the moving window (0=x, 1=y, 2=z)")


class NCIConfig(BaseModel):
    """Godfrey numerical Cherenkov instability corrector."""

    enabled: bool = Field(False, description="Apply the NCI corrector to gathered fields")
    stencil_width: int = Field(4, ge=0, description="Half-width of the corrector stencil along z")


class PsatdConfig(BaseModel):
    """Pseudo-spectral analytic time-domain solver parameters."""

    order: list[int] = Field(
        default_factory=lambda: [16, 16, 16],
        min_length=3,
        max_length=3,
        description="Order of the spectral derivative along (x, y, z)",
    )
    n_rz_azimuthal_modes: int = Field(1, ge=1, description="Azimuthal modes kept in RZ geometry")

    @model_validator(mode="after")
    def validate_order(self) -> PsatdConfig:
        if not all(_is_positive_even(n) for n in self.order):
            raise ValueError(f"PSATD order must be positive and even on every axis, got {self.order}")
        return self


class AMRConfig(BaseModel):
    """Mesh refinement parameters.

    Attributes:
        max_level: Finest refinement level (0 = single level).
        refinement_ratio: Integer ratio between successive levels.
        do_subcycling: Advance fine levels with a smaller timestep.
    """

    max_level: int = Field(0, ge=0, le=6)
    refinement_ratio: int = Field(2, ge=2, le=4)
    do_subcycling: bool = Field(False)

    @model_validator(mode="after")
    def validate_ratio(self) -> AMRConfig:
        if self.max_level > 0 and self.refinement_ratio != 2:
            raise ValueError(
                f"only refinement_ratio=2 is supported with mesh refinement, "
                f"got {self.refinement_ratio}"
            )
        return self


class FilterConfig(BaseModel):
    """Bilinear current filter parameters."""

    enabled: bool = Field(False, description="Smooth J before the field update")
    npass: list[int] = Field(
        default_factory=lambda: [1, 1, 1],
        min_length=3,
        max_length=3,
        description="Number of filter passes along (x, y, z)",
    )

    @model_validator(mode="after")
    def validate_npass(self) -> FilterConfig:
        if any(n < 0 for n in self.npass):
            raise ValueError(f"filter npass must be non-negative, got {self.npass}")
        return self


class FieldSolverConfig(BaseModel):
    """Top-level field-solver configuration."""

    geometry: str = Field("3d", description="'3d', 'xz' (planar Cartesian) or 'rz' (cylindrical)")
    grid_shape: list[int] = Field(..., min_length=3, max_length=3, description="Cells (nx, ny, nz)")
    cell_size: list[float] = Field(..., min_length=3, max_length=3, description="(dx, dy, dz) [m]")
    dt: float | None = Field(None, gt=0, description="Timestep [s] (None = CFL limit)")

    maxwell_solver: str = Field("yee", description="'yee', 'ckc' or 'psatd'")
    do_nodal: bool = Field(False, description="Collocate all field components on the nodes")
    aux_is_nodal: bool = Field(False, description="Auxiliary (gather) grid is nodal")
    stencil_order: int = Field(2, ge=2, description="Finite-difference stencil order (even)")
    particle_shape: int = Field(1, ge=1, le=3, description="Current deposition / gather order")
    v_galilean: list[float] = Field(
        default_factory=lambda: [0.0, 0.0, 0.0],
        min_length=3,
        max_length=3,
        description="Galilean (boosted-frame) drift velocity [m/s]",
    )
    safe_guard_cells: bool = Field(False, description="Exchange every allocated guard cell")

    moving_window: MovingWindowConfig = Field(default_factory=MovingWindowConfig)
    nci: NCIConfig = Field(default_factory=NCIConfig)
    psatd: PsatdConfig = Field(default_factory=PsatdConfig)
    amr: AMRConfig = Field(default_factory=AMRConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)

    @model_validator(mode="after")
    def validate_solver(self) -> FieldSolverConfig:
        if self.maxwell_solver not in MAXWELL_SOLVERS:
            raise ValueError(
                f"maxwell_solver must be 'yee', 'ckc' or 'psatd', got '{self.maxwell_solver}'"
            )
        if self.geometry not in GEOMETRIES:
            raise ValueError(f"geometry must be '3d', 'xz' or 'rz', got '{self.geometry}'")
        if not _is_positive_even(self.stencil_order):
            raise ValueError(f"stencil_order must be even, got {self.stencil_order}")
        if self.maxwell_solver == "ckc":
            if self.do_nodal:
                raise ValueError("the CKC solver is staggered; do_nodal is not supported")
            if self.stencil_order != 2:
                raise ValueError("the CKC solver only exists at stencil_order=2")
        if self.maxwell_solver == "psatd" and self.nci.enabled:
            raise ValueError("the NCI corrector applies to finite-difference solvers only")
        if self.maxwell_solver != "psatd" and any(v != 0.0 for v in self.v_galilean):
            raise ValueError("a Galilean drift velocity requires the PSATD solver")
        if self.geometry == "rz" and self.maxwell_solver != "psatd":
            raise ValueError("rz geometry is only supported with the PSATD solver")
        return self

    @model_validator(mode="after")
    def validate_grid(self) -> FieldSolverConfig:
        if any(n <= 0 for n in self.grid_shape):
            raise ValueError("grid_shape values must be positive integers")
        if any(d <= 0.0 for d in self.cell_size):
            raise ValueError("cell_size values must be positive")
        if self.is_planar:
            if self.grid_shape[1] != 1:
                raise ValueError(
                    f"{self.geometry} geometry requires grid_shape[1]=1, got {self.grid_shape[1]}"
                )
            if self.moving_window.enabled and self.moving_window.direction == 1:
                raise ValueError(f"{self.geometry} geometry cannot move the window along y")
        return self

    @property
    def is_planar(self) -> bool:
        """True for the two-dimensional geometries (xz, rz)."""
        return self.geometry in ("xz", "rz")

    # --- I/O helpers ---

    @classmethod
    def from_file(cls, path: str | Path) -> FieldSolverConfig:
        """Load configuration from a JSON file."""
        path = Path(path)
        with path.open() as f:
            data = json.load(f)
        return cls(**data)

    def to_json(self, path: str | Path | None = None) -> str:
        """Serialize to JSON string, optionally writing to file."""
        out = self.model_dump_json(indent=2)
        if path is not None:
            Path(path).write_text(out)
        return out
