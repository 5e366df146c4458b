"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from picfield.config import FieldSolverConfig
from picfield.core.field_mesh import CELL, NODE, FieldMesh


@pytest.fixture
def grid_shape():
    """Small grid for fast unit tests."""
    return (8, 8, 8)


@pytest.fixture
def cell_size():
    return (1e-2, 1e-2, 1e-2)


@pytest.fixture
def sample_config_dict(grid_shape, cell_size):
    """Minimal valid FieldSolverConfig as a dictionary."""
    return {
        "grid_shape": list(grid_shape),
        "cell_size": list(cell_size),
    }


@pytest.fixture
def small_config(sample_config_dict):
    """Small Yee FieldSolverConfig for fast unit tests."""
    return FieldSolverConfig(**sample_config_dict)


@pytest.fixture
def make_mesh():
    """Factory for FieldMesh blocks anchored at the origin."""

    def _make(shape=(8, 8, 8), ngrow=(2, 2, 2), ncomp=1, nodal=False, lo=(0, 0, 0)):
        centering = (NODE, NODE, NODE) if nodal else (CELL, CELL, CELL)
        return FieldMesh(lo, shape, ngrow, centering, ncomp)

    return _make
