"""Tests for the PSATD spectral algorithms (RZ and Cartesian)."""

from __future__ import annotations

import numpy as np
import pytest

from picfield.config import FieldSolverConfig
from picfield.constants import c, c2, epsilon_0, inv_epsilon_0
from picfield.core.errors import PreconditionError
from picfield.spectral import (
    AlgorithmState,
    CartesianField,
    PsatdAlgorithmCartesian,
    PsatdAlgorithmRZ,
    RZField,
    SpectralFieldData,
    SpectralKSpaceCartesian,
    SpectralKSpaceRZ,
    SpectralSolver,
    compute_psatd_coefficients,
)

DZ = 1e-6
DT = 0.5 * DZ / c


@pytest.fixture
def rz_algo():
    kspace = SpectralKSpaceRZ(nr=6, nz=8, dr=DZ, dz=DZ, n_modes=2)
    return PsatdAlgorithmRZ(kspace, DT, norder_z=16, nodal=False)


@pytest.fixture
def cart_algo():
    kspace = SpectralKSpaceCartesian((8, 6, 4), (DZ, DZ, DZ))
    return PsatdAlgorithmCartesian(kspace, DT, norder=(16, 16, 16), nodal=False)


def _random_complex(rng, shape):
    return rng.standard_normal(shape) + 1j * rng.standard_normal(shape)


def _curl_rz(kr, kz, fp, fm, fz):
    """Spectral curl in the (+, -, z) basis; the result has zero divergence."""
    return (
        -0.5j * kr * fz + kz * fp,
        -0.5j * kr * fz - kz * fm,
        1j * kr * (fp + fm),
    )


# ===================================================================
# Coefficients
# ===================================================================


class TestCoefficients:
    def test_dc_limits(self):
        coefs = compute_psatd_coefficients(np.zeros(3), DT)
        np.testing.assert_array_equal(coefs.C, 1.0)
        np.testing.assert_array_equal(coefs.S_ck, DT)
        np.testing.assert_allclose(coefs.X1, DT**2 / (2.0 * epsilon_0))
        np.testing.assert_allclose(coefs.X2, c2 * DT**2 / (6.0 * epsilon_0))
        np.testing.assert_allclose(coefs.X3, -c2 * DT**2 / (3.0 * epsilon_0))

    def test_small_k_approaches_dc_limit(self):
        k = np.array([1e-3 / (c * DT)])
        coefs = compute_psatd_coefficients(k, DT)
        assert coefs.C[0] == pytest.approx(1.0)
        assert coefs.S_ck[0] == pytest.approx(DT)
        assert coefs.X1[0] == pytest.approx(DT**2 / (2.0 * epsilon_0), rel=1e-5)
        assert coefs.X2[0] == pytest.approx(c2 * DT**2 / (6.0 * epsilon_0), rel=1e-4)
        assert coefs.X3[0] == pytest.approx(-c2 * DT**2 / (3.0 * epsilon_0), rel=1e-4)

    def test_closed_form(self):
        k = np.array([2.0e5, 7.5e5])
        coefs = compute_psatd_coefficients(k, DT)
        theta = c * k * DT
        np.testing.assert_allclose(coefs.C, np.cos(theta))
        np.testing.assert_allclose(coefs.S_ck, np.sin(theta) / (c * k))
        np.testing.assert_allclose(coefs.X1, (1.0 - np.cos(theta)) / (epsilon_0 * c2 * k**2))

    def test_arrays_read_only(self):
        coefs = compute_psatd_coefficients(np.ones(4), DT)
        with pytest.raises(ValueError):
            coefs.C[0] = 2.0
        with pytest.raises(AttributeError):
            coefs.dt = 1.0

    def test_non_positive_dt_rejected(self):
        with pytest.raises(ValueError):
            compute_psatd_coefficients(np.ones(2), 0.0)


# ===================================================================
# Lifecycle
# ===================================================================


class TestLifecycle:
    def test_starts_uninitialized(self, rz_algo):
        assert rz_algo.state is AlgorithmState.UNINITIALIZED
        with pytest.raises(PreconditionError):
            rz_algo.coefficients

    def test_push_before_initialization_raises(self, rz_algo):
        data = SpectralFieldData.zeros(12, rz_algo.grid_shape)
        with pytest.raises(PreconditionError, match="not initialized"):
            rz_algo.push_spectral_fields(data)

    def test_initialize_then_ready(self, rz_algo):
        coefs = rz_algo.initialize_spectral_coefficients()
        assert rz_algo.state is AlgorithmState.READY
        assert coefs.C.shape == rz_algo.grid_shape
        assert coefs.dt == DT

    def test_wrong_field_count_raises(self, rz_algo):
        rz_algo.initialize_spectral_coefficients()
        data = SpectralFieldData.zeros(11, rz_algo.grid_shape)
        with pytest.raises(PreconditionError, match="12 fields"):
            rz_algo.push_spectral_fields(data)

    def test_grid_mismatch_raises(self, cart_algo):
        cart_algo.initialize_spectral_coefficients()
        data = SpectralFieldData.zeros(12, (5, 6, 4))
        with pytest.raises(PreconditionError, match="does not match"):
            cart_algo.push_spectral_fields(data)

    def test_real_fields_rejected(self, cart_algo):
        cart_algo.initialize_spectral_coefficients()
        data = SpectralFieldData(np.zeros((12, *cart_algo.grid_shape)))
        with pytest.raises(PreconditionError, match="complex"):
            cart_algo.push_spectral_fields(data)

    def test_set_timestep_invalidates(self, rz_algo):
        rz_algo.initialize_spectral_coefficients()
        rz_algo.set_timestep(DT)
        assert rz_algo.state is AlgorithmState.READY
        rz_algo.set_timestep(0.5 * DT)
        assert rz_algo.state is AlgorithmState.UNINITIALIZED
        assert rz_algo.initialize_spectral_coefficients().dt == 0.5 * DT

    def test_required_fields(self, rz_algo, cart_algo):
        assert rz_algo.get_required_number_of_fields() == 12
        assert cart_algo.get_required_number_of_fields() == 12


# ===================================================================
# RZ update
# ===================================================================


class TestPsatdRZ:
    def test_vacuum_mode_matches_analytic_solution(self, rz_algo):
        """Ep = Em = 1 (divergence-free in every mode) with B = 0."""
        solver = SpectralSolver(rz_algo)
        data = solver.allocate_field_data()
        data[RZField.EP] = 1.0
        data[RZField.EM] = 1.0
        n_steps = 25
        for _ in range(n_steps):
            solver.push(data)

        t = n_steps * DT
        kr = rz_algo.kr
        kz = rz_algo.kz
        k = np.sqrt(kr**2 + kz**2)
        expected_e = np.broadcast_to(np.cos(c * k * t), rz_algo.grid_shape)
        sin_over_k = np.sin(c * k * t) / (c * k)
        np.testing.assert_allclose(data[RZField.EP], expected_e, rtol=1e-9, atol=1e-12)
        np.testing.assert_allclose(data[RZField.EM], expected_e, rtol=1e-9, atol=1e-12)
        np.testing.assert_allclose(data[RZField.EZ], 0.0, atol=1e-12)
        np.testing.assert_allclose(
            data[RZField.BP], np.broadcast_to(-kz * sin_over_k, rz_algo.grid_shape),
            rtol=1e-9, atol=1e-20,
        )
        np.testing.assert_allclose(
            data[RZField.BM], np.broadcast_to(kz * sin_over_k, rz_algo.grid_shape),
            rtol=1e-9, atol=1e-20,
        )
        np.testing.assert_allclose(
            data[RZField.BZ], np.broadcast_to(-2j * kr * sin_over_k, rz_algo.grid_shape),
            rtol=1e-9, atol=1e-20,
        )

    def test_n_steps_equal_one_long_step(self):
        rng = np.random.default_rng(7)
        kspace = SpectralKSpaceRZ(nr=5, nz=6, dr=DZ, dz=DZ, n_modes=2)
        short = SpectralSolver(PsatdAlgorithmRZ(kspace, DT))
        long = SpectralSolver(PsatdAlgorithmRZ(kspace, 4 * DT))
        kr, kz = short.algorithm.kr, short.algorithm.kz
        shape = short.algorithm.grid_shape
        data = short.allocate_field_data()
        # Curls of random potentials are divergence-free in every mode
        e_fields = _curl_rz(kr, kz, *(_random_complex(rng, shape) for _ in range(3)))
        b_fields = _curl_rz(kr, kz, *(_random_complex(rng, shape) for _ in range(3)))
        for idx, value in zip((RZField.EP, RZField.EM, RZField.EZ), e_fields):
            data[idx] = value
        for idx, value in zip((RZField.BP, RZField.BM, RZField.BZ), b_fields):
            data[idx] = value / c
        reference = data.copy()
        for _ in range(4):
            short.push(data)
        long.push(reference)
        for idx in range(6):
            scale = np.max(np.abs(reference[idx]))
            np.testing.assert_allclose(data[idx], reference[idx], rtol=1e-9, atol=1e-9 * scale)

    def test_repeated_pushes_bit_identical(self, rz_algo):
        rng = np.random.default_rng(3)
        solver = SpectralSolver(rz_algo)
        first = solver.allocate_field_data()
        first.fields[...] = _random_complex(rng, first.fields.shape)
        second = first.copy()
        solver.push(first)
        coefs = rz_algo.coefficients
        solver.push(second)
        assert rz_algo.coefficients is coefs
        np.testing.assert_array_equal(first.fields, second.fields)

    def test_current_and_charge_preserve_gauss_law(self, rz_algo):
        rng = np.random.default_rng(11)
        rz_algo.initialize_spectral_coefficients()
        data = SpectralFieldData.zeros(12, rz_algo.grid_shape)
        for idx in (RZField.EP, RZField.EM, RZField.EZ, RZField.JP, RZField.JM, RZField.JZ):
            data[idx] = _random_complex(rng, data.grid_shape)
        kr, kz = rz_algo.kr, rz_algo.kz

        rz_algo.compute_spectral_div_e(data)
        rho_old = epsilon_0 * data[RZField.DIV_E]
        div_j = kr * (data[RZField.JP] - data[RZField.JM]) + 1j * kz * data[RZField.JZ]
        data[RZField.RHO_OLD] = rho_old
        data[RZField.RHO_NEW] = rho_old - DT * div_j

        rz_algo.push_spectral_fields(data)
        rz_algo.compute_spectral_div_e(data)
        np.testing.assert_allclose(
            data[RZField.DIV_E], inv_epsilon_0 * data[RZField.RHO_NEW],
            rtol=1e-7, atol=1e-7 * np.max(np.abs(data[RZField.DIV_E])),
        )

    def test_sources_untouched(self, rz_algo):
        rng = np.random.default_rng(5)
        rz_algo.initialize_spectral_coefficients()
        data = SpectralFieldData.zeros(12, rz_algo.grid_shape)
        data.fields[...] = _random_complex(rng, data.fields.shape)
        before = data.copy()
        rz_algo.push_spectral_fields(data)
        for idx in (RZField.JP, RZField.JM, RZField.JZ, RZField.RHO_OLD, RZField.RHO_NEW):
            np.testing.assert_array_equal(data[idx], before[idx])


# ===================================================================
# Cartesian update
# ===================================================================


class TestPsatdCartesian:
    def test_dc_mode_updates_with_current_only(self, cart_algo):
        solver = SpectralSolver(cart_algo)
        data = solver.allocate_field_data()
        data[CartesianField.EZ][0, 0, 0] = 2.0
        data[CartesianField.BX][0, 0, 0] = 3.0
        data[CartesianField.JZ][0, 0, 0] = 5.0
        data[CartesianField.JX][0, 0, 0] = -1.0
        solver.push(data)
        assert data[CartesianField.EZ][0, 0, 0] == pytest.approx(2.0 - DT * inv_epsilon_0 * 5.0)
        assert data[CartesianField.EX][0, 0, 0] == pytest.approx(DT * inv_epsilon_0)
        assert data[CartesianField.BX][0, 0, 0] == 3.0

    def test_plane_wave_dispersion(self, cart_algo):
        """Single mode along x: Ey = cos, cBz = cos, propagating at c."""
        solver = SpectralSolver(cart_algo)
        data = solver.allocate_field_data()
        ix = 2
        kx = cart_algo.kx[ix, 0, 0]
        data[CartesianField.EY][ix, 0, 0] = 1.0
        n_steps = 40
        for _ in range(n_steps):
            solver.push(data)
        t = n_steps * DT
        assert data[CartesianField.EY][ix, 0, 0] == pytest.approx(np.cos(c * kx * t), abs=1e-12)
        bz = data[CartesianField.BZ][ix, 0, 0]
        assert bz == pytest.approx(-1j * np.sin(c * kx * t) / c, abs=1e-20)
        mask = np.ones(data.fields.shape, dtype=bool)
        mask[CartesianField.EY, ix, 0, 0] = False
        mask[CartesianField.BZ, ix, 0, 0] = False
        assert np.all(data.fields[mask] == 0.0)

    def test_gauss_law_preserved(self, cart_algo):
        rng = np.random.default_rng(21)
        cart_algo.initialize_spectral_coefficients()
        data = SpectralFieldData.zeros(12, cart_algo.grid_shape)
        for idx in (CartesianField.EX, CartesianField.EY, CartesianField.EZ,
                    CartesianField.BX, CartesianField.BY, CartesianField.BZ,
                    CartesianField.JX, CartesianField.JY, CartesianField.JZ):
            data[idx] = _random_complex(rng, data.grid_shape)
        kx, ky, kz = cart_algo.kx, cart_algo.ky, cart_algo.kz
        cart_algo.compute_spectral_div_e(data)
        rho_old = epsilon_0 * data[CartesianField.DIV_E]
        div_j = 1j * (kx * data[CartesianField.JX] + ky * data[CartesianField.JY]
                      + kz * data[CartesianField.JZ])
        data[CartesianField.RHO_OLD] = rho_old
        data[CartesianField.RHO_NEW] = rho_old - DT * div_j

        cart_algo.push_spectral_fields(data)
        cart_algo.compute_spectral_div_e(data)
        scale = np.max(np.abs(data[CartesianField.DIV_E]))
        np.testing.assert_allclose(
            data[CartesianField.DIV_E], inv_epsilon_0 * data[CartesianField.RHO_NEW],
            rtol=1e-7, atol=1e-7 * scale,
        )

    def test_div_b_stays_zero(self, cart_algo):
        rng = np.random.default_rng(8)
        cart_algo.initialize_spectral_coefficients()
        data = SpectralFieldData.zeros(12, cart_algo.grid_shape)
        for idx in (CartesianField.EX, CartesianField.EY, CartesianField.EZ,
                    CartesianField.JX, CartesianField.JY, CartesianField.JZ):
            data[idx] = _random_complex(rng, data.grid_shape)
        cart_algo.push_spectral_fields(data)
        kx, ky, kz = cart_algo.kx, cart_algo.ky, cart_algo.kz
        div_b = (kx * data[CartesianField.BX] + ky * data[CartesianField.BY]
                 + kz * data[CartesianField.BZ])
        scale = np.max(np.abs(data[CartesianField.BX])) * np.max(np.abs(kx))
        np.testing.assert_allclose(div_b, 0.0, atol=1e-10 * scale)


# ===================================================================
# Owning solver
# ===================================================================


class TestSpectralSolver:
    def test_lazy_initialization(self, cart_algo):
        solver = SpectralSolver(cart_algo)
        assert cart_algo.state is AlgorithmState.UNINITIALIZED
        solver.push(solver.allocate_field_data())
        assert cart_algo.state is AlgorithmState.READY

    def test_set_timestep_triggers_recompute(self, cart_algo):
        solver = SpectralSolver(cart_algo)
        data = solver.allocate_field_data()
        solver.push(data)
        solver.set_timestep(2 * DT)
        assert cart_algo.state is AlgorithmState.UNINITIALIZED
        solver.push(data)
        assert cart_algo.coefficients.dt == 2 * DT

    def test_from_config_rz(self):
        cfg = FieldSolverConfig(
            geometry="rz",
            grid_shape=[8, 1, 16],
            cell_size=[DZ, DZ, DZ],
            maxwell_solver="psatd",
            psatd={"n_rz_azimuthal_modes": 2},
        )
        solver = SpectralSolver.from_config(cfg)
        assert isinstance(solver.algorithm, PsatdAlgorithmRZ)
        assert solver.algorithm.grid_shape == (2, 8, 16)
        assert solver.algorithm.dt == pytest.approx(DZ / c)

    def test_from_config_cartesian(self):
        cfg = FieldSolverConfig(
            grid_shape=[8, 4, 4],
            cell_size=[DZ, DZ, DZ],
            dt=DT,
            maxwell_solver="psatd",
            do_nodal=True,
        )
        solver = SpectralSolver.from_config(cfg)
        assert isinstance(solver.algorithm, PsatdAlgorithmCartesian)
        assert solver.allocate_field_data().fields.shape == (12, 5, 4, 4)

    def test_from_config_requires_psatd(self, small_config):
        with pytest.raises(ValueError):
            SpectralSolver.from_config(small_config)
