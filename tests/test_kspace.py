"""Tests for spectral wave vectors and modified wavenumbers."""

from __future__ import annotations

import numpy as np
import pytest
from scipy.special import jn_zeros

from picfield.spectral.kspace import (
    INFINITE_ORDER,
    SpectralKSpaceCartesian,
    SpectralKSpaceRZ,
    fft_wavenumbers,
    modified_wavenumber,
)


class TestModifiedWavenumber:
    def test_infinite_order_is_exact(self):
        k = np.linspace(-50.0, 50.0, 11)
        np.testing.assert_array_equal(modified_wavenumber(k, INFINITE_ORDER, False, 0.1), k)

    def test_second_order_nodal_symbol(self):
        dx = 0.1
        k = np.linspace(-10.0, 10.0, 21)
        np.testing.assert_allclose(modified_wavenumber(k, 2, True, dx), np.sin(k * dx) / dx)

    def test_second_order_staggered_symbol(self):
        dx = 0.1
        k = np.linspace(-10.0, 10.0, 21)
        np.testing.assert_allclose(
            modified_wavenumber(k, 2, False, dx), 2.0 * np.sin(0.5 * k * dx) / dx
        )

    def test_matches_stencil_applied_to_plane_wave(self):
        """The symbol of the 4th-order nodal stencil acting on exp(i k x)."""
        dx = 0.05
        k = 7.0
        x = np.arange(-2, 3) * dx
        f = np.exp(1j * k * x)
        # 4th-order centred difference at x = 0
        deriv = (8.0 * (f[3] - f[1]) - (f[4] - f[0])) / (12.0 * dx)
        assert deriv.imag == pytest.approx(modified_wavenumber(np.array([k]), 4, True, dx)[0])

    @pytest.mark.parametrize("nodal", [True, False])
    def test_converges_to_exact_with_order(self, nodal):
        dx = 0.1
        k = np.array([5.0])
        errors = [abs(modified_wavenumber(k, p, nodal, dx)[0] - 5.0) for p in (2, 4, 8, 16)]
        assert errors == sorted(errors, reverse=True)
        assert errors[-1] < 1e-8

    def test_zero_stays_zero(self):
        assert modified_wavenumber(np.zeros(3), 16, False, 0.1).tolist() == [0.0, 0.0, 0.0]

    @pytest.mark.parametrize("order", [2, 4, 16])
    def test_nodal_nyquist_is_exactly_zero(self, order):
        dx = 1e-6
        k = np.array([np.pi / dx, -np.pi / dx, 0.5 * np.pi / dx])
        modified = modified_wavenumber(k, order, True, dx)
        assert modified[0] == 0.0
        assert modified[1] == 0.0
        assert modified[2] != 0.0

    def test_staggered_nyquist_is_kept(self):
        dx = 0.1
        modified = modified_wavenumber(np.array([np.pi / dx]), 2, False, dx)
        assert modified[0] == pytest.approx(2.0 / dx)


class TestKSpaceRZ:
    def test_shapes(self):
        ks = SpectralKSpaceRZ(nr=8, nz=16, dr=1e-3, dz=2e-3, n_modes=3)
        assert ks.shape == (3, 8, 16)
        assert ks.kr.shape == (3, 8)
        assert ks.kz.shape == (16,)

    def test_radial_wavenumbers_are_bessel_zeros(self):
        ks = SpectralKSpaceRZ(nr=4, nz=4, dr=0.5, dz=1.0, n_modes=2)
        np.testing.assert_allclose(ks.kr[0], jn_zeros(0, 4) / 2.0)
        np.testing.assert_allclose(ks.kr[1], jn_zeros(1, 4) / 2.0)
        assert np.all(ks.kr > 0.0)

    def test_modified_kz(self):
        ks = SpectralKSpaceRZ(nr=4, nz=8, dr=1.0, dz=0.25)
        np.testing.assert_allclose(ks.get_modified_kz(INFINITE_ORDER, False), ks.kz)
        assert ks.get_modified_kz(2, True)[0] == 0.0

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            SpectralKSpaceRZ(nr=0, nz=8, dr=1.0, dz=1.0)


class TestKSpaceCartesian:
    def test_real_to_complex_layout(self):
        ks = SpectralKSpaceCartesian((16, 8, 12), (1.0, 1.0, 1.0))
        assert ks.shape == (9, 8, 12)
        assert ks.kx[0] == 0.0
        assert ks.kx[-1] == pytest.approx(np.pi)

    def test_planar_y(self):
        ks = SpectralKSpaceCartesian((16, 1, 16), (1e-2, 1e-2, 1e-2))
        assert ks.shape == (9, 1, 16)
        assert ks.ky.tolist() == [0.0]

    def test_fft_order(self):
        k = fft_wavenumbers(4, 0.5)
        np.testing.assert_allclose(k, 2.0 * np.pi * np.array([0.0, 0.5, -1.0, -0.5]))

    def test_modified_per_axis(self):
        ks = SpectralKSpaceCartesian((8, 8, 8), (0.1, 0.2, 0.4))
        kz = ks.get_modified_k(2, 2, True)
        np.testing.assert_allclose(kz, np.sin(ks.kz * 0.4) / 0.4, atol=1e-12)

    def test_nodal_nyquist_bins_are_zero(self):
        ks = SpectralKSpaceCartesian((8, 8, 8), (1e-6, 1e-6, 1e-6))
        assert ks.get_modified_k(0, 2, True)[-1] == 0.0
        assert ks.get_modified_k(1, 2, True)[4] == 0.0
        assert ks.get_modified_k(2, 16, True)[4] == 0.0
        assert ks.get_modified_k(2, 2, True)[1] != 0.0
