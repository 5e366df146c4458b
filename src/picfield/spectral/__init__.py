"""Pseudo-spectral (PSATD) field solver.

k-space construction lives in :mod:`picfield.spectral.kspace`; the RZ and
Cartesian update algorithms and the owning solver in
:mod:`picfield.spectral.psatd`.
"""

from picfield.spectral.kspace import (
    INFINITE_ORDER,
    SpectralKSpaceCartesian,
    SpectralKSpaceRZ,
    modified_wavenumber,
)
from picfield.spectral.psatd import (
    AlgorithmState,
    CartesianField,
    PsatdAlgorithmCartesian,
    PsatdAlgorithmRZ,
    RZField,
    SpectralBaseAlgorithm,
    SpectralCoefficientSet,
    SpectralFieldData,
    SpectralSolver,
    compute_psatd_coefficients,
)

__all__ = [
    "INFINITE_ORDER",
    "AlgorithmState",
    "CartesianField",
    "PsatdAlgorithmCartesian",
    "PsatdAlgorithmRZ",
    "RZField",
    "SpectralBaseAlgorithm",
    "SpectralCoefficientSet",
    "SpectralFieldData",
    "SpectralKSpaceCartesian",
    "SpectralKSpaceRZ",
    "SpectralSolver",
    "compute_psatd_coefficients",
    "modified_wavenumber",
]
