"""picfield: electromagnetic field core for AMR particle-in-cell simulations.

Subpackages:
    parallelization - guard-cell bookkeeping and fine-to-coarse restriction
    fdtd            - finite-difference stencil algorithms and Maxwell update
    spectral        - modified wavenumbers and PSATD (pseudo-spectral) updates
    amr             - refinement-level hierarchy
    filter          - bilinear current smoothing
"""

__version__ = "0.1.0"
