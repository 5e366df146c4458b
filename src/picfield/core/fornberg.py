"""Finite-order first-derivative stencil weights (Fornberg).

The same weights define the real-space nodal / staggered stencils of the
finite-difference algorithms and the modified wavenumbers of the
pseudo-spectral solver, so the two discretizations share one symbol.
"""

from __future__ import annotations

import numpy as np


def fornberg_stencil_coefficients(order: int, nodal: bool) -> np.ndarray:
    """Weights ``c_n`` (n = 1..order/2) of a centred first derivative.

    Nodal (collocated):

        df/dx ~ sum_n c_n (f[i+n] - f[i-n]) / (2 n dx)

    Staggered:

        df/dx ~ sum_n c_n (f[i+n-1/2] - f[i-n+1/2]) / ((2n - 1) dx)

    The closed-form expressions overflow at high order, so the weights are
    built by recurrence.

    Args:
        order: Even, positive stencil order.
        nodal: Collocated (True) or staggered (False) stencil.

    Returns:
        Array of ``order // 2`` weights; they sum to 1.
    """
    if order <= 0 or order % 2:
        raise ValueError(f"stencil order must be positive and even, got {order}")
    m = order // 2
    coefs = np.empty(m + 1)
    if nodal:
        coefs[0] = -2.0
        for n in range(1, m + 1):
            coefs[n] = -(m + 1 - n) / (m + n) * coefs[n - 1]
    else:
        prod = 1.0
        for k in range(1, m + 1):
            prod *= (m + k) / (4.0 * k)
        coefs[0] = 4.0 * m * prod * prod
        for n in range(1, m + 1):
            coefs[n] = -((2 * n - 3) * (m + 1 - n)) / ((2 * n - 1) * (m - 1 + n)) * coefs[n - 1]
    # coefs[0] only seeds the recurrence
    return coefs[1:]
