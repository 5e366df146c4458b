"""Current smoothing filters."""

from picfield.filter.bilinear import BilinearFilter, binomial_half_stencil

__all__ = [
    "BilinearFilter",
    "binomial_half_stencil",
]
