"""Mesh refinement hierarchy.

Provides refinement levels of ``FieldMesh`` patches and fine-to-coarse
density synchronization.
"""

from picfield.amr.hierarchy import AMRPatch, GridHierarchy

__all__ = [
    "AMRPatch",
    "GridHierarchy",
]
