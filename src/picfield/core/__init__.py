"""Core data structures shared by all solver modules."""

from picfield.core.errors import ConfigurationError, PreconditionError
from picfield.core.field_mesh import CELL, NODE, FieldMesh

__all__ = [
    "CELL",
    "NODE",
    "ConfigurationError",
    "FieldMesh",
    "PreconditionError",
]
