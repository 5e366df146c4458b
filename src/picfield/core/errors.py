"""Exception types shared by the field-solver modules.

``ConfigurationError`` marks unsupported parameter combinations detected
at setup. ``PreconditionError`` marks calls made out of order or with
inconsistent arguments; both are programming errors and are never retried.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Unsupported order / geometry / refinement-ratio combination."""


class PreconditionError(RuntimeError):
    """A solver entry point was called with its preconditions unmet."""
