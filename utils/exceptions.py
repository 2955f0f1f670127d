"""
Exceptions and warnings raised while computing REST references.

Every error derives from ``ValueError`` as well, so callers that already guard
numeric code with ``except ValueError`` keep working.
"""


class RestError(Exception):
    """Base class for all REST re-referencing errors."""


class InputShapeError(RestError, ValueError):
    """Data is empty, segmented, or does not match the lead field."""


class MissingGeometryError(RestError, ValueError):
    """Electrode 3D coordinates are not available for every channel."""

    def __init__(self, message, channels=None):
        super().__init__(message)
        self.channels = list(channels) if channels is not None else []


class ModelInvariantError(RestError, ValueError):
    """Head model or source/electrode geometry is physically invalid."""


class NumericalInstabilityWarning(RuntimeWarning):
    """Ill-conditioned inversion or truncated series; results may be inaccurate."""


class SyntheticDipoleWarning(UserWarning):
    """The bundled synthetic dipole table is in use instead of a real source space."""
