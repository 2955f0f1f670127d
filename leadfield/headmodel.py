from dataclasses import dataclass
from typing import Tuple
import numpy as np

from utils.exceptions import ModelInvariantError


@dataclass(frozen=True)
class HeadModel:
    """
    Concentric-spheres volume conductor.

    Shells are ordered from the innermost to the outermost sphere. Shell ``k``
    is the homogeneous region between ``radii[k-1]`` (or the centre for
    ``k == 0``) and ``radii[k]``. Radii are dimensionless, with the scalp
    normally at 1.0, and the outer surface is insulating (air).

    Attributes
    ----------
    radii : Tuple[float, ...]
        Outer radius of each shell, strictly increasing.
    conductivities : Tuple[float, ...]
        Isotropic conductivity of each shell, strictly positive.
    tissues : Tuple[str, ...]
        Tissue name of each shell (e.g. 'brain', 'skull', 'scalp').
    origin : Tuple[float, float, float]
        Centre of the spheres, in the same frame as electrodes and dipoles.
    type : str
        Model type identifier.
    """

    radii: Tuple[float, ...]
    conductivities: Tuple[float, ...]
    tissues: Tuple[str, ...] = ()
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    type: str = 'concentricspheres'

    def __post_init__(self):
        # Normalise containers so the frozen instance is hashable
        object.__setattr__(self, 'radii', tuple(float(r) for r in self.radii))
        object.__setattr__(self, 'conductivities', tuple(float(c) for c in self.conductivities))
        object.__setattr__(self, 'tissues', tuple(str(t) for t in self.tissues))
        object.__setattr__(self, 'origin', tuple(float(o) for o in self.origin))
        self._validate()

    def _validate(self):
        """Validate the shell invariants."""
        radii = np.asarray(self.radii)
        cond = np.asarray(self.conductivities)

        if radii.size == 0:
            raise ModelInvariantError("Head model must have at least one shell")

        if radii.size != cond.size:
            raise ModelInvariantError(
                f"Number of radii ({radii.size}) doesn't match "
                f"number of conductivities ({cond.size})"
            )

        if self.tissues and len(self.tissues) != radii.size:
            raise ModelInvariantError(
                f"Number of tissue labels ({len(self.tissues)}) doesn't match "
                f"number of shells ({radii.size})"
            )

        if len(self.origin) != 3:
            raise ModelInvariantError(f"Origin must be a 3D point, got {self.origin}")

        if not np.all(np.isfinite(radii)) or np.any(radii <= 0):
            raise ModelInvariantError(f"Shell radii must be finite and positive, got {self.radii}")

        if np.any(np.diff(radii) <= 0):
            raise ModelInvariantError(
                f"Shell radii must be strictly increasing from inner to outer, got {self.radii}"
            )

        if not np.all(np.isfinite(cond)) or np.any(cond <= 0):
            raise ModelInvariantError(
                f"Shell conductivities must be finite and strictly positive, got {self.conductivities}"
            )

    @property
    def n_shells(self) -> int:
        """Number of shells."""
        return len(self.radii)

    @property
    def outer_radius(self) -> float:
        """Radius of the scalp surface."""
        return self.radii[-1]

    @property
    def inner_radius(self) -> float:
        """Radius of the innermost (source) sphere."""
        return self.radii[0]

    def to_dict(self) -> dict:
        """Convert to dictionary (FieldTrip/EEGLAB-compatible field names)."""
        return {
            'type': self.type,
            'o': np.asarray(self.origin),
            'r': np.asarray(self.radii),
            'cond': np.asarray(self.conductivities),
            'tissue': list(self.tissues),
        }


CONCENTRIC_SPHERES = HeadModel(
    radii=(0.87, 0.92, 1.0),
    conductivities=(1.0, 0.0125, 1.0),
    tissues=('brain', 'skull', 'scalp'),
)
"""Canonical three-shell head model: brain / skull / scalp."""
