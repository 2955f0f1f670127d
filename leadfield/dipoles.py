"""
Fixed equivalent dipole set used by the REST lead field.

The dipoles discretise a closed cortical surface. Their positions are read
once from a plain numeric table (N rows x 3 columns, whitespace separated) and
shared read-only by every lead field computation.

The table shipped with the package is synthetic: a Fibonacci cortical cap
(2600 dipoles) plus a deep midline column (400 dipoles), laid out like the
REST cortical source space but not derived from it. Point ``REST_DIPOLE_FILE``
(or ``path=``) at the original 3000-dipole table for canonical results; the
synthetic table issues a ``SyntheticDipoleWarning`` when it is loaded.
"""

import os
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
import numpy as np

from utils import LazyResource
from utils.exceptions import InputShapeError, ModelInvariantError, SyntheticDipoleWarning

DIPOLE_FILE_PATH = Path(__file__).resolve().parent / 'data' / 'synthetic_3000dipoles.dat'
"""Synthetic stand-in dipole table used when no ``REST_DIPOLE_FILE`` is set."""

N_DIPOLES = 3000
"""Canonical number of equivalent dipoles."""

N_RADIAL_DIPOLES = 2600
"""Dipoles [0, N_RADIAL_DIPOLES) point radially outward; the rest point along +Z."""

VERTICAL_ORIENTATION = np.array([0.0, 0.0, 1.0])


@dataclass(frozen=True, eq=False)
class DipoleSource:
    """
    Fixed set of equivalent current dipoles.

    Attributes
    ----------
    pos : np.ndarray
        Dipole positions [n_dipoles x 3], in head-model units (scalp = 1).
    orientation : np.ndarray
        Unit orientation vectors [n_dipoles x 3].
    source : str
        Where the positions came from (file path or 'custom').
    """

    pos: np.ndarray
    orientation: np.ndarray
    source: str = 'custom'

    def __post_init__(self):
        pos = np.array(self.pos, dtype=np.float64)
        orientation = np.array(self.orientation, dtype=np.float64)

        if pos.ndim != 2 or pos.shape[1] != 3 or pos.shape[0] == 0:
            raise InputShapeError(f"Dipole positions must have shape (n_dipoles, 3), got {pos.shape}")
        if orientation.shape != pos.shape:
            raise InputShapeError(
                f"Orientation array shape {orientation.shape} doesn't match "
                f"expected {pos.shape}"
            )

        norms = np.linalg.norm(orientation, axis=1)
        bad = np.nonzero(np.abs(norms - 1.0) > 1e-6)[0]
        if bad.size:
            raise ModelInvariantError(
                f"Dipole orientations must be unit vectors; {bad.size} are not "
                f"(first offending index: {bad[0]}, norm {norms[bad[0]]:.6g})"
            )

        # shared process-wide: never mutated after construction
        pos.flags.writeable = False
        orientation.flags.writeable = False
        object.__setattr__(self, 'pos', pos)
        object.__setattr__(self, 'orientation', orientation)

    @property
    def n_dipoles(self) -> int:
        """Number of dipoles."""
        return self.pos.shape[0]

    @property
    def radii(self) -> np.ndarray:
        """Distance of each dipole from the coordinate origin."""
        return np.linalg.norm(self.pos, axis=1)

    def __repr__(self) -> str:
        return f"DipoleSource(n_dipoles={self.n_dipoles}, source='{self.source}')"


def radial_orientations(pos: np.ndarray) -> np.ndarray:
    """Unit vectors pointing from the origin through each position."""
    pos = np.asarray(pos, dtype=np.float64)
    norms = np.linalg.norm(pos, axis=1, keepdims=True)
    if np.any(norms == 0):
        raise ModelInvariantError("A dipole at the sphere centre has no radial direction")
    return pos / norms


def apply_orientation_convention(orientation: np.ndarray,
                                 n_radial: int = N_RADIAL_DIPOLES) -> np.ndarray:
    """
    Force every dipole past the first ``n_radial`` to point along +Z.

    The REST equivalent-source model keeps the cortical dipoles radial and
    orients the remaining (deep) dipoles vertically. This must be reproduced
    exactly for lead fields to match the reference implementation.

    Parameters
    ----------
    orientation : np.ndarray
        Orientations [n_dipoles x 3], typically radial.
    n_radial : int
        Number of leading dipoles that keep their orientation.

    Returns
    -------
    np.ndarray
        New orientation array; the input is not modified.
    """
    oriented = np.array(orientation, dtype=np.float64)
    oriented[n_radial:] = VERTICAL_ORIENTATION
    return oriented


def load_dipoles(path: Optional[Union[str, Path]] = None,
                 canonical: bool = True) -> DipoleSource:
    """
    Load dipole positions and derive their orientations.

    Parameters
    ----------
    path : str or Path, optional
        Numeric table of dipole positions. Defaults to ``REST_DIPOLE_FILE``
        if set in the environment, else the bundled synthetic table.
    canonical : bool, default=True
        Apply the canonical orientation convention (radial for the first
        2600 dipoles, +Z for the last 400). Requires exactly 3000 rows.
        With ``canonical=False`` all dipoles are radial.

    Returns
    -------
    DipoleSource

    Raises
    ------
    FileNotFoundError
        If the table does not exist.
    ModelInvariantError
        If ``canonical`` is set and the table does not hold 3000 dipoles.

    Warns
    -----
    SyntheticDipoleWarning
        If the bundled synthetic table is the one loaded.
    """
    if path is None:
        path = os.environ.get('REST_DIPOLE_FILE', DIPOLE_FILE_PATH)
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Dipole reference file not found: {path}")
    if path.resolve() == DIPOLE_FILE_PATH:
        warnings.warn(
            f"Using the synthetic stand-in dipole table {path.name}; REST results are "
            f"not those of the original cortical source space. Set REST_DIPOLE_FILE "
            f"or pass path= to use the real 3000-dipole table",
            SyntheticDipoleWarning)

    pos = np.atleast_2d(np.loadtxt(path, dtype=np.float64))
    if pos.shape[1] != 3:
        raise InputShapeError(f"Dipole file {path} must have 3 columns (x, y, z), got {pos.shape[1]}")

    orientation = radial_orientations(pos)
    if canonical:
        if pos.shape[0] != N_DIPOLES:
            raise ModelInvariantError(
                f"Canonical orientation convention needs exactly {N_DIPOLES} dipoles, "
                f"{path.name} holds {pos.shape[0]}"
            )
        orientation = apply_orientation_convention(orientation)

    return DipoleSource(pos=pos, orientation=orientation, source=str(path))


_default_dipoles = LazyResource(load_dipoles, name='REST equivalent dipoles')  # process-wide, read-only


def get_default_dipoles(verbose: bool = False) -> DipoleSource:
    """Return the shared canonical dipole set, loading it on first use."""
    return _default_dipoles.get(verbose=verbose)


def release_default_dipoles():
    """Drop the shared dipole set (e.g. after changing ``REST_DIPOLE_FILE``)."""
    _default_dipoles.release()
