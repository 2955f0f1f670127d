"""
Lead field management for REST re-referencing.

This module provides the concentric-spheres head model, the fixed set of
equivalent dipoles and the analytic forward solution that maps them to scalp
electrodes.

Quick Start
-----------
>>> from leadfield import lf_generate_from_spheres
>>> from utils import fibonacci_sphere
>>>
>>> # 64 electrodes on the scalp, canonical 3-shell model and 3000 dipoles
>>> lf = lf_generate_from_spheres(fibonacci_sphere(64))
>>>
>>> # Inspect lead field
>>> print(f"Channels: {lf.n_channels}, Sources: {lf.n_sources}")
"""

from .leadfield import LeadField, ChannelLocation
from .headmodel import HeadModel, CONCENTRIC_SPHERES
from .dipoles import (
    DipoleSource,
    load_dipoles,
    radial_orientations,
    apply_orientation_convention,
    get_default_dipoles,
    release_default_dipoles,
    DIPOLE_FILE_PATH,
    N_DIPOLES,
    N_RADIAL_DIPOLES
)
from .spheres import compute_leadfield, lf_generate_from_spheres


__all__ = [
    # Core classes
    'LeadField',
    'ChannelLocation',
    'HeadModel',
    'DipoleSource',

    # Head model and dipoles
    'CONCENTRIC_SPHERES',
    'load_dipoles',
    'radial_orientations',
    'apply_orientation_convention',
    'get_default_dipoles',
    'release_default_dipoles',
    'DIPOLE_FILE_PATH',
    'N_DIPOLES',
    'N_RADIAL_DIPOLES',

    # Forward model
    'compute_leadfield',
    'lf_generate_from_spheres',
]

# Version info
__version__ = '0.1.0'
