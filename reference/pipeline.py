"""
Re-reference a recording to REST/infinity with the default REST settings.

This is the glue between a host recording (data + channel locations) and the
numerical core: it validates the recording, assembles electrode coordinates,
computes (or re-uses) the concentric-spheres lead field and writes the REST
data back. Nothing is written unless the whole computation succeeds.
"""

import hashlib
import threading
from collections import OrderedDict
from typing import Optional, Sequence
import numpy as np

from leadfield import HeadModel, CONCENTRIC_SPHERES, DipoleSource, compute_leadfield
from leadfield.dipoles import _default_dipoles
from utils import with_resource, project_to_sphere
from utils.exceptions import InputShapeError
from .recording import Recording
from .rest import rereference, resolve_alpha

LEADFIELD_CACHE_SIZE = 8
"""Number of lead fields (distinct electrode layouts) kept in memory."""

_leadfield_cache = OrderedDict()
_cache_lock = threading.Lock()


def _leadfield_key(electrodes: np.ndarray, headmodel: HeadModel, dipoles: DipoleSource):
    digest = hashlib.sha1()
    for arr in (electrodes, dipoles.pos, dipoles.orientation):
        arr = np.ascontiguousarray(arr, dtype=np.float64)
        digest.update(str(arr.shape).encode())
        digest.update(arr.tobytes())
    return headmodel, digest.hexdigest()


def cached_leadfield(electrodes: np.ndarray,
                     headmodel: HeadModel,
                     dipoles: DipoleSource,
                     verbose: bool = False) -> np.ndarray:
    """
    Lead field for an electrode layout, memoised on (electrodes, model, dipoles).

    The returned array is read-only and shared between callers.
    """
    key = _leadfield_key(electrodes, headmodel, dipoles)
    with _cache_lock:
        if key in _leadfield_cache:
            _leadfield_cache.move_to_end(key)
            if verbose:
                print("Using cached leadfield")
            return _leadfield_cache[key]

    G = compute_leadfield(electrodes, dipoles.pos, dipoles.orientation,
                          headmodel=headmodel, verbose=verbose)
    G.flags.writeable = False

    with _cache_lock:
        _leadfield_cache[key] = G
        while len(_leadfield_cache) > LEADFIELD_CACHE_SIZE:
            _leadfield_cache.popitem(last=False)
    return G


def clear_leadfield_cache():
    """Forget every cached lead field."""
    with _cache_lock:
        _leadfield_cache.clear()


@with_resource(_default_dipoles, 'dipoles')
def reref_rest(recording: Recording,
               alpha: Optional[float] = None,
               data_type: str = 'real',
               channels: Optional[Sequence[int]] = None,
               headmodel: HeadModel = CONCENTRIC_SPHERES,
               use_cache: bool = True,
               verbose: bool = False,
               absolute: bool = False,
               *,
               dipoles: Optional[DipoleSource] = None) -> Recording:
    """
    Re-reference continuous EEG data to REST/infinity.

    Uses the canonical three concentric spheres head model (radii 0.87, 0.92
    and 1.0; conductivities 1.0, 0.0125 and 1.0) and the fixed set of 3000
    equivalent dipoles. Electrode positions are taken from the channel
    locations and projected onto the scalp sphere.

    Parameters
    ----------
    recording : Recording
        Continuous recording with X/Y/Z channel locations. Updated in place.
    alpha : float, optional
        Regularization parameter. Overrides ``data_type``.
    data_type : str, default='real'
        'real' (alpha=0.05) for empirical recordings, 'simulated' (alpha=0)
        for noiseless simulations.
    channels : sequence of int, optional
        Channels to re-reference. Defaults to every channel with a location
        entry; the data must then have one row per location. Other channels
        are left untouched.
    headmodel : HeadModel, default=CONCENTRIC_SPHERES
        Volume conductor.
    use_cache : bool, default=True
        Re-use lead fields computed earlier for the same electrode layout.
    verbose : bool, default=False
        If True, print progress messages during execution.
    absolute : bool, default=False
        Treat ``alpha`` as an absolute singular-value tolerance, reproducing
        the EEGLAB plugin's ``pinv(Gar, 0.05)``.
    dipoles : DipoleSource, optional (keyword-only)
        Equivalent dipole set. Defaults to the shared set loaded from
        ``REST_DIPOLE_FILE`` or the bundled synthetic table.

    Returns
    -------
    Recording
        The same recording, with REST data and ``ref == 'rest'``.

    Raises
    ------
    InputShapeError
        Empty data, segmented data, or a channel-count mismatch between the
        data and the lead field.
    MissingGeometryError
        Channel locations are missing for any selected channel.
    ModelInvariantError
        Invalid head model or electrode/dipole geometry.
    """
    if verbose:
        print('----------- RE-REFERENCING DATA TO REST/INFINITY AVERAGE ---------------')

    data = recording.data
    if data is None or np.size(data) == 0:
        raise InputShapeError("Recording data is empty. Import data first")
    data = np.asarray(data)
    if data.ndim == 3:
        raise InputShapeError("Data must be continuous (not epoched)")
    if data.ndim != 2:
        raise InputShapeError(f"Data must be 2D (channels x time), got shape {data.shape}")

    alpha = resolve_alpha(alpha, data_type, absolute=absolute)

    if channels is not None:
        channels = [int(c) for c in channels]
        bad = [c for c in channels if c < 0 or c >= data.shape[0]]
        if bad:
            raise InputShapeError(
                f"Channel indices {bad} are out of range for data with {data.shape[0]} channels"
            )

    xyz = recording.electrode_positions(channels)
    electrodes = project_to_sphere(xyz, radius=headmodel.outer_radius, origin=headmodel.origin)

    if verbose:
        print(f"Calculating leadfield based on {headmodel.n_shells}-concentric spheres headmodel...")
    if use_cache:
        G = cached_leadfield(electrodes, headmodel, dipoles, verbose=verbose)
    else:
        G = compute_leadfield(electrodes, dipoles.pos, dipoles.orientation,
                              headmodel=headmodel, verbose=verbose)

    rows = list(range(data.shape[0])) if channels is None else channels
    rest_block = rereference(data[rows], G, alpha=alpha, verbose=verbose, absolute=absolute)

    # only write back once everything succeeded
    rest_data = data.astype(np.result_type(data.dtype, np.float32), copy=True)
    rest_data[rows] = rest_block
    recording.data = rest_data
    recording.ref = 'rest'
    for c in (range(len(recording.chanlocs)) if channels is None else channels):
        recording.chanlocs[c].ref = 'rest'
    recording.metadata['rest'] = {
        'alpha': alpha,
        'absolute': absolute,
        'channels': rows,
        'n_dipoles': dipoles.n_dipoles,
        'headmodel': headmodel.to_dict(),
    }

    if verbose:
        print('EEG data were successfully re-referenced to REST/INFINITY.')
    return recording
