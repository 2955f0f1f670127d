"""
Reference Electrode Standardization Technique (REST).

Given the lead field G of a fixed equivalent source model, REST estimates the
potential each channel would record against a reference at infinity:

    Gar  = G - mean(G)                  (average-referenced lead field)
    z    = G @ pinv(Gar, alpha) @ V_ar   (infinity-referenced estimate)
    V_r  = V_ar + mean(z)                (restore the common offset)

where ``V_ar`` is the average-referenced data. The whole transform is linear
in the data and is applied as one (n_channels x n_channels) operator.
"""

import warnings
from dataclasses import dataclass
from typing import Optional, Union
import numpy as np
from scipy import linalg

from leadfield import LeadField
from utils.exceptions import InputShapeError, NumericalInstabilityWarning

REGULARIZATION = {
    'real': 0.05,       # empirical recordings: suppress noise-dominated components
    'simulated': 0.0,   # noiseless forward-simulated data
}
"""Regularization presets keyed by data provenance."""

DEFAULT_ALPHA = REGULARIZATION['real']

CONDITION_WARNING = 1.0 / np.sqrt(np.finfo(np.float64).eps)


@dataclass(frozen=True)
class PinvDiagnostics:
    """Spectrum information of a truncated pseudoinverse."""
    singular_values: np.ndarray
    """All singular values of the inverted matrix, descending"""

    threshold: float
    """Singular values below this were discarded"""

    rank: int
    """Number of singular values kept"""

    condition_number: float
    """Ratio of the largest to the smallest kept singular value"""


def resolve_alpha(alpha: Optional[float] = None,
                  data_type: str = 'real',
                  absolute: bool = False) -> float:
    """
    Pick the regularization parameter.

    An explicit ``alpha`` wins; otherwise the preset for ``data_type``
    ('real' or 'simulated') is used. A relative ``alpha`` (the default)
    must lie in [0, 1]; an absolute tolerance only has to be non-negative.
    """
    if alpha is None:
        if data_type not in REGULARIZATION:
            raise ValueError(
                f"Unknown data type '{data_type}'. Use one of {sorted(REGULARIZATION)}"
            )
        return REGULARIZATION[data_type]
    alpha = float(alpha)
    if not np.isfinite(alpha) or alpha < 0:
        raise ValueError(f"Regularization parameter must be a non-negative number, got {alpha}")
    if not absolute and alpha > 1:
        raise ValueError(
            f"Relative regularization parameter must be in [0, 1], got {alpha}; "
            f"pass absolute=True for an absolute tolerance"
        )
    return alpha


def average_reference(data: np.ndarray) -> np.ndarray:
    """Subtract the mean over channels (rows) from every channel."""
    data = np.asarray(data)
    return data - data.mean(axis=0, keepdims=True)


def average_reference_leadfield(G: np.ndarray) -> np.ndarray:
    """
    Lead field consistent with average-referenced data.

    Every column (dipole) of the result has zero mean across electrodes.
    """
    return average_reference(np.asarray(G, dtype=np.float64))


def regularized_pinv(A: np.ndarray,
                     alpha: float = DEFAULT_ALPHA,
                     return_diagnostics: bool = False,
                     absolute: bool = False):
    """
    Truncated-SVD pseudoinverse.

    Singular values below ``alpha * s_max``, or at or below
    ``max(A.shape) * eps * s_max``, are discarded. ``alpha`` is therefore
    relative to the largest singular value: ``alpha = 1`` keeps only the
    leading component and ``alpha = 0`` still drops components at machine
    precision (the average-referenced lead field always has one).

    With ``absolute=True`` the rule is MATLAB's ``pinv(A, alpha)``: singular
    values at or below ``alpha`` itself are discarded, whatever the scale of
    ``A``. This reproduces the EEGLAB REST plugin exactly.

    Parameters
    ----------
    A : np.ndarray
        Matrix to invert, shape (m, n).
    alpha : float
        Truncation level, in [0, 1] when relative.
    return_diagnostics : bool
        Also return a PinvDiagnostics instance.
    absolute : bool, default=False
        Treat ``alpha`` as an absolute singular-value tolerance.

    Returns
    -------
    np.ndarray or (np.ndarray, PinvDiagnostics)
        Pseudoinverse of shape (n, m).

    Raises
    ------
    ValueError
        If ``alpha`` is negative, or above 1 for a relative threshold.
    """
    alpha = resolve_alpha(alpha, absolute=absolute)

    A = np.asarray(A, dtype=np.float64)
    U, s, Vt = linalg.svd(A, full_matrices=False)

    s_max = s[0] if s.size else 0.0
    floor = max(A.shape) * np.finfo(np.float64).eps * s_max
    if absolute:
        threshold = max(alpha, floor)
        keep = (s > alpha) & (s > floor)
    else:
        threshold = max(alpha * s_max, floor)
        keep = (s >= alpha * s_max) & (s > floor)
    rank = int(keep.sum())

    A_pinv = (Vt[keep].T / s[keep]) @ U[:, keep].T
    condition = s_max / s[keep][-1] if rank else np.inf

    if rank == 0:
        warnings.warn(
            f"Pseudoinverse keeps no components (largest singular value {s_max:.3g}, "
            f"alpha={alpha:g}{', absolute' if absolute else ''}); lower the "
            f"regularization parameter",
            NumericalInstabilityWarning)
    elif condition > CONDITION_WARNING:
        warnings.warn(
            f"Pseudoinverse keeps {rank} components with condition number {condition:.3g}; "
            f"increase the regularization parameter (alpha={alpha:g}) for noisy data",
            NumericalInstabilityWarning)

    if return_diagnostics:
        return A_pinv, PinvDiagnostics(singular_values=s, threshold=threshold,
                                       rank=rank, condition_number=condition)
    return A_pinv


def rest_operator(G: Union[np.ndarray, LeadField],
                  alpha: float = DEFAULT_ALPHA,
                  verbose: bool = False,
                  absolute: bool = False) -> np.ndarray:
    """
    Linear REST transform for a lead field.

    Parameters
    ----------
    G : np.ndarray or LeadField
        Lead field [n_channels x n_sources].
    alpha : float, default=0.05
        Regularization parameter (see ``regularized_pinv``).
    verbose : bool, default=False
        If True, print the effective rank of the inversion.
    absolute : bool, default=False
        Treat ``alpha`` as an absolute tolerance, as MATLAB's ``pinv`` does.

    Returns
    -------
    np.ndarray
        Operator R [n_channels x n_channels] such that ``R @ data`` is the
        REST-referenced data.
    """
    G = _as_matrix(G)
    n_channels = G.shape[0]

    Gar = average_reference_leadfield(G)
    Gar_pinv, info = regularized_pinv(Gar, alpha=alpha, return_diagnostics=True,
                                       absolute=absolute)
    if verbose:
        print(f"REST inversion: rank {info.rank}/{min(Gar.shape)}, "
              f"condition number {info.condition_number:.3g} (alpha={alpha:g})")

    # mean over channels of G @ pinv(Gar) @ data, as a row vector acting on data
    offset = (G @ Gar_pinv).mean(axis=0)
    # applied to average-referenced data, so constant offsets cancel exactly
    offset -= offset.mean()
    return np.eye(n_channels) - 1.0 / n_channels + offset[None, :]


def rereference(data: np.ndarray,
                G: Union[np.ndarray, LeadField],
                alpha: float = DEFAULT_ALPHA,
                inplace: bool = False,
                verbose: bool = False,
                absolute: bool = False) -> np.ndarray:
    """
    Re-reference continuous data to REST (a reference at infinity).

    Parameters
    ----------
    data : np.ndarray
        Continuous data [n_channels x n_times], average- or arbitrarily
        referenced. Rows must follow the lead field's channel order.
    G : np.ndarray or LeadField
        Lead field [n_channels x n_sources].
    alpha : float, default=0.05
        Regularization parameter. Keep the default for empirical recordings;
        use ``REGULARIZATION['simulated']`` (0) only for noiseless simulations.
    inplace : bool, default=False
        Write the result into ``data`` instead of returning a new array.
        ``data`` must then be a writeable floating-point ndarray.
    verbose : bool, default=False
        If True, print progress messages.
    absolute : bool, default=False
        Treat ``alpha`` as an absolute singular-value tolerance (MATLAB
        ``pinv(Gar, alpha)``, as in the EEGLAB plugin).

    Returns
    -------
    np.ndarray
        REST-referenced data with the same shape as ``data``.

    Raises
    ------
    InputShapeError
        If data is empty, segmented (3D) or otherwise not 2D, or its number of
        rows differs from the number of lead field channels.
    TypeError
        If ``inplace`` is set and ``data`` is not a writeable floating-point
        ndarray (the REST values would be truncated or lost).
    """
    G = _as_matrix(G)
    data_arr = np.asarray(data)

    if data_arr.size == 0:
        raise InputShapeError("Data is empty; nothing to re-reference")
    if data_arr.ndim == 3:
        raise InputShapeError(
            f"Data must be continuous (channels x time), got segmented data of shape {data_arr.shape}"
        )
    if data_arr.ndim != 2:
        raise InputShapeError(f"Data must be 2D (channels x time), got shape {data_arr.shape}")
    if data_arr.shape[0] != G.shape[0]:
        raise InputShapeError(
            f"No. of channels in lead field ({G.shape[0]}) and data ({data_arr.shape[0]}) are not equal"
        )
    if inplace:
        if not isinstance(data, np.ndarray) or not np.issubdtype(data.dtype, np.floating):
            raise TypeError(
                f"In-place re-referencing needs a floating-point ndarray, got "
                f"{type(data).__name__} of dtype {data_arr.dtype}; use inplace=False"
            )
        if not data.flags.writeable:
            raise TypeError("In-place re-referencing needs a writeable array")

    R = rest_operator(G, alpha=alpha, verbose=verbose, absolute=absolute)
    rest_data = R @ data_arr

    if inplace:
        data[...] = rest_data
        return data
    return rest_data


def _as_matrix(G) -> np.ndarray:
    if isinstance(G, LeadField):
        G = G.leadfield
    G = np.asarray(G, dtype=np.float64)
    if G.ndim != 2 or G.size == 0:
        raise InputShapeError(f"Lead field must be a non-empty 2D matrix, got shape {G.shape}")
    return G
