"""
Analytic lead field of a multi-shell concentric-spheres head model.

The potential of a point dipole inside a set of concentric, piecewise
homogeneous, isotropic spheres is expanded in Legendre polynomials. For every
order ``n`` the potential inside shell ``k`` is

    V_k(r) = A_k r^n + B_k r^-(n+1)

and the coefficients follow from continuity of the potential and of the
normal current density at every interface, plus zero normal current at the
(insulating) outer surface. Instead of solving for ``A_k`` and ``B_k``
directly we carry two bounded quantities per order:

* ``w_k = A_k r_k^(2n+1) / B_k``, the ratio between the regular and the
  decaying solution at the outer radius of shell ``k``, obtained by sweeping
  inward from the scalp; and
* ``T_n(r) = r^(n+1) V(r) / b^n``, the transfer factor from a unit source at
  radius ``b`` to an electrode at radius ``r``, obtained by sweeping outward.

Neither grows geometrically with ``n``, so the series stays well conditioned
when electrodes approach the dipole radius. The dipole potential is the
directional derivative (moment direction) of the monopole solution with
respect to the source position, which splits into a radial and a tangential
Legendre sum.

References
----------
Yao D (2001) A method to standardize a reference of scalp EEG recordings to a
point at infinity. Physiol Meas 22:693-711.
Dong L et al. (2017) MATLAB toolboxes for reference electrode standardization
technique (REST) of scalp EEG. Front Neurosci 11:601.
"""

import warnings
from typing import Optional, List
import numpy as np
from tqdm import tqdm

from .headmodel import HeadModel, CONCENTRIC_SPHERES
from .dipoles import DipoleSource, _default_dipoles
from .leadfield import LeadField, ChannelLocation
from utils import with_resource
from utils.exceptions import (
    InputShapeError,
    ModelInvariantError,
    NumericalInstabilityWarning
)

RADIUS_RTOL = 1e-9
"""Relative slack allowed for electrodes sitting on the outer surface."""


def _as_positions(points, what: str) -> np.ndarray:
    points = np.asarray(points, dtype=np.float64)
    if points.ndim == 1 and points.size == 3:
        points = points.reshape(1, 3)
    if points.ndim != 2 or points.shape[1] != 3:
        raise InputShapeError(f"{what} must have shape (n, 3), got {points.shape}")
    if points.shape[0] == 0:
        raise InputShapeError(f"At least one {what.lower()} is required")
    if not np.all(np.isfinite(points)):
        raise ModelInvariantError(f"{what} contain non-finite values")
    return points


def shell_ratios(headmodel: HeadModel, n: np.ndarray) -> np.ndarray:
    """
    Ratio ``w_k`` of the regular to the decaying solution in every shell.

    Parameters
    ----------
    headmodel : HeadModel
    n : np.ndarray
        Legendre orders (>= 1).

    Returns
    -------
    np.ndarray
        Array of shape (n_shells, n_orders), each ``w_k`` referred to the
        outer radius of shell ``k``.
    """
    radii = headmodel.radii
    sigma = headmodel.conductivities
    p = 2 * n + 1

    w = np.empty((len(radii), n.size))
    w[-1] = (n + 1.) / n  # zero normal current at the scalp
    for k in range(len(radii) - 2, -1, -1):
        w_out = w[k + 1] * (radii[k] / radii[k + 1]) ** p
        # logarithmic derivative seen from shell k, scaled by the conductivity jump
        m = sigma[k + 1] / sigma[k] * (n * w_out - (n + 1.)) / (w_out + 1.)
        w[k] = (n + 1. + m) / (n - m)
    return w


def electrode_transfer(headmodel: HeadModel,
                       r_ele: np.ndarray,
                       n: np.ndarray,
                       w: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Transfer factor ``T_n(r)`` for every electrode radius and order.

    ``T_n`` is continuous across interfaces and equals ``(2n+1)/n`` on the
    surface of a homogeneous sphere.

    Returns
    -------
    np.ndarray
        Array of shape (n_electrodes, n_orders).
    """
    if w is None:
        w = shell_ratios(headmodel, n)

    radii = headmodel.radii
    p = 2 * n + 1
    shell = np.minimum(np.searchsorted(radii, r_ele, side='left'), len(radii) - 1)

    T = np.empty((r_ele.size, n.size))
    base = np.ones(n.size)
    for k, r_k in enumerate(radii):
        if k > 0:
            base = T_boundary / (1. + w[k] * (radii[k - 1] / r_k) ** p)
        idx = shell == k
        if idx.any():
            T[idx] = base * (1. + w[k] * (r_ele[idx, None] / r_k) ** p)
        T_boundary = base * (1. + w[k])
    return T


def series_length(ratio: float, tol: float = 1e-12, max_terms: int = 2000) -> int:
    """
    Number of Legendre terms needed for a geometric tail ``n^2 ratio^n < tol``.

    Issues a NumericalInstabilityWarning when the series must be truncated at
    ``max_terms`` before reaching ``tol``.
    """
    if ratio <= 0:
        return 1
    n = np.log(tol) / np.log(ratio)
    for _ in range(3):
        n = (np.log(tol) - 2 * np.log(max(n, 1.))) / np.log(ratio)
    n_terms = max(int(np.ceil(n)), 10)

    if n_terms > max_terms:
        warnings.warn(
            f"Legendre series truncated at {max_terms} terms (about {n_terms} needed "
            f"for tol={tol:g}); dipole/electrode radius ratio {ratio:.6f} is close to 1",
            NumericalInstabilityWarning)
        n_terms = max_terms
    return n_terms


def compute_leadfield(electrodes: np.ndarray,
                      dipole_positions: np.ndarray,
                      dipole_orientations: np.ndarray,
                      headmodel: HeadModel = CONCENTRIC_SPHERES,
                      tol: float = 1e-12,
                      max_terms: int = 2000,
                      verbose: bool = False) -> np.ndarray:
    """
    Lead field of fixed-orientation dipoles in a concentric-spheres model.

    Parameters
    ----------
    electrodes : np.ndarray
        Electrode positions [n_electrodes x 3], same frame and units as the
        head model (scalp radius normally 1).
    dipole_positions : np.ndarray
        Dipole positions [n_dipoles x 3], inside the innermost shell.
    dipole_orientations : np.ndarray
        Unit orientation vectors [n_dipoles x 3].
    headmodel : HeadModel, default=CONCENTRIC_SPHERES
        Volume conductor.
    tol : float, default=1e-12
        Target size of the truncated tail of the Legendre series.
    max_terms : int, default=2000
        Hard cap on the number of Legendre orders.
    verbose : bool, default=False
        If True, print progress messages and show a progress bar.

    Returns
    -------
    np.ndarray
        Lead field G [n_electrodes x n_dipoles]: potential at electrode i of a
        unit dipole j with its fixed orientation.

    Raises
    ------
    InputShapeError
        If arrays are empty or not (n, 3), or orientations don't match positions.
    ModelInvariantError
        If an electrode is outside the scalp or not outside every dipole, a
        dipole is outside the innermost shell or at the centre, or an
        orientation is not a unit vector.
    """
    origin = np.asarray(headmodel.origin)
    elec = _as_positions(electrodes, 'Electrodes') - origin
    pos = _as_positions(dipole_positions, 'Dipoles') - origin
    ori = _as_positions(dipole_orientations, 'Orientations')

    if ori.shape != pos.shape:
        raise InputShapeError(
            f"Orientation array shape {ori.shape} doesn't match "
            f"expected {pos.shape}"
        )
    if np.any(np.abs(np.linalg.norm(ori, axis=1) - 1.0) > 1e-6):
        raise ModelInvariantError("Dipole orientations must be unit vectors")

    r_ele = np.linalg.norm(elec, axis=1)
    b = np.linalg.norm(pos, axis=1)

    outside = np.nonzero(r_ele > headmodel.outer_radius * (1 + RADIUS_RTOL))[0]
    if outside.size:
        raise ModelInvariantError(
            f"{outside.size} electrode(s) lie outside the outer shell "
            f"(radius {headmodel.outer_radius}); first offending index {outside[0]} "
            f"at radius {r_ele[outside[0]]:.6g}"
        )
    if np.any(b == 0):
        raise ModelInvariantError("Dipoles at the sphere centre are not supported")
    if np.any(b >= headmodel.inner_radius):
        raise ModelInvariantError(
            f"All dipoles must lie inside the innermost shell (radius {headmodel.inner_radius}); "
            f"largest dipole radius is {b.max():.6g}"
        )
    if r_ele.min() <= b.max():
        raise ModelInvariantError(
            f"Electrodes must lie outside every dipole; smallest electrode radius "
            f"{r_ele.min():.6g} <= largest dipole radius {b.max():.6g}"
        )

    n_terms = series_length(b.max() / r_ele.min(), tol=tol, max_terms=max_terms)
    n = np.arange(1, n_terms + 1, dtype=np.float64)
    T = electrode_transfer(headmodel, r_ele, n)

    if verbose:
        print(f"Computing leadfield: {elec.shape[0]} electrodes x {pos.shape[0]} dipoles, "
              f"{headmodel.n_shells} shells, {n_terms} Legendre terms")

    e_hat = elec / r_ele[:, None]
    s_hat = pos / b[:, None]
    x = np.clip(e_hat @ s_hat.T, -1.0, 1.0)      # cos of electrode/dipole angle
    t = b[None, :] / r_ele[:, None]              # < 1 by construction
    p_rad = np.einsum('ij,ij->i', ori, s_hat)     # radial moment component
    p_tan = e_hat @ ori.T - x * p_rad[None, :]    # tangential moment seen from each electrode

    radial = np.zeros_like(x)
    tangential = np.zeros_like(x)
    P_prev, P_cur = np.ones_like(x), x.copy()
    dP_prev, dP_cur = np.zeros_like(x), np.ones_like(x)
    t_pow = np.ones_like(x)

    for k in tqdm(range(n_terms), desc="Summing Legendre series", ncols=100, disable=not verbose):
        order = k + 1
        weight = T[:, k][:, None] * t_pow
        radial += order * weight * P_cur
        tangential += weight * dP_cur

        P_next = ((2 * order + 1) * x * P_cur - order * P_prev) / (order + 1)
        dP_next = dP_prev + (2 * order + 1) * P_cur
        P_prev, P_cur = P_cur, P_next
        dP_prev, dP_cur = dP_cur, dP_next
        t_pow = t_pow * t

    G = radial * p_rad[None, :] + tangential * p_tan
    G /= 4 * np.pi * headmodel.conductivities[0] * r_ele[:, None] ** 2
    return G


@with_resource(_default_dipoles, 'dipoles')
def lf_generate_from_spheres(
    electrodes: np.ndarray,
    chanlocs: Optional[List[ChannelLocation]] = None,
    headmodel: HeadModel = CONCENTRIC_SPHERES,
    tol: float = 1e-12,
    max_terms: int = 2000,
    verbose: bool = False,
    *,
    dipoles: Optional[DipoleSource] = None
) -> LeadField:
    """
    Generate a REST lead field from the concentric-spheres head model.

    Parameters
    ----------
    electrodes : np.ndarray
        Electrode positions [n_electrodes x 3] in head-model units.
    chanlocs : List[ChannelLocation], optional
        Channel information for each electrode. Generated ('E1', 'E2', ...)
        if omitted.
    headmodel : HeadModel, default=CONCENTRIC_SPHERES
        Volume conductor.
    tol, max_terms : see ``compute_leadfield``.
    verbose : bool, default=False
        If True, print progress messages during execution.
    dipoles : DipoleSource, optional (keyword-only)
        Equivalent dipole set. Defaults to the shared set loaded from
        ``REST_DIPOLE_FILE`` or the bundled synthetic table.

    Returns
    -------
    LeadField
    """
    electrodes = _as_positions(electrodes, 'Electrodes')
    G = compute_leadfield(electrodes, dipoles.pos, dipoles.orientation,
                          headmodel=headmodel, tol=tol, max_terms=max_terms,
                          verbose=verbose)

    if chanlocs is None:
        chanlocs = [ChannelLocation(labels=f'E{i + 1}', X=x, Y=y, Z=z)
                    for i, (x, y, z) in enumerate(electrodes)]

    return LeadField(
        leadfield=G,
        electrodes=electrodes,
        pos=np.array(dipoles.pos),
        orientation=np.array(dipoles.orientation),
        chanlocs=list(chanlocs),
        headmodel=headmodel,
        method='concentricspheres',
        source=dipoles.source,
        unit='relative',
        metadata={
            'tol': tol,
            'reference': 'Yao (2001) Physiol Meas 22:693-711; Dong et al. (2017) Front Neurosci 11:601',
        }
    )
