"""Small geometric helpers for sphere-based head models."""

import numpy as np

from .exceptions import MissingGeometryError


def project_to_sphere(points: np.ndarray,
                      radius: float = 1.0,
                      origin=(0.0, 0.0, 0.0)) -> np.ndarray:
    """
    Project points radially onto a sphere.

    Parameters
    ----------
    points : np.ndarray
        Cartesian coordinates, shape (n_points, 3).
    radius : float
        Target sphere radius.
    origin : array-like
        Sphere centre.

    Returns
    -------
    np.ndarray
        Projected coordinates, shape (n_points, 3).

    Raises
    ------
    MissingGeometryError
        If a point coincides with the origin (no direction to project along).
    """
    origin = np.asarray(origin, dtype=np.float64)
    rel = np.atleast_2d(np.asarray(points, dtype=np.float64)) - origin
    norms = np.linalg.norm(rel, axis=1)

    degenerate = np.nonzero(norms == 0)[0]
    if degenerate.size:
        raise MissingGeometryError(
            f"Cannot project {degenerate.size} point(s) located at the sphere "
            f"centre onto the scalp (indices: {degenerate.tolist()})",
            channels=degenerate.tolist())

    return origin + radius * rel / norms[:, None]


def fibonacci_sphere(n_points: int, radius: float = 1.0) -> np.ndarray:
    """
    Quasi-uniform sampling of a sphere (golden-angle spiral).

    Returns an array of shape (n_points, 3).
    """
    if n_points < 1:
        raise ValueError(f"n_points must be positive, got {n_points}")

    i = np.arange(n_points, dtype=np.float64) + 0.5
    z = 1.0 - 2.0 * i / n_points
    rho = np.sqrt(1.0 - z ** 2)
    phi = np.pi * (3.0 - np.sqrt(5.0)) * i  # golden angle

    return radius * np.column_stack([rho * np.cos(phi), rho * np.sin(phi), z])
